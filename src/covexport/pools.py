# SPDX-License-Identifier: AGPL-3.0

from concurrent.futures import ThreadPoolExecutor

import psutil


def heavyweight_hardware_concurrency() -> int:
    """Number of physical cores, falling back to logical cores, then 1."""
    return psutil.cpu_count(logical=False) or psutil.cpu_count() or 1


def resolve_num_threads(configured: int, num_tasks: int) -> int:
    """Worker count for a pool running num_tasks independent tasks.

    0 means auto: one worker per physical core, but never more workers than
    tasks and never fewer than one. Any other value is used verbatim.
    """

    if configured < 0:
        raise ValueError(f"invalid number of threads: {configured}")

    if configured == 0:
        return max(1, min(heavyweight_hardware_concurrency(), num_tasks))

    return configured


def thread_pool(num_threads: int, name: str = "covexport") -> ThreadPoolExecutor:
    return ThreadPoolExecutor(max_workers=num_threads, thread_name_prefix=name)
