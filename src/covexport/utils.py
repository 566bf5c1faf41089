# SPDX-License-Identifier: AGPL-3.0

from timeit import default_timer as timer

_ANSI_COLORS = {"red": 31, "green": 32, "yellow": 33, "cyan": 36}


def colored(text: str, color: str) -> str:
    return f"\033[{_ANSI_COLORS[color]}m{text}\033[0m"


def cyan(text: str) -> str:
    return colored(text, "cyan")


def color_percent(percent: float) -> str:
    """Green from 80%, yellow from 50%, red below."""
    color = "green" if percent >= 80 else "yellow" if percent >= 50 else "red"
    return colored(f"{percent:.2f}%", color)


class PhaseTimer:
    """Wall-clock timer for a run, split into consecutive phases.

    Starting a phase ends the previous one; stopping the timer ends the
    current phase.
    """

    def __init__(self, name: str):
        self.name = name
        self.start_time = timer()
        self.end_time = None
        self.phases: list[PhaseTimer] = []

    def start_phase(self, name: str) -> "PhaseTimer":
        if any(phase.name == name for phase in self.phases):
            raise ValueError(f"phase {name} already exists")

        if self.phases:
            self.phases[-1].stop()

        phase = PhaseTimer(name)
        self.phases.append(phase)
        return phase

    def stop(self) -> None:
        if self.phases:
            self.phases[-1].stop()

        # stopping twice keeps the first end time
        self.end_time = self.end_time or timer()

    def elapsed(self) -> float:
        end_time = self.end_time if self.end_time is not None else timer()
        return end_time - self.start_time

    def report(self) -> str:
        phases = ", ".join(f"{p.name}: {p.elapsed():.2f}s" for p in self.phases)
        phases_str = f" ({phases})" if phases else ""
        return f"{self.name}: {self.elapsed():.2f}s{phases_str}"
