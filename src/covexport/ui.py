# SPDX-License-Identifier: AGPL-3.0

from dataclasses import dataclass, field

from rich.console import Console
from rich.status import Status

# stdout may carry the export document, keep the status display on stderr
_stderr_console = Console(stderr=True)


@dataclass(frozen=True, eq=False, order=False, slots=True)
class UI:
    status: Status
    console: Console = field(default_factory=lambda: _stderr_console)

    @property
    def is_interactive(self) -> bool:
        return self.console.is_interactive

    def clear_live(self):
        self.console.clear_live()

    def start_status(self):
        # clear any remaining live display before starting a new instance
        self.clear_live()
        self.status.start()

    def update_status(self, status: str):
        self.status.update(status)

    def stop_status(self):
        self.status.stop()


ui: UI = UI(Status("", console=_stderr_console))
