"""Build context handed to the guard."""

from dataclasses import dataclass, field
from typing import Optional

from rich.console import Console


class BuildLog:
    """Build console sink rendered with rich."""

    def __init__(self, console: Optional[Console] = None):
        self.console = console or Console(highlight=False, soft_wrap=True)

    def println(self, message: str = "", style: Optional[str] = None) -> None:
        self.console.print(message, style=style, markup=False)


@dataclass
class Build:
    """The build being guarded.

    fail_on_error is accepted from the build step configuration but is not
    consulted by the guard; internal errors always let the build proceed.
    """
    workspace: str
    built_on: str = ""
    log: BuildLog = field(default_factory=BuildLog)
    fail_on_error: bool = False
