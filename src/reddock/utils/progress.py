"""One-way status channel used by the add-on pipeline.

Core code never prints. Each long operation receives a sink and pushes
events into it: ``enter`` when a pipeline stage starts, ``emit`` for status
lines, ``warn`` for advisory problems that did not stop the operation. A
sink cannot cancel anything and nothing in the pipeline depends on what it
does with the events.
"""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from rich.status import Status

from reddock.models.addon import PrepareStage

if TYPE_CHECKING:
    from reddock.utils.output import Console


class ProgressSink(Protocol):
    """Receiver of pipeline events."""

    def enter(self, stage: PrepareStage) -> None: ...

    def emit(self, message: str) -> None: ...

    def warn(self, message: str) -> None: ...


class NullProgress:
    """Sink that drops everything."""

    def enter(self, stage: PrepareStage) -> None:
        pass

    def emit(self, message: str) -> None:
        pass

    def warn(self, message: str) -> None:
        pass


@dataclass
class ProgressLog:
    """Append-only record of every event, optionally forwarded to another sink."""

    forward: ProgressSink | None = None
    stages: list[PrepareStage] = field(default_factory=list)
    messages: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def stage(self) -> PrepareStage:
        """Most recent stage, IDLE before the first one."""
        return self.stages[-1] if self.stages else PrepareStage.IDLE

    def enter(self, stage: PrepareStage) -> None:
        self.stages.append(stage)
        if self.forward is not None:
            self.forward.enter(stage)

    def emit(self, message: str) -> None:
        self.messages.append(message)
        if self.forward is not None:
            self.forward.emit(message)

    def warn(self, message: str) -> None:
        self.warnings.append(message)
        if self.forward is not None:
            self.forward.warn(message)


class StatusProgress:
    """Sink that drives a rich status spinner.

    Warnings are printed above the spinner so they stay on screen after it
    finishes.
    """

    def __init__(self, status: Status | None, console: "Console") -> None:
        self._status = status
        self._console = console

    def enter(self, stage: PrepareStage) -> None:
        pass

    def emit(self, message: str) -> None:
        if self._status is not None:
            self._status.update(message)

    def warn(self, message: str) -> None:
        self._console.print_warning(message)


NULL_PROGRESS = NullProgress()
