"""Signals emitted by the flow controller and the snippet runner.

The state machine and the runner never touch a UI. They report through a
:class:`FlowListener`, and any presentation layer (the terminal in
:mod:`authplay.commands.login`, a web page, a test recorder) subclasses it
and overrides the signals it cares about.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Callable, Optional

if TYPE_CHECKING:
    from authplay.flow.session import DeviceFlowSession


class LineLevel(str, Enum):
    """Styling of one line of snippet output."""

    LOG = "log"
    ERROR = "error"


@dataclass(frozen=True)
class OutputLine:
    """One rendered line of snippet output."""

    text: str
    level: LineLevel = LineLevel.LOG

    @property
    def is_error(self) -> bool:
        return self.level == LineLevel.ERROR


class FlowListener:
    """No-op base for flow and runner signals.

    Subclass and override any of the three hooks. Exceptions raised by a
    listener are logged by the emitter and never reach the state machine.
    """

    def on_state_changed(self, session: DeviceFlowSession) -> None:
        """Called after every state transition."""

    def on_code_received(self, session: DeviceFlowSession) -> None:
        """Called once the user code and verification URI are known."""

    def on_output_line(self, line: OutputLine) -> None:
        """Called for every line a snippet writes."""


class CallbackListener(FlowListener):
    """A :class:`FlowListener` built from plain callables.

    Example::

        listener = CallbackListener(
            on_code_received=lambda s: print(s.verification_uri, s.user_code),
        )
    """

    def __init__(
        self,
        on_state_changed: Optional[Callable[[DeviceFlowSession], None]] = None,
        on_code_received: Optional[Callable[[DeviceFlowSession], None]] = None,
        on_output_line: Optional[Callable[[OutputLine], None]] = None,
    ) -> None:
        self._on_state_changed = on_state_changed
        self._on_code_received = on_code_received
        self._on_output_line = on_output_line

    def on_state_changed(self, session: DeviceFlowSession) -> None:
        if self._on_state_changed is not None:
            self._on_state_changed(session)

    def on_code_received(self, session: DeviceFlowSession) -> None:
        if self._on_code_received is not None:
            self._on_code_received(session)

    def on_output_line(self, line: OutputLine) -> None:
        if self._on_output_line is not None:
            self._on_output_line(line)
