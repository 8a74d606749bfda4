"""Input models behind the command line and the new-connection form."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from .dsn import validate_dsn
from .windows import WindowType, complete_command, window_for_command


class InputValidationError(ValueError):
    """Raised when typed input cannot be accepted."""


@dataclass(slots=True)
class CommandInput:
    """Buffer for `:` commands such as `:tables` or `:conns`."""

    buffer: str = ""
    active: bool = False

    def activate(self) -> None:
        self.active = True
        self.buffer = ""

    def cancel(self) -> None:
        self.active = False
        self.buffer = ""

    def push(self, text: str) -> None:
        if self.active:
            self.buffer += text

    def pop(self) -> None:
        """Delete the last character; an empty buffer leaves command mode."""

        if not self.buffer:
            self.cancel()
            return
        self.buffer = self.buffer[:-1]

    def complete(self) -> str | None:
        completion = complete_command(self.buffer)
        if completion is not None:
            self.buffer = completion
        return completion

    def submit(self) -> WindowType:
        """Resolve the buffer to a window and leave command mode."""

        command = self.buffer.strip()
        window = window_for_command(command)
        self.cancel()
        if window is None:
            raise InputValidationError(f"Unknown command: {command}")
        return window


class FormStep(str, Enum):
    NAME = "name"
    DSN = "dsn"
    DONE = "done"


@dataclass(slots=True)
class ConnectionForm:
    """Two step prompt collecting a connection name and then its DSN."""

    name: str = ""
    dsn: str = ""
    step: FormStep = FormStep.NAME
    message: str = field(default="")

    @property
    def prompt(self) -> str:
        if self.step is FormStep.NAME:
            return "Connection name"
        return "DSN"

    def submit_name(self, value: str) -> None:
        name = value.strip()
        if not name:
            self.message = "Name cannot be empty"
            raise InputValidationError(self.message)
        self.name = name
        self.message = ""
        self.step = FormStep.DSN

    def submit_dsn(self, value: str) -> tuple[str, str]:
        """Validate the DSN and return the finished `(name, dsn)` pair."""

        if self.step is not FormStep.DSN:
            raise InputValidationError("Enter a connection name first")
        dsn = value.strip()
        message = validate_dsn(dsn)
        if message:
            self.message = message
            raise InputValidationError(message)
        self.dsn = dsn
        self.message = ""
        self.step = FormStep.DONE
        return self.name, self.dsn

    def submit(self, value: str) -> tuple[str, str] | None:
        """Feed the value to the current step; returns the pair once complete."""

        if self.step is FormStep.NAME:
            self.submit_name(value)
            return None
        return self.submit_dsn(value)


__all__ = ["CommandInput", "ConnectionForm", "FormStep", "InputValidationError"]
