"""Error taxonomy surfaced to the operator."""

from __future__ import annotations

from typing import Sequence


class ConsoleError(Exception):
    code = "console_error"


class InvalidConfiguration(ConsoleError):
    code = "invalid_configuration"

    def __init__(self, reasons: Sequence[str] | str) -> None:
        self.reasons = [reasons] if isinstance(reasons, str) else list(reasons)
        super().__init__("Invalid configuration: " + "; ".join(self.reasons))


class InvalidSelection(ConsoleError):
    code = "invalid_selection"

    def __init__(self, field_name: str, value: object, options: Sequence[object]) -> None:
        self.field_name = field_name
        self.value = value
        self.options = list(options)
        super().__init__(f"{field_name}: {value!r} is not one of {self.options}")


class SessionBusy(ConsoleError):
    code = "session_busy"

    def __init__(self, message: str = "A reconstruction session is already running") -> None:
        super().__init__(message)


class CommandUnavailable(ConsoleError):
    code = "command_unavailable"


class ConfigLoadFailed(ConsoleError):
    code = "config_load_failed"


class ConfigSaveFailed(ConsoleError):
    code = "config_save_failed"


class EngineFailure(ConsoleError):
    code = "engine_failure"

    def __init__(self, reason: str) -> None:
        self.reason = reason
        super().__init__(f"Engine failure: {reason}")
