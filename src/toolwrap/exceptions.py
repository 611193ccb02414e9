"""toolwrap exceptions."""


class ToolwrapError(Exception):
    """Base exception for toolwrap."""


class GuardError(ToolwrapError, ValueError):
    """A caller-supplied parameter was rejected before argv was built."""

    def __init__(self, message: str, *, param: str = "", value: str = "") -> None:
        super().__init__(message)
        self.param = param
        self.value = value


class InjectionError(GuardError):
    """Parameter would be interpreted by the wrapped tool as a flag.

    Raised when:
    - A string value starts with '-' after trimming whitespace
    - Any element of an array parameter does
    """


class LimitExceededError(GuardError):
    """Parameter is longer than its role allows, or an array has too many elements."""


class ConfigurationError(ToolwrapError):
    """Invalid limits or override file."""


class ExecutionError(ToolwrapError):
    """Tool execution failed."""


class ExecutionTimeoutError(ExecutionError):
    """Tool execution timed out."""

    def __init__(self, message: str, *, timeout: float = 0, command: list[str] | None = None) -> None:
        super().__init__(message)
        self.timeout = timeout
        self.command = command or []
