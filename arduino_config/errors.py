from enum import Enum


class ErrorKind(str, Enum):
    NOT_FOUND = "NotFound"
    PARSE_ERROR = "ParseError"
    VALIDATION_ERROR = "ValidationError"
    NO_PATH = "NoPath"
    IO_ERROR = "IOError"
    PORT_UNAVAILABLE = "PortUnavailable"
    PORT_ERROR = "PortError"


class ArduinoConfigError(Exception):
    """Base class for recoverable errors surfaced to the presentation layer."""

    kind: ErrorKind = ErrorKind.IO_ERROR

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ConfigNotFoundError(ArduinoConfigError):
    kind = ErrorKind.NOT_FOUND


class ConfigParseError(ArduinoConfigError):
    kind = ErrorKind.PARSE_ERROR


class ConfigValidationError(ArduinoConfigError):
    kind = ErrorKind.VALIDATION_ERROR


class NoPathError(ArduinoConfigError):
    kind = ErrorKind.NO_PATH


class ConfigIOError(ArduinoConfigError):
    kind = ErrorKind.IO_ERROR


class PortUnavailableError(ArduinoConfigError):
    kind = ErrorKind.PORT_UNAVAILABLE


class PortError(ArduinoConfigError):
    kind = ErrorKind.PORT_ERROR


class NoFreePinError(ArduinoConfigError):
    """Raised when a new input cannot be given a pin on the current board."""

    kind = ErrorKind.VALIDATION_ERROR
