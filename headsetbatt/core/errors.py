"""Domain-specific errors for headsetbatt."""


class HeadsetBattError(Exception):
    """Base error for headsetbatt."""


class ConfigError(HeadsetBattError):
    """Raised when required settings are missing or malformed."""


class ProtocolValidationError(HeadsetBattError):
    """Raised when a protocol file does not conform to schema or semantics."""


class ProtocolLoadError(HeadsetBattError):
    """Raised when loading protocol sources fails."""


class UnrecognizedProtocolError(HeadsetBattError):
    """Raised in strict mode when no protocol row matches a device."""


class NoDeviceFoundError(HeadsetBattError):
    """Raised when no enumerated endpoint matches the configured product."""


class InvalidReadingError(HeadsetBattError):
    """Raised when a battery byte is outside the reportable range."""


class SinkError(HeadsetBattError):
    """Raised when the telemetry sink rejects or cannot receive a state."""


class TransportError(HeadsetBattError):
    """Base transport error."""


class OpenFailedError(TransportError):
    """Raised when a HID path cannot be opened."""


class WriteFailedError(TransportError):
    """Raised when writing the query report fails."""


class ReadFailedError(TransportError):
    """Raised when reading a report fails."""


class ReadTimeoutError(ReadFailedError):
    """Raised when no response arrives within the read timeout."""


class ShortResponseError(TransportError):
    """Raised when a response is too short to contain the battery byte."""


class ReadAbandonedError(ReadTimeoutError):
    """Raised when a read outlives its deadline and is left running.

    The abandoned read thread owns the device handle from then on and closes it
    when the read returns. Callers must not close it themselves.
    """

    def __init__(self, message: str, worker) -> None:
        super().__init__(message)
        self.worker = worker
