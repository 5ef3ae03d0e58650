from typing import Any, Optional


class MlIntegrityException(Exception):
    """Base class for all mlintegrity exceptions"""

    _msg_fmt = "An unknown exception occurred."

    def __init__(self, message: Optional[str] = None, **kwargs: Any):
        if not message:
            message = self._msg_fmt % kwargs

        super().__init__(message)


class UnsupportedAlgorithm(MlIntegrityException, ValueError):
    _msg_fmt = "Unsupported digest algorithm %(algorithm)s."


class MeasurementLogError(MlIntegrityException):
    _msg_fmt = "The measurement log could not be processed."


class MeasurementLogInvalid(MeasurementLogError):
    _msg_fmt = "Error parsing measurement xml: %(reason)s"


class MeasurementValueInvalid(MeasurementLogError):
    _msg_fmt = "Invalid measurement in xml: '%(value)s'"

    def __init__(self, value: str, message: Optional[str] = None):
        self.value = value
        super().__init__(message, value=value)


class ReplayError(MlIntegrityException):
    _msg_fmt = "There was an error during the 'replay' of the xml event log."


class PcrEventLogNotFound(MlIntegrityException, KeyError):
    _msg_fmt = "No %(algorithm)s event log for PCR %(pcr)s in the host manifest."

    def __str__(self) -> str:
        # KeyError would otherwise quote the message
        return str(self.args[0])
