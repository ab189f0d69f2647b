"""Errors raised by the orbit determination pipeline."""


class OdError(Exception):
    """Base class. ``stage`` names the failing step, ``cause`` the underlying error."""

    def __init__(self, message, stage=None, cause=None):
        super().__init__(message)
        self.stage = stage
        self.cause = cause

    def __str__(self):
        text = super().__str__()
        if self.stage:
            text = f'[{self.stage}] {text}'
        if self.cause is not None:
            text = f'{text}: {self.cause}'
        return text


class InvalidInput(OdError, ValueError):
    pass


class PropagationFailure(OdError):
    pass


class EstimationFailure(OdError):
    pass


class FileFormatError(OdError, ValueError):
    """Malformed tracking file. Only the offending file is abandoned."""

    def __init__(self, message, filename=None, line_number=None, cause=None):
        super().__init__(message, stage='ingestion', cause=cause)
        self.filename = filename
        self.line_number = line_number

    def __str__(self):
        location = self.filename or '<unknown>'
        if self.line_number is not None:
            location = f'{location}:{self.line_number}'
        return f'{location}: {super().__str__()}'
