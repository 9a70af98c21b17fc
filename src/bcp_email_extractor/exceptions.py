"""Custom exceptions for the BCP email extractor."""


class BcpExtractorError(Exception):
    """Base exception for all BCP email extractor errors."""


class ExtractionError(BcpExtractorError):
    """Raised when a template parser cannot describe an email.

    The ``code`` attribute carries the machine-readable reason that the
    dispatcher records in its notes (e.g. ``amount_not_found``).
    """

    code = "extraction_failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.code)


class AmountNotFoundError(ExtractionError):
    """Exception raised when no amount label matches the email body."""

    code = "amount_not_found"


class DateTimeNotFoundError(ExtractionError):
    """Exception raised when neither the body nor the message yields a date."""

    code = "datetime_not_found"


class ConfigurationError(BcpExtractorError):
    """Exception raised for configuration related errors."""


class InputFormatError(BcpExtractorError):
    """Exception raised when command-line input cannot be decoded."""
