"""Base exceptions for taktak."""


class TaktakException(Exception):
    """Base exception for all taktak errors."""
    pass


class ConfigurationError(TaktakException):
    """Raised when there's a configuration error."""
    pass


class ValidationError(TaktakException):
    """Raised when validation fails."""
    pass

