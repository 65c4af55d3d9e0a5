"""
Custom exception classes with error codes
"""

from typing import Any


class RecExplorerError(Exception):
    """Base exception for recexplorer errors"""

    def __init__(self, message: str, code: str, details: str = ""):
        super().__init__(message)
        self.message = message
        self.code = code
        self.details = details

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON output"""
        return {"code": self.code, "message": self.message, "details": self.details}


class TransportError(RecExplorerError):
    """Network failure or non-2xx response from an upstream call"""

    def __init__(
        self,
        message: str,
        details: str = "",
        *,
        status_code: int | None = None,
        body: str = "",
    ):
        super().__init__(message, "TRANSPORT_ERROR", details)
        self.status_code = status_code
        self.body = body

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["status"] = self.status_code
        return data


class MalformedResponseError(RecExplorerError):
    """Upstream body was not the JSON document we expected"""

    def __init__(self, message: str, details: str = "", *, raw: str = ""):
        super().__init__(message, "MALFORMED_RESPONSE", details)
        self.raw = raw


class PartialFetchError(RecExplorerError):
    """Some fan-out units failed while others succeeded"""

    def __init__(self, message: str, errors: list[dict[str, Any]], details: str = ""):
        super().__init__(message, "PARTIAL_FETCH", details)
        self.errors = errors

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        data["errors"] = self.errors
        return data


class ValidationError(RecExplorerError):
    """Record is missing an identifier required by an operation"""

    def __init__(self, message: str, details: str = ""):
        super().__init__(message, "VALIDATION_ERROR", details)


class MissingConfigurationError(RecExplorerError):
    """Required account-level configuration is absent"""

    def __init__(self, message: str, details: str = ""):
        super().__init__(message, "MISSING_CONFIGURATION", details)


class ConfigError(RecExplorerError):
    """Invalid configuration file or value"""

    def __init__(self, message: str, details: str = ""):
        super().__init__(message, "INVALID_CONFIG", details)


class AuthenticationError(RecExplorerError):
    """Authentication failed"""

    def __init__(self, message: str, details: str = ""):
        super().__init__(message, "AUTH_FAILED", details)


class RateLimitedError(TransportError):
    """API rate limit exceeded"""

    def __init__(self, message: str, details: str = ""):
        super().__init__(message, details, status_code=429)
        self.code = "RATE_LIMITED"
