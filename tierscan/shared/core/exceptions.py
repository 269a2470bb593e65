from typing import Optional, Dict, Any


class TierscanException(Exception):
    """Base exception for all tierscan errors."""
    def __init__(
        self,
        message: str,
        code: str = "internal_error",
        status_code: int = 500,
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details or {}

    def __str__(self) -> str:
        return f"[{self.code}] {self.message} (status={self.status_code})"


class ConfigurationError(TierscanException):
    """Raised when application configuration is invalid or missing."""
    def __init__(self, message: str, code: str = "config_error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, status_code=500, details=details)


class ExternalAPIError(TierscanException):
    """Raised when the enrichment backend returns an error or is unreachable."""
    def __init__(self, message: str, code: str = "external_api_error", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code=code, status_code=502, details=details)


class ScanLaunchError(TierscanException):
    """Raised when the batch launcher rejects or times out on a tier scan."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="scan_launch_failed", status_code=502, details=details)


class ClassifierError(TierscanException):
    """Raised when the priority classifier cannot produce tiers."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="classifier_failed", status_code=502, details=details)


class JobStatusError(TierscanException):
    """Raised when a job status lookup fails."""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="job_status_failed", status_code=502, details=details)
