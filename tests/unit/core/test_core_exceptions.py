"""
Tests for tierscan/shared/core/exceptions.py - Custom exception classes
"""
from tierscan.shared.core.exceptions import (
    ClassifierError,
    ConfigurationError,
    ExternalAPIError,
    JobStatusError,
    ScanLaunchError,
    TierscanException,
)


class TestTierscanException:
    def test_creation_minimal(self):
        exc = TierscanException(message="Simple error")

        assert exc.message == "Simple error"
        assert exc.code == "internal_error"
        assert exc.status_code == 500
        assert exc.details == {}

    def test_str_representation(self):
        exc = TierscanException(message="Test error", code="TEST_CODE", status_code=422)
        assert str(exc) == "[TEST_CODE] Test error (status=422)"


def test_subclass_codes_and_statuses():
    cases = [
        (ConfigurationError("x"), "config_error", 500),
        (ExternalAPIError("x"), "external_api_error", 502),
        (ScanLaunchError("x"), "scan_launch_failed", 502),
        (ClassifierError("x"), "classifier_failed", 502),
        (JobStatusError("x"), "job_status_failed", 502),
    ]
    for exc, code, status in cases:
        assert isinstance(exc, TierscanException)
        assert exc.code == code
        assert exc.status_code == status


def test_external_api_error_accepts_custom_code():
    exc = ExternalAPIError("slow", code="timeout_error", details={"operation": "x"})
    assert exc.code == "timeout_error"
    assert exc.details == {"operation": "x"}
