"""Tests for shared/exceptions.py."""

from shared.exceptions import (
    CreatorError,
    NotFoundError,
    ValidationError,
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    ExternalServiceError,
    ConfigurationError,
)


class TestCreatorError:
    def test_message(self):
        error = CreatorError("Test error")
        assert error.message == "Test error"
        assert str(error) == "Test error"

    def test_default_code_is_class_name(self):
        assert CreatorError("Test error").code == "CreatorError"
        assert NotFoundError("missing").code == "NotFoundError"

    def test_custom_code_and_details(self):
        error = CreatorError("Test error", code="CUSTOM_ERROR", details={"key": "value"})
        assert error.code == "CUSTOM_ERROR"
        assert error.details == {"key": "value"}

    def test_default_details(self):
        assert CreatorError("Test error").details == {}

    def test_to_dict(self):
        error = CreatorError("Test error", code="TEST_ERROR", details={"key": "value"})
        assert error.to_dict() == {
            "error": "TEST_ERROR",
            "message": "Test error",
            "details": {"key": "value"},
        }


class TestSubclasses:
    def test_hierarchy(self):
        for cls in (NotFoundError, ValidationError, AuthenticationError, AuthorizationError, ConflictError):
            assert issubclass(cls, CreatorError)

    def test_external_service_error_records_service(self):
        error = ExternalServiceError("Stripe is down", service="stripe")
        assert error.service == "stripe"
        assert error.details["service"] == "stripe"

    def test_configuration_error(self):
        error = ConfigurationError("Missing key", setting="stripe_secret_key")
        assert isinstance(error, CreatorError)
        assert error.code == "CONFIGURATION_ERROR"
        assert error.details["setting"] == "stripe_secret_key"
