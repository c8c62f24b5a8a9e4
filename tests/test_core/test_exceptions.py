import pytest
from fastapi import HTTPException
from core.exceptions import (
    RoastAPIException,
    ValidationError,
    FetchError,
    GenerationError,
    PersistenceError,
    ShareNotFoundError,
    to_http_exception,
)


class TestCustomExceptions:
    """Test custom exception classes."""

    def test_base_exception_defaults(self):
        """Test RoastAPIException defaults."""
        error = RoastAPIException("Something failed")
        assert str(error) == "Something failed"
        assert error.error_code == "ROAST_API_ERROR"
        assert error.details == {}
        assert error.status_code == 500

    def test_validation_error(self):
        """Test ValidationError creation and properties."""
        error = ValidationError("url", "https://example.com", "请输入有效的小红书链接")
        assert str(error) == "请输入有效的小红书链接"
        assert error.status_code == 400
        assert error.error_code == "VALIDATION_ERROR"
        assert error.details["field"] == "url"

    def test_fetch_error(self):
        """Test FetchError creation and properties."""
        error = FetchError("https://www.xiaohongshu.com/user/1", "Failed to fetch content: 503", status=503)
        assert error.reason == "Failed to fetch content: 503"
        assert error.status_code == 502
        assert error.error_code == "FETCH_ERROR"
        assert error.details["status"] == 503

    @pytest.mark.parametrize(
        "kind,retryable",
        [
            (GenerationError.MISSING_CREDENTIALS, False),
            (GenerationError.TRANSPORT, True),
            (GenerationError.HTTP_STATUS, True),
            (GenerationError.EMPTY_RESPONSE, True),
            (GenerationError.UNPARSABLE, True),
            (GenerationError.MALFORMED_SHAPE, True),
        ],
    )
    def test_generation_error_retryable(self, kind, retryable):
        """Only a missing credential stops the retry loop."""
        error = GenerationError(kind, "reason")
        assert error.kind == kind
        assert error.retryable is retryable
        assert error.error_code == "GENERATION_ERROR"

    def test_persistence_error(self):
        """Test PersistenceError creation and properties."""
        error = PersistenceError("save_roast", "disk full")
        assert "save_roast" in str(error)
        assert error.status_code == 500
        assert error.details == {"operation": "save_roast", "reason": "disk full"}

    def test_share_not_found_error(self):
        """Test ShareNotFoundError creation and properties."""
        error = ShareNotFoundError("abcdefghij")
        assert error.status_code == 404
        assert error.error_code == "SHARE_NOT_FOUND"

    def test_exception_inheritance(self):
        """Test that all custom exceptions inherit from RoastAPIException."""
        for error in [
            ValidationError("f", "v", "r"),
            FetchError("u", "r"),
            GenerationError(GenerationError.TRANSPORT, "r"),
            PersistenceError("op", "r"),
            ShareNotFoundError("s"),
        ]:
            assert isinstance(error, RoastAPIException)


class TestToHttpException:
    """Test conversion of custom exceptions to HTTP exceptions."""

    def test_convert_share_not_found(self):
        http_exc = to_http_exception(ShareNotFoundError("abc"))

        assert isinstance(http_exc, HTTPException)
        assert http_exc.status_code == 404
        assert http_exc.detail["error_code"] == "SHARE_NOT_FOUND"
        assert http_exc.detail["details"] == {"share_id": "abc"}

    def test_convert_validation_error(self):
        http_exc = to_http_exception(ValidationError("cursor", "x", "Invalid feed cursor"))

        assert http_exc.status_code == 400
        assert http_exc.detail["message"] == "Invalid feed cursor"
