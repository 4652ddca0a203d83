"""Unit tests for the discussr exception hierarchy.

Tests verify:
- issubclass relationships match the documented tree
- ValidationError carries per-field errors and is a ValueError
"""

import pytest

from discussr.core.exceptions import (
    ConfigurationError,
    ConnectivityError,
    DiscussrError,
    PermissionDeniedError,
    ProtocolError,
    PublishingError,
    RelayTimeoutError,
    SigningError,
    ValidationError,
)


ALL_CONCRETE = (
    ConfigurationError,
    RelayTimeoutError,
    ProtocolError,
    ValidationError,
    PermissionDeniedError,
    SigningError,
    PublishingError,
)


# =============================================================================
# Hierarchy Tests
# =============================================================================


class TestExceptionHierarchy:
    """Verify issubclass relationships match the documented tree."""

    @pytest.mark.parametrize("exc_cls", ALL_CONCRETE)
    def test_all_concrete_inherit_from_discussr_error(self, exc_cls: type) -> None:
        assert issubclass(exc_cls, DiscussrError)

    def test_relay_timeout_error_is_connectivity_error(self) -> None:
        assert issubclass(RelayTimeoutError, ConnectivityError)

    def test_validation_error_is_value_error(self) -> None:
        assert issubclass(ValidationError, ValueError)

    def test_signing_not_publishing(self) -> None:
        assert not issubclass(SigningError, PublishingError)
        assert not issubclass(PublishingError, SigningError)


# =============================================================================
# ValidationError
# =============================================================================


class TestValidationError:
    """ValidationError.errors mapping."""

    def test_errors_default_empty(self) -> None:
        assert ValidationError("bad").errors == {}

    def test_errors_copied(self) -> None:
        source = {"title": "title is required"}
        error = ValidationError("bad", source)
        source["description"] = "later"
        assert error.errors == {"title": "title is required"}

    def test_message(self) -> None:
        with pytest.raises(DiscussrError, match="content is required"):
            raise ValidationError("content is required")
