"""
Tests for reviewer capability checks and error payloads.
"""

import pytest

from identity.access import Reviewer, require_review_capability
from identity.errors import (
    IdentityError,
    InvalidInput,
    NotFound,
    PermissionDenied,
    error_response,
)


class TestReviewCapability:

    @pytest.mark.parametrize("role", ["admin", "lead_organiser"])
    def test_default_roles_allowed(self, role):
        reviewer = Reviewer(id="u1", role=role)

        assert require_review_capability(reviewer) is reviewer

    @pytest.mark.parametrize("reviewer", [None, Reviewer(id="u1"), Reviewer(id="u1", role="delegate")])
    def test_denied(self, reviewer):
        with pytest.raises(PermissionDenied) as exc_info:
            require_review_capability(reviewer)

        assert exc_info.value.status == 403
        assert "admin" in exc_info.value.message

    def test_explicit_roles(self):
        steward = Reviewer(id="u1", role="data_steward")

        assert steward.can_review({"data_steward"})
        assert not steward.can_review()
        with pytest.raises(PermissionDenied):
            require_review_capability(Reviewer(id="u2", role="admin"), review_roles=["data_steward"])


class TestErrorResponse:

    @pytest.mark.parametrize(
        "error, status",
        [
            (InvalidInput("Unknown source system: 'linkedin'"), 400),
            (PermissionDenied("one of roles ['admin'] required"), 403),
            (NotFound("Employer", "e-1"), 404),
            (IdentityError("database unavailable"), 500),
        ],
    )
    def test_status_mapping(self, error, status):
        assert error_response(error) == {"error": error.message, "status": status}

    def test_not_found_message(self):
        error = NotFound("Alias", "a-9")

        assert error.message == "Alias not found: a-9"
        assert error.kind == "Alias"
        assert error.identifier == "a-9"
