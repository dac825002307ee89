"""
Reviewer identity and capability checks.
"""

from dataclasses import dataclass
from typing import Iterable, Optional

from config.logging import get_logger
from config.settings import settings
from identity.errors import PermissionDenied

log = get_logger("access")


@dataclass(frozen=True)
class Reviewer:
    """The person asking for a privileged operation."""
    id: str
    role: Optional[str] = None

    def can_review(self, review_roles: Optional[Iterable[str]] = None) -> bool:
        roles = set(review_roles) if review_roles is not None else settings.review_roles
        return self.role in roles


def require_review_capability(
    reviewer: Optional[Reviewer],
    review_roles: Optional[Iterable[str]] = None,
) -> Reviewer:
    """Raise PermissionDenied unless the reviewer holds a review role."""
    roles = set(review_roles) if review_roles is not None else settings.review_roles
    if reviewer is None or not reviewer.can_review(roles):
        who = reviewer.id if reviewer else "anonymous"
        role = reviewer.role if reviewer else None
        log.warning(f"Review capability denied for {who} (role={role})")
        raise PermissionDenied(f"one of roles {sorted(roles)} required")
    return reviewer
