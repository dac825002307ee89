"""
Duplicate Pending Employer Detection

Groups pending employers whose normalized names are similar, so a reviewer
can merge them before they are approved.

Clustering is greedy single-link against an anchor:
1. Pending employers are walked newest first.
2. The first unassigned employer becomes the anchor.
3. Every other unassigned employer scoring >= threshold against the anchor
   joins its cluster and is marked assigned.
4. Only clusters with more than one member are reported.

Members are compared to the anchor only, never to each other. Names that are
similar in a chain (A~B, B~C) but not to the anchor (A!~C) can therefore land
in different clusters or none. The walk is O(n^2) in the number of pending
employers.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy import select
from sqlalchemy.orm import Session

from config.logging import get_logger
from config.settings import settings
from identity.access import Reviewer, require_review_capability
from identity.entity_resolution.matchers import name_similarity, normalize_employer_name
from identity.models import ApprovalStatus, Employer

log = get_logger("duplicates")


@dataclass
class DetectorConfig:
    """Configuration for duplicate detection."""
    # Minimum 0-100 similarity to join an anchor's cluster
    threshold: float = 70.0

    # Roles allowed to run a scan (None = settings.REVIEW_ROLES)
    review_roles: Optional[set[str]] = None


@dataclass(frozen=True)
class PendingEmployerRecord:
    """Snapshot of a pending employer, as read for one scan."""
    id: str
    name: str
    employer_type: Optional[str] = None
    created_at: Optional[datetime] = None

    @property
    def normalized_name(self) -> str:
        return normalize_employer_name(self.name)


@dataclass(frozen=True)
class ClusterMember:
    id: str
    name: str
    similarity: float
    employer_type: Optional[str] = None
    created_at: Optional[datetime] = None


@dataclass
class DuplicateCluster:
    """Pending employers that look like the anchor employer."""
    canonical_id: str
    canonical_name: str
    members: list[ClusterMember] = field(default_factory=list)

    @property
    def member_count(self) -> int:
        return len(self.members)

    @property
    def min_similarity(self) -> float:
        return min(m.similarity for m in self.members)

    @property
    def max_similarity(self) -> float:
        return max(m.similarity for m in self.members)

    @property
    def member_ids(self) -> list[str]:
        return [m.id for m in self.members]

    def __repr__(self) -> str:
        return f"<DuplicateCluster({self.canonical_name}, members={self.member_count})>"


@dataclass
class DuplicateScan:
    """Result of one scan over the pending set."""
    clusters: list[DuplicateCluster]
    total_pending: int

    @property
    def total_groups(self) -> int:
        return len(self.clusters)


def cluster_pending(
    records: Sequence[PendingEmployerRecord],
    threshold: float = 70.0,
) -> list[DuplicateCluster]:
    """
    Cluster records (already in walk order) against successive anchors.

    Pure: the assigned flags live in a local list indexed like ``records``.
    """
    normalized = [r.normalized_name for r in records]
    assigned = [False] * len(records)
    clusters: list[DuplicateCluster] = []

    for anchor_idx, anchor in enumerate(records):
        if assigned[anchor_idx]:
            continue
        assigned[anchor_idx] = True

        cluster = DuplicateCluster(
            canonical_id=anchor.id,
            canonical_name=anchor.name,
            members=[_member(anchor, 100.0)],
        )

        for idx, candidate in enumerate(records):
            if assigned[idx]:
                continue
            similarity = name_similarity(normalized[anchor_idx], normalized[idx])
            if similarity >= threshold:
                cluster.members.append(_member(candidate, similarity))
                assigned[idx] = True

        if cluster.member_count > 1:
            clusters.append(cluster)

    return clusters


def _member(record: PendingEmployerRecord, similarity: float) -> ClusterMember:
    return ClusterMember(
        id=record.id,
        name=record.name,
        similarity=similarity,
        employer_type=record.employer_type,
        created_at=record.created_at,
    )


class DuplicateDetector:
    """
    Finds likely-duplicate pending employers for merge review.

    Usage:
        detector = DuplicateDetector(db)
        scan = detector.scan(Reviewer(id=user_id, role="admin"))
        for cluster in scan.clusters:
            print(cluster.canonical_name, cluster.member_ids)
    """

    def __init__(self, db: Session, config: Optional[DetectorConfig] = None):
        self.db = db
        self.config = config or DetectorConfig(
            threshold=settings.DUPLICATE_SIMILARITY_THRESHOLD
        )

    def scan(self, reviewer: Optional[Reviewer]) -> DuplicateScan:
        """
        Cluster all pending employers.

        Raises:
            PermissionDenied: reviewer does not hold a review role
        """
        require_review_capability(reviewer, self.config.review_roles)

        records = self._pending_records()
        log.debug(f"Scanning {len(records)} pending employers for duplicates")

        clusters = cluster_pending(records, self.config.threshold)
        log.info(
            f"Duplicate scan by {reviewer.id}: {len(clusters)} clusters "
            f"across {len(records)} pending employers"
        )
        return DuplicateScan(clusters=clusters, total_pending=len(records))

    def _pending_records(self) -> list[PendingEmployerRecord]:
        """Pending employers, newest first."""
        rows = self.db.execute(
            select(
                Employer.id,
                Employer.name,
                Employer.employer_type,
                Employer.created_at,
            )
            .where(Employer.approval_status == ApprovalStatus.PENDING)
            .order_by(Employer.created_at.desc(), Employer.id.desc())
        ).all()
        return [
            PendingEmployerRecord(
                id=row.id,
                name=row.name,
                employer_type=row.employer_type,
                created_at=row.created_at,
            )
            for row in rows
        ]
