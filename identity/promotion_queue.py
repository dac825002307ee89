"""
Canonical Promotion Queue

The review queue is a read model: every call to ``PromotionQueue.list`` folds
the alias table and the decision ledger into the current set of candidates.
Nothing about queue membership is stored, so the queue always reflects the
latest committed aliases and decisions.

An alias is queued when all of the following hold:
a) its normalized text differs from the owning employer's normalized name
b) it is authoritative, OR its source system is one the employer has an
   external id for
c) no reject decision exists for the (employer, alias) pair
d) no defer decision is still in force for the pair

Deferrals stay in force for ``DEFER_TTL_DAYS``; after that the alias comes
back with ``previous_decision == "defer"``. A TTL of 0 keeps deferred aliases
out for good. Rejections never expire.

Priority: authoritative = 10, trusted external source = 5, anything else = 1.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from enum import Enum
from typing import Iterable, Optional, Sequence

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from config.logging import get_logger
from config.settings import settings
from identity.entity_resolution.matchers import normalize_employer_name, trigram_similarity
from identity.errors import NotFound
from identity.models import (
    TRUSTED_SOURCES,
    AliasDecision,
    DecisionAction,
    Employer,
    EmployerAlias,
    as_naive_utc,
    utcnow,
)

log = get_logger("promotion_queue")

PRIORITY_AUTHORITATIVE = 10
PRIORITY_TRUSTED_SOURCE = 5
PRIORITY_DEFAULT = 1


class CandidateState(Enum):
    """Where an (employer, alias) pair stands, derived from the ledger."""
    INELIGIBLE = "ineligible"  # fails (a) or (b); never shown
    ELIGIBLE = "eligible"
    APPROVED = "approved"
    REJECTED = "rejected"
    DEFERRED = "deferred"


VISIBLE_STATES = frozenset({CandidateState.ELIGIBLE, CandidateState.APPROVED})


@dataclass
class QueueConfig:
    """Configuration for the promotion queue."""
    # Trigram similarity a different employer's name must exceed to be a conflict
    conflict_threshold: float = 0.8

    # Maximum conflict warnings per entry
    conflict_limit: int = 5

    # How long a deferral keeps an alias out (None = forever)
    defer_ttl: Optional[timedelta] = timedelta(days=30)

    @classmethod
    def from_settings(cls) -> "QueueConfig":
        return cls(
            conflict_threshold=settings.CONFLICT_SIMILARITY_THRESHOLD,
            conflict_limit=settings.CONFLICT_WARNING_LIMIT,
            defer_ttl=timedelta(days=settings.DEFER_TTL_DAYS) if settings.DEFER_TTL_DAYS > 0 else None,
        )


@dataclass(frozen=True)
class DecisionSummary:
    """Everything the queue needs to know about a pair's decision history."""
    rejected: bool = False
    last_deferred_at: Optional[datetime] = None
    latest_action: Optional[DecisionAction] = None
    latest_at: Optional[datetime] = None


@dataclass(frozen=True)
class ConflictWarning:
    employer_id: str
    employer_name: str
    similarity: float


@dataclass
class QueueEntry:
    """One alias awaiting a promotion decision."""
    alias_id: str
    employer_id: str
    proposed_name: str
    alias_normalized: str
    source_system: str
    source_identifier: Optional[str]
    collected_at: Optional[datetime]
    collected_by: Optional[str]
    is_authoritative: bool
    alias_notes: Optional[str]
    current_canonical_name: str
    bci_company_id: Optional[str]
    incolink_id: Optional[str]
    priority: int
    alias_created_at: datetime
    total_aliases: int = 0
    conflict_warnings: list[ConflictWarning] = field(default_factory=list)
    previous_decision: Optional[str] = None
    deferred_at: Optional[datetime] = None

    @property
    def has_conflicts(self) -> bool:
        return bool(self.conflict_warnings)


def fold_decisions(decisions: Iterable[AliasDecision]) -> dict[tuple[str, str], DecisionSummary]:
    """Fold ledger rows into one summary per (employer_id, alias_id)."""
    summaries: dict[tuple[str, str], DecisionSummary] = {}
    for decision in decisions:
        key = (decision.employer_id, decision.alias_id)
        summary = summaries.get(key, DecisionSummary())

        if decision.action == DecisionAction.REJECT:
            summary = replace(summary, rejected=True)
        elif decision.action == DecisionAction.DEFER:
            if summary.last_deferred_at is None or decision.decided_at > summary.last_deferred_at:
                summary = replace(summary, last_deferred_at=decision.decided_at)

        if summary.latest_at is None or decision.decided_at >= summary.latest_at:
            summary = replace(summary, latest_action=decision.action, latest_at=decision.decided_at)

        summaries[key] = summary
    return summaries


def defer_in_force(summary: DecisionSummary, now: datetime, ttl: Optional[timedelta]) -> bool:
    if summary.last_deferred_at is None:
        return False
    if ttl is None:
        return True
    return summary.last_deferred_at > now - ttl


def meets_promotion_criteria(alias: EmployerAlias, employer: Employer) -> bool:
    """Parts (a) and (b) of the queue predicate."""
    if alias.alias_normalized == normalize_employer_name(employer.name):
        return False
    if alias.is_authoritative:
        return True
    return employer.external_id_for(alias.source_system) is not None


def candidate_state(
    alias: EmployerAlias,
    employer: Employer,
    summary: Optional[DecisionSummary],
    now: datetime,
    defer_ttl: Optional[timedelta],
) -> CandidateState:
    summary = summary or DecisionSummary()
    if summary.rejected:
        return CandidateState.REJECTED
    if defer_in_force(summary, now, defer_ttl):
        return CandidateState.DEFERRED
    if not meets_promotion_criteria(alias, employer):
        return CandidateState.INELIGIBLE
    if summary.latest_action == DecisionAction.APPROVE:
        return CandidateState.APPROVED
    return CandidateState.ELIGIBLE


def alias_priority(alias: EmployerAlias) -> int:
    if alias.is_authoritative:
        return PRIORITY_AUTHORITATIVE
    if alias.source_system in TRUSTED_SOURCES:
        return PRIORITY_TRUSTED_SOURCE
    return PRIORITY_DEFAULT


def find_conflicts(
    alias_text: str,
    owner_id: str,
    employers: Sequence[Employer],
    threshold: float = 0.8,
    limit: int = 5,
) -> list[ConflictWarning]:
    """
    Other employers whose name equals the alias (case-insensitive) or whose
    trigram similarity to it exceeds ``threshold``. Best matches first.
    """
    folded = alias_text.casefold()
    warnings = []
    for employer in employers:
        if employer.id == owner_id:
            continue
        if employer.name.casefold() == folded:
            similarity = 1.0
        else:
            similarity = trigram_similarity(alias_text, employer.name)
            if similarity <= threshold:
                continue
        warnings.append(ConflictWarning(employer.id, employer.name, similarity))

    warnings.sort(key=lambda w: (-w.similarity, w.employer_name))
    return warnings[:limit]


def build_queue(
    aliases: Iterable[EmployerAlias],
    employers: Sequence[Employer],
    summaries: dict[tuple[str, str], DecisionSummary],
    now: datetime,
    config: QueueConfig,
    alias_counts: Optional[dict[str, int]] = None,
) -> list[QueueEntry]:
    """
    Derive the ordered queue from alias rows, employers and folded decisions.

    Ordering: priority desc, then collected_at desc (missing last), then
    alias created_at desc.
    """
    employers_by_id = {e.id: e for e in employers}
    alias_counts = alias_counts or {}
    entries = []

    for alias in aliases:
        employer = employers_by_id.get(alias.employer_id)
        if employer is None:
            continue
        summary = summaries.get((alias.employer_id, alias.id))
        state = candidate_state(alias, employer, summary, now, config.defer_ttl)
        if state not in VISIBLE_STATES:
            continue

        deferred_at = summary.last_deferred_at if summary else None
        entries.append(
            QueueEntry(
                alias_id=alias.id,
                employer_id=employer.id,
                proposed_name=alias.alias,
                alias_normalized=alias.alias_normalized,
                source_system=alias.source_system.value,
                source_identifier=alias.source_identifier,
                collected_at=alias.collected_at,
                collected_by=alias.collected_by,
                is_authoritative=alias.is_authoritative,
                alias_notes=alias.notes,
                current_canonical_name=employer.name,
                bci_company_id=employer.bci_company_id,
                incolink_id=employer.incolink_id,
                priority=alias_priority(alias),
                alias_created_at=alias.created_at,
                total_aliases=alias_counts.get(employer.id, 0),
                conflict_warnings=find_conflicts(
                    alias.alias,
                    employer.id,
                    employers,
                    config.conflict_threshold,
                    config.conflict_limit,
                ),
                previous_decision=DecisionAction.DEFER.value if deferred_at else None,
                deferred_at=deferred_at,
            )
        )

    entries.sort(
        key=lambda e: (e.priority, e.collected_at or datetime.min, e.alias_created_at),
        reverse=True,
    )
    return entries


class PromotionQueue:
    """
    Prioritized, conflict-annotated list of aliases awaiting review.

    Usage:
        queue = PromotionQueue(db)
        for entry in queue.list():
            print(entry.priority, entry.proposed_name, entry.conflict_warnings)
    """

    def __init__(self, db: Session, config: Optional[QueueConfig] = None):
        self.db = db
        self.config = config or QueueConfig.from_settings()

    def list(self, now: Optional[datetime] = None) -> list[QueueEntry]:
        """Recompute the queue from the current aliases and decisions."""
        now = as_naive_utc(now) or utcnow()

        aliases = list(self.db.scalars(select(EmployerAlias)))
        employers = list(self.db.scalars(select(Employer)))
        summaries = fold_decisions(self.db.scalars(select(AliasDecision)))
        alias_counts = dict(
            self.db.execute(
                select(EmployerAlias.employer_id, func.count(EmployerAlias.id))
                .group_by(EmployerAlias.employer_id)
            ).all()
        )

        entries = build_queue(aliases, employers, summaries, now, self.config, alias_counts)
        log.debug(f"Promotion queue derived: {len(entries)} entries from {len(aliases)} aliases")
        conflicted = [e for e in entries if e.has_conflicts]
        if conflicted:
            log.warning(
                f"{len(conflicted)} queued aliases collide with other employers' names: "
                + ", ".join(f"'{e.proposed_name}'" for e in conflicted[:5])
            )
        return entries

    def state_of(
        self,
        employer_id: str,
        alias_id: str,
        now: Optional[datetime] = None,
    ) -> CandidateState:
        """
        Current state of one (employer, alias) pair.

        Raises:
            NotFound: unknown employer, or alias not owned by that employer
        """
        employer = self.db.get(Employer, employer_id)
        if employer is None:
            raise NotFound("Employer", employer_id)
        alias = self.db.get(EmployerAlias, alias_id)
        if alias is None or alias.employer_id != employer_id:
            raise NotFound("Alias", alias_id)

        summaries = fold_decisions(
            self.db.scalars(
                select(AliasDecision).where(
                    AliasDecision.employer_id == employer_id,
                    AliasDecision.alias_id == alias_id,
                )
            )
        )
        return candidate_state(
            alias,
            employer,
            summaries.get((employer_id, alias_id)),
            as_naive_utc(now) or utcnow(),
            self.config.defer_ttl,
        )
