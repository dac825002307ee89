"""
Alias analytics: ingestion and review counts for the identity dashboard.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Iterable, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from identity.models import (
    AliasDecision,
    DecisionAction,
    EmployerAlias,
    SourceSystem,
    as_naive_utc,
    utcnow,
)
from identity.promotion_queue import PRIORITY_AUTHORITATIVE, PRIORITY_TRUSTED_SOURCE, QueueEntry


@dataclass
class AliasMetricsSummary:
    total_aliases: int = 0
    employers_with_aliases: int = 0
    authoritative_aliases: int = 0
    aliases_by_source: dict[str, int] = field(default_factory=dict)
    aliases_last_7_days: int = 0
    aliases_last_30_days: int = 0
    total_promotions: int = 0
    total_rejections: int = 0
    total_deferrals: int = 0
    decisions_last_7_days: int = 0
    decisions_last_30_days: int = 0
    computed_at: Optional[datetime] = None


@dataclass
class ReviewMetrics:
    pending_reviews: int = 0
    high_priority_reviews: int = 0
    medium_priority_reviews: int = 0
    previously_deferred: int = 0
    with_conflicts: int = 0


def alias_metrics_summary(db: Session, now: Optional[datetime] = None) -> AliasMetricsSummary:
    """Counts over the alias table and the decision ledger."""
    now = as_naive_utc(now) or utcnow()
    week_ago = now - timedelta(days=7)
    month_ago = now - timedelta(days=30)

    summary = AliasMetricsSummary(computed_at=now)
    summary.total_aliases = db.scalar(select(func.count(EmployerAlias.id))) or 0
    summary.employers_with_aliases = (
        db.scalar(select(func.count(func.distinct(EmployerAlias.employer_id)))) or 0
    )
    summary.authoritative_aliases = (
        db.scalar(select(func.count(EmployerAlias.id)).where(EmployerAlias.is_authoritative.is_(True)))
        or 0
    )

    by_source = dict(
        db.execute(
            select(EmployerAlias.source_system, func.count(EmployerAlias.id))
            .group_by(EmployerAlias.source_system)
        ).all()
    )
    summary.aliases_by_source = {source.value: by_source.get(source, 0) for source in SourceSystem}

    summary.aliases_last_7_days = (
        db.scalar(select(func.count(EmployerAlias.id)).where(EmployerAlias.created_at >= week_ago)) or 0
    )
    summary.aliases_last_30_days = (
        db.scalar(select(func.count(EmployerAlias.id)).where(EmployerAlias.created_at >= month_ago)) or 0
    )

    by_action = dict(
        db.execute(
            select(AliasDecision.action, func.count(AliasDecision.id)).group_by(AliasDecision.action)
        ).all()
    )
    summary.total_promotions = by_action.get(DecisionAction.APPROVE, 0)
    summary.total_rejections = by_action.get(DecisionAction.REJECT, 0)
    summary.total_deferrals = by_action.get(DecisionAction.DEFER, 0)

    summary.decisions_last_7_days = (
        db.scalar(select(func.count(AliasDecision.id)).where(AliasDecision.decided_at >= week_ago)) or 0
    )
    summary.decisions_last_30_days = (
        db.scalar(select(func.count(AliasDecision.id)).where(AliasDecision.decided_at >= month_ago)) or 0
    )
    return summary


def review_metrics(entries: Iterable[QueueEntry]) -> ReviewMetrics:
    """Summarize a derived promotion queue."""
    metrics = ReviewMetrics()
    for entry in entries:
        metrics.pending_reviews += 1
        if entry.priority >= PRIORITY_AUTHORITATIVE:
            metrics.high_priority_reviews += 1
        elif entry.priority >= PRIORITY_TRUSTED_SOURCE:
            metrics.medium_priority_reviews += 1
        if entry.previous_decision == DecisionAction.DEFER.value:
            metrics.previously_deferred += 1
        if entry.has_conflicts:
            metrics.with_conflicts += 1
    return metrics
