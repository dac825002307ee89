"""
Merge Impact Analysis

Counts the records that reference each employer so a reviewer (or the merge
executor) can see the blast radius before consolidating identities.

All categories are counted by a single UNION ALL statement, so the counts
for one call come from one database snapshot. The merge executor still has to
re-check inside its own transaction: rows written between this read and the
merge are not covered.
"""

from dataclasses import dataclass, fields
from typing import Sequence

from sqlalchemy import func, literal, select, union_all
from sqlalchemy.orm import Session

from config.logging import get_logger
from identity.models import (
    CompanyEbaRecord,
    ContractorTradeCapability,
    EmployerAlias,
    Project,
    ProjectContractorTrade,
    ProjectEmployerRole,
    SiteContractorTrade,
    SiteVisit,
    WorkerPlacement,
)

log = get_logger("merge_impact")

# Report field -> referencing column
IMPACT_SOURCES = {
    "worker_placements_count": WorkerPlacement.employer_id,
    "project_roles_count": ProjectEmployerRole.employer_id,
    "project_trades_count": ProjectContractorTrade.employer_id,
    "site_trades_count": SiteContractorTrade.employer_id,
    "eba_records_count": CompanyEbaRecord.employer_id,
    "site_visits_count": SiteVisit.employer_id,
    "trade_capabilities_count": ContractorTradeCapability.employer_id,
    "aliases_count": EmployerAlias.employer_id,
    "builder_projects_count": Project.builder_id,
}


@dataclass
class MergeImpact:
    """Dependent-record counts for one employer id."""
    employer_id: str
    worker_placements_count: int = 0
    project_roles_count: int = 0
    project_trades_count: int = 0
    site_trades_count: int = 0
    eba_records_count: int = 0
    site_visits_count: int = 0
    trade_capabilities_count: int = 0
    aliases_count: int = 0
    builder_projects_count: int = 0

    @property
    def project_count(self) -> int:
        """Project-level involvement: roles, trades and builder projects."""
        return self.project_roles_count + self.project_trades_count + self.builder_projects_count

    @property
    def total(self) -> int:
        return sum(getattr(self, name) for name in IMPACT_SOURCES)

    def as_dict(self) -> dict:
        row = {f.name: getattr(self, f.name) for f in fields(self)}
        row["project_count"] = self.project_count
        row["total"] = self.total
        return row


class MergeImpactAnalyzer:
    """
    Read-only pre-merge safety check.

    Unknown employer ids are not an error here: they come back as all-zero
    rows, one per requested id, in request order.
    """

    def __init__(self, db: Session):
        self.db = db

    def analyze(self, employer_ids: Sequence[str]) -> list[MergeImpact]:
        ids = list(dict.fromkeys(employer_ids))
        if not ids:
            return []

        impacts = {employer_id: MergeImpact(employer_id=employer_id) for employer_id in ids}

        for category, employer_id, count in self.db.execute(self._counts_statement(ids)):
            setattr(impacts[employer_id], category, count)

        summary = ", ".join(f"{i}={impacts[i].total}" for i in ids)
        log.debug(f"Merge impact for {len(ids)} employers: {summary}")
        return [impacts[employer_id] for employer_id in ids]

    def _counts_statement(self, ids: list[str]):
        selects = [
            select(
                literal(category).label("category"),
                column.label("employer_id"),
                func.count().label("n"),
            )
            .where(column.in_(ids))
            .group_by(column)
            for category, column in IMPACT_SOURCES.items()
        ]
        return union_all(*selects)
