"""
Employer Identity - Database Models

SQLAlchemy ORM models for employer identities, their aliases and the review
decision ledger, plus the dependent relations that reference an employer.
"""

import uuid
from datetime import date, datetime, timezone
from enum import Enum as PyEnum
from typing import Optional

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


class Base(DeclarativeBase):
    pass


# Enums
class ApprovalStatus(PyEnum):
    PENDING = "pending"
    ACTIVE = "active"


class SourceSystem(PyEnum):
    """Where an alias was collected from."""
    MANUAL = "manual"
    LEGACY_IMPORT = "legacy_import"
    BCI = "bci"                # BCI project/company feed
    INCOLINK = "incolink"      # Incolink employer register
    FWC = "fwc"                # Fair Work Commission agreement search
    EBA_IMPORT = "eba_import"  # Enterprise agreement trade import


TRUSTED_SOURCES = frozenset({
    SourceSystem.BCI,
    SourceSystem.INCOLINK,
    SourceSystem.FWC,
    SourceSystem.EBA_IMPORT,
})

# Source system -> Employer attribute holding that system's external id
EXTERNAL_ID_ATTRIBUTES = {
    SourceSystem.BCI: "bci_company_id",
    SourceSystem.INCOLINK: "incolink_id",
}


class DecisionAction(PyEnum):
    APPROVE = "approve"
    REJECT = "reject"
    DEFER = "defer"


def generate_uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp, the form every DateTime column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def as_naive_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to naive UTC; naive values are taken as UTC already."""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


class Employer(Base):
    """
    Canonical employer identity.
    Imports and the merge executor own writes to this table.
    """

    __tablename__ = "employers"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    name: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    employer_type: Mapped[Optional[str]] = mapped_column(String(50))
    approval_status: Mapped[ApprovalStatus] = mapped_column(
        Enum(ApprovalStatus), default=ApprovalStatus.PENDING, nullable=False, index=True
    )
    enterprise_agreement_status: Mapped[bool] = mapped_column(
        Boolean, default=False, nullable=False
    )

    # External-system identifiers, at most one per system
    bci_company_id: Mapped[Optional[str]] = mapped_column(String(64), unique=True)
    incolink_id: Mapped[Optional[str]] = mapped_column(String(64), unique=True)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    # Relationships
    aliases: Mapped[list["EmployerAlias"]] = relationship(back_populates="employer")

    __table_args__ = (
        Index("ix_employers_status_created", "approval_status", "created_at"),
    )

    @property
    def is_pending(self) -> bool:
        return self.approval_status == ApprovalStatus.PENDING

    def external_id_for(self, source: SourceSystem) -> Optional[str]:
        """Return this employer's id in an external system, if it has one."""
        attribute = EXTERNAL_ID_ATTRIBUTES.get(source)
        return getattr(self, attribute) if attribute else None

    def __repr__(self) -> str:
        return f"<Employer(id={self.id}, name={self.name}, status={self.approval_status.value})>"


class EmployerAlias(Base):
    """
    Candidate name for an employer with its provenance.
    (employer_id, alias_normalized) is the upsert key; rows are never deleted.
    """

    __tablename__ = "employer_aliases"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    employer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("employers.id"), nullable=False, index=True
    )
    alias: Mapped[str] = mapped_column(Text, nullable=False)
    alias_normalized: Mapped[str] = mapped_column(Text, nullable=False, index=True)

    # Provenance
    source_system: Mapped[SourceSystem] = mapped_column(
        Enum(SourceSystem), default=SourceSystem.MANUAL, nullable=False, index=True
    )
    source_identifier: Mapped[Optional[str]] = mapped_column(Text)
    collected_at: Mapped[Optional[datetime]] = mapped_column(DateTime)
    collected_by: Mapped[Optional[str]] = mapped_column(String(36))
    is_authoritative: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    notes: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, onupdate=utcnow, nullable=False
    )

    # Relationships
    employer: Mapped["Employer"] = relationship(back_populates="aliases")

    __table_args__ = (
        UniqueConstraint("employer_id", "alias_normalized", name="uq_employer_alias_normalized"),
        Index("ix_aliases_provenance", "source_system", "collected_at", "is_authoritative"),
    )

    def __repr__(self) -> str:
        return f"<EmployerAlias(id={self.id}, alias={self.alias}, source={self.source_system.value})>"


class AliasDecision(Base):
    """
    Append-only ledger of reviewer decisions on (employer, alias) pairs.
    """

    __tablename__ = "alias_decisions"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    employer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("employers.id"), nullable=False, index=True
    )
    alias_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("employer_aliases.id"), nullable=False, index=True
    )
    action: Mapped[DecisionAction] = mapped_column(
        Enum(DecisionAction), nullable=False, index=True
    )
    decided_by: Mapped[str] = mapped_column(String(36), nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(Text)
    decided_at: Mapped[datetime] = mapped_column(
        DateTime, default=utcnow, nullable=False
    )

    __table_args__ = (
        Index("ix_decisions_pair", "employer_id", "alias_id", "decided_at"),
    )

    def __repr__(self) -> str:
        return f"<AliasDecision(alias={self.alias_id}, action={self.action.value}, by={self.decided_by})>"


# Dependent relations. Only the columns the identity core reads are modelled.


class Project(Base):
    __tablename__ = "projects"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)
    builder_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("employers.id"), index=True
    )


class JobSite(Base):
    __tablename__ = "job_sites"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("projects.id"), nullable=False, index=True
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)


class WorkerPlacement(Base):
    __tablename__ = "worker_placements"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    worker_id: Mapped[str] = mapped_column(String(36), nullable=False)
    employer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("employers.id"), nullable=False, index=True
    )
    job_site_id: Mapped[Optional[str]] = mapped_column(
        String(36), ForeignKey("job_sites.id")
    )
    start_date: Mapped[Optional[date]] = mapped_column(Date)


class ProjectEmployerRole(Base):
    __tablename__ = "project_employer_roles"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("projects.id"), nullable=False, index=True
    )
    employer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("employers.id"), nullable=False, index=True
    )
    role: Mapped[str] = mapped_column(String(50), nullable=False)


class ProjectContractorTrade(Base):
    __tablename__ = "project_contractor_trades"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    project_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("projects.id"), nullable=False, index=True
    )
    employer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("employers.id"), nullable=False, index=True
    )
    trade_type: Mapped[str] = mapped_column(String(50), nullable=False)


class SiteContractorTrade(Base):
    __tablename__ = "site_contractor_trades"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    job_site_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("job_sites.id"), nullable=False, index=True
    )
    employer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("employers.id"), nullable=False, index=True
    )
    trade_type: Mapped[str] = mapped_column(String(50), nullable=False)


class CompanyEbaRecord(Base):
    """Enterprise bargaining agreement record held for an employer."""

    __tablename__ = "company_eba_records"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    employer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("employers.id"), nullable=False, index=True
    )
    agreement_title: Mapped[Optional[str]] = mapped_column(Text)
    certified_date: Mapped[Optional[date]] = mapped_column(Date)


class SiteVisit(Base):
    __tablename__ = "site_visits"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    job_site_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("job_sites.id"), nullable=False, index=True
    )
    employer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("employers.id"), nullable=False, index=True
    )
    visit_date: Mapped[Optional[date]] = mapped_column(Date)


class ContractorTradeCapability(Base):
    __tablename__ = "contractor_trade_capabilities"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=generate_uuid
    )
    employer_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("employers.id"), nullable=False, index=True
    )
    trade_type: Mapped[str] = mapped_column(String(50), nullable=False)
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    __table_args__ = (
        UniqueConstraint("employer_id", "trade_type", name="uq_capability_employer_trade"),
    )
