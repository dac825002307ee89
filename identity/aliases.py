"""
Alias Store

Provenance-tagged alias records keyed by (employer_id, alias_normalized).
Recording an alias that already exists for the employer refreshes its
provenance instead of adding a row, so ingestion jobs can replay safely.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence, Union

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from config.logging import get_logger
from identity.entity_resolution.matchers import normalize_employer_name
from identity.errors import InvalidInput, NotFound
from identity.models import Employer, EmployerAlias, SourceSystem, as_naive_utc, utcnow

log = get_logger("aliases")


@dataclass
class AliasRequest:
    """One alias to record, as produced by an ingestion source."""
    employer_id: str
    raw_text: str
    source: Union[SourceSystem, str] = SourceSystem.MANUAL
    source_identifier: Optional[str] = None
    collected_at: Optional[datetime] = None
    collected_by: Optional[str] = None
    is_authoritative: bool = False
    notes: Optional[str] = None


def coerce_source(source: Union[SourceSystem, str]) -> SourceSystem:
    """Accept a SourceSystem or its string value."""
    if isinstance(source, SourceSystem):
        return source
    try:
        return SourceSystem(source)
    except ValueError:
        raise InvalidInput(f"Unknown source system: {source!r}") from None


class AliasStore:
    """
    Durable alias records with provenance.

    Usage:
        store = AliasStore(db)
        alias = store.record_alias(
            employer_id,
            "Acme Constructions Pty Ltd",
            source=SourceSystem.BCI,
            source_identifier="BCI-10422",
            is_authoritative=True,
        )
    """

    def __init__(self, db: Session):
        self.db = db

    def record_alias(
        self,
        employer_id: str,
        raw_text: str,
        source: Union[SourceSystem, str] = SourceSystem.MANUAL,
        source_identifier: Optional[str] = None,
        collected_at: Optional[datetime] = None,
        collected_by: Optional[str] = None,
        is_authoritative: bool = False,
        notes: Optional[str] = None,
    ) -> EmployerAlias:
        """
        Insert or refresh an alias for an employer.

        On an existing (employer, normalized text) key the provenance fields
        are overwritten with this call's values; id, key and created_at stay.
        An aware ``collected_at`` is stored as naive UTC.

        Raises:
            NotFound: employer_id does not exist
            InvalidInput: empty alias text or unknown source system
        """
        request = AliasRequest(
            employer_id=employer_id,
            raw_text=raw_text,
            source=source,
            source_identifier=source_identifier,
            collected_at=collected_at,
            collected_by=collected_by,
            is_authoritative=is_authoritative,
            notes=notes,
        )
        self._require_employers({employer_id})
        try:
            alias = self._commit_upsert(request)
        except IntegrityError:
            # A concurrent writer inserted the same key first; take the update path
            log.debug(f"Alias key race for employer {employer_id}, retrying as update")
            alias = self._commit_upsert(request)
        self.db.refresh(alias)
        return alias

    def record_aliases(self, requests: Sequence[AliasRequest]) -> list[EmployerAlias]:
        """
        Record many aliases in one transaction.

        Requests sharing a key inside the batch collapse to the last one.
        Any unknown employer fails the whole batch before anything is written.
        """
        if not requests:
            return []

        self._require_employers({r.employer_id for r in requests})

        by_key: dict[tuple[str, str], AliasRequest] = {}
        for request in requests:
            _, normalized, _ = self._prepare(request)
            by_key[(request.employer_id, normalized)] = request

        try:
            aliases = [self._upsert(request) for request in by_key.values()]
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

        log.info(f"Recorded {len(aliases)} aliases ({len(requests)} requested)")
        return aliases

    def aliases_for(self, employer_id: str) -> list[EmployerAlias]:
        """Aliases of an employer, newest first."""
        return list(
            self.db.scalars(
                select(EmployerAlias)
                .where(EmployerAlias.employer_id == employer_id)
                .order_by(EmployerAlias.created_at.desc())
            )
        )

    def _prepare(self, request: AliasRequest) -> tuple[str, str, SourceSystem]:
        """Validate a request; returns (trimmed text, normalized text, source)."""
        raw_text = (request.raw_text or "").strip()
        normalized = normalize_employer_name(raw_text)
        if not normalized:
            raise InvalidInput(f"Alias text has no usable characters: {request.raw_text!r}")
        return raw_text, normalized, coerce_source(request.source)

    def _commit_upsert(self, request: AliasRequest) -> EmployerAlias:
        """Upsert and commit one request; any storage error rolls the session back."""
        try:
            alias = self._upsert(request)
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise
        return alias

    def _upsert(self, request: AliasRequest) -> EmployerAlias:
        """Stage an insert or provenance update for one request (no commit)."""
        raw_text, normalized, source = self._prepare(request)

        alias = self.db.scalars(
            select(EmployerAlias).where(
                EmployerAlias.employer_id == request.employer_id,
                EmployerAlias.alias_normalized == normalized,
            )
        ).first()

        provenance = {
            "source_system": source,
            "source_identifier": request.source_identifier or raw_text,
            "collected_at": as_naive_utc(request.collected_at) or utcnow(),
            "collected_by": request.collected_by,
            "is_authoritative": request.is_authoritative,
            "notes": request.notes,
        }

        if alias is None:
            alias = EmployerAlias(
                employer_id=request.employer_id,
                alias=raw_text,
                alias_normalized=normalized,
                **provenance,
            )
            self.db.add(alias)
            self.db.flush()
            log.info(f"New alias '{raw_text}' for employer {request.employer_id} ({source.value})")
        else:
            for attribute, value in provenance.items():
                setattr(alias, attribute, value)
            self.db.flush()
            log.info(f"Refreshed provenance of alias '{alias.alias}' ({source.value})")

        return alias

    def _require_employers(self, employer_ids: set[str]):
        found = set(self.db.scalars(select(Employer.id).where(Employer.id.in_(employer_ids))))
        missing = employer_ids - found
        if missing:
            raise NotFound("Employer", ", ".join(sorted(missing)))
