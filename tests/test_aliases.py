"""
Tests for the alias store.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError, OperationalError

from identity.aliases import AliasRequest, AliasStore
from identity.errors import InvalidInput, NotFound
from identity.models import EmployerAlias, SourceSystem


def alias_count(db, **filters):
    query = select(func.count(EmployerAlias.id))
    for column, value in filters.items():
        query = query.where(getattr(EmployerAlias, column) == value)
    return db.scalar(query)


class TestRecordAlias:

    def test_creates_normalized_alias(self, db, make_employer):
        employer = make_employer("Acme Constructions Pty Ltd")

        alias = AliasStore(db).record_alias(employer.id, "  ACME Constructions P/L  ")

        assert alias.id is not None
        assert alias.alias == "ACME Constructions P/L"
        assert alias.alias_normalized == "acme constructions p l"
        assert alias.source_system == SourceSystem.MANUAL
        assert alias.source_identifier == "ACME Constructions P/L"
        assert alias.collected_at is not None
        assert alias.is_authoritative is False

    def test_upsert_by_key_updates_provenance(self, db, make_employer, base_time):
        employer = make_employer("Acme Constructions Pty Ltd")
        store = AliasStore(db)

        first = store.record_alias(
            employer.id,
            "Acme Civil",
            source=SourceSystem.MANUAL,
            collected_at=base_time,
            collected_by="user-1",
            notes="typed in",
        )
        second = store.record_alias(
            employer.id,
            "ACME CIVIL.",
            source=SourceSystem.BCI,
            source_identifier="BCI-991",
            collected_at=base_time + timedelta(days=2),
            collected_by="import-bot",
            is_authoritative=True,
            notes="from BCI feed",
        )

        assert second.id == first.id
        assert alias_count(db, employer_id=employer.id) == 1
        assert second.alias == "Acme Civil"
        assert second.alias_normalized == "acme civil"
        assert second.source_system == SourceSystem.BCI
        assert second.source_identifier == "BCI-991"
        assert second.collected_at == base_time + timedelta(days=2)
        assert second.collected_by == "import-bot"
        assert second.is_authoritative is True
        assert second.notes == "from BCI feed"

    def test_identical_calls_are_idempotent(self, db, make_employer, base_time):
        employer = make_employer("Acme Constructions Pty Ltd")
        store = AliasStore(db)

        for _ in range(3):
            store.record_alias(employer.id, "Acme Civil", collected_at=base_time)

        assert alias_count(db) == 1

    def test_same_text_for_different_employers(self, db, make_employer):
        first = make_employer("Acme Constructions Pty Ltd")
        second = make_employer("Acme Civil Group")
        store = AliasStore(db)

        store.record_alias(first.id, "Acme Civil")
        store.record_alias(second.id, "Acme Civil")

        assert alias_count(db, alias_normalized="acme civil") == 2

    def test_string_source_accepted(self, db, make_employer):
        employer = make_employer("Acme Constructions Pty Ltd")

        alias = AliasStore(db).record_alias(employer.id, "Acme Civil", source="incolink")

        assert alias.source_system == SourceSystem.INCOLINK

    def test_unknown_employer(self, db):
        with pytest.raises(NotFound):
            AliasStore(db).record_alias("no-such-employer", "Acme Civil")
        assert alias_count(db) == 0

    def test_unknown_source(self, db, make_employer):
        employer = make_employer("Acme Constructions Pty Ltd")

        with pytest.raises(InvalidInput):
            AliasStore(db).record_alias(employer.id, "Acme Civil", source="linkedin")

    @pytest.mark.parametrize("text", ["", "   ", "--", None])
    def test_empty_alias_text(self, db, make_employer, text):
        employer = make_employer("Acme Constructions Pty Ltd")

        with pytest.raises(InvalidInput):
            AliasStore(db).record_alias(employer.id, text)


class TestRecordAliases:

    def test_bulk_collapses_duplicate_keys(self, db, make_employer):
        employer = make_employer("Acme Constructions Pty Ltd")

        aliases = AliasStore(db).record_aliases([
            AliasRequest(employer.id, "Acme Civil", notes="first"),
            AliasRequest(employer.id, "ACME civil", notes="second"),
            AliasRequest(employer.id, "Acme Group"),
        ])

        assert len(aliases) == 2
        assert alias_count(db) == 2
        civil = db.scalars(select(EmployerAlias).where(EmployerAlias.alias_normalized == "acme civil")).one()
        assert civil.notes == "second"

    def test_bulk_unknown_employer_writes_nothing(self, db, make_employer):
        employer = make_employer("Acme Constructions Pty Ltd")

        with pytest.raises(NotFound):
            AliasStore(db).record_aliases([
                AliasRequest(employer.id, "Acme Civil"),
                AliasRequest("missing", "Acme Group"),
            ])
        assert alias_count(db) == 0

    def test_bulk_invalid_request_writes_nothing(self, db, make_employer):
        employer = make_employer("Acme Constructions Pty Ltd")

        with pytest.raises(InvalidInput):
            AliasStore(db).record_aliases([
                AliasRequest(employer.id, "Acme Civil"),
                AliasRequest(employer.id, "Acme Group", source="unknown"),
            ])
        assert alias_count(db) == 0

    def test_bulk_empty(self, db):
        assert AliasStore(db).record_aliases([]) == []


def test_aliases_for(db, make_employer):
    employer = make_employer("Acme Constructions Pty Ltd")
    other = make_employer("Beta Constructions")
    store = AliasStore(db)
    store.record_alias(employer.id, "Acme Civil")
    store.record_alias(employer.id, "Acme Group")
    store.record_alias(other.id, "Beta Group")

    names = {a.alias for a in store.aliases_for(employer.id)}

    assert names == {"Acme Civil", "Acme Group"}


class TestStorageFailures:

    @staticmethod
    def failing_commits(db, *errors):
        """Replace db.commit so the first calls raise the given errors, then commit for real."""
        real_commit = db.commit
        pending = list(errors)

        def commit():
            if pending:
                raise pending.pop(0)
            real_commit()

        return real_commit, commit

    def test_key_race_retries_as_update(self, db, make_employer, monkeypatch):
        employer = make_employer("Acme Constructions Pty Ltd")
        _, commit = self.failing_commits(db, IntegrityError("INSERT", {}, Exception("duplicate key")))
        monkeypatch.setattr(db, "commit", commit)

        alias = AliasStore(db).record_alias(employer.id, "Acme Civil")

        assert alias.alias_normalized == "acme civil"
        assert alias_count(db) == 1

    def test_failed_retry_rolls_back(self, db, make_employer, monkeypatch):
        employer = make_employer("Acme Constructions Pty Ltd")
        real_commit, commit = self.failing_commits(
            db,
            IntegrityError("INSERT", {}, Exception("duplicate key")),
            OperationalError("UPDATE", {}, Exception("database is locked")),
        )
        monkeypatch.setattr(db, "commit", commit)

        with pytest.raises(OperationalError):
            AliasStore(db).record_alias(employer.id, "Acme Civil")

        # A later commit on the same session must not persist the failed write
        real_commit()
        assert alias_count(db) == 0

    def test_failed_bulk_rolls_back(self, db, make_employer, monkeypatch):
        employer = make_employer("Acme Constructions Pty Ltd")
        real_commit, commit = self.failing_commits(db, OperationalError("INSERT", {}, Exception("disk full")))
        monkeypatch.setattr(db, "commit", commit)

        with pytest.raises(OperationalError):
            AliasStore(db).record_aliases([AliasRequest(employer.id, "Acme Civil")])

        real_commit()
        assert alias_count(db) == 0


def test_aware_collected_at_stored_as_utc(db, make_employer):
    employer = make_employer("Acme Constructions Pty Ltd")
    melbourne = timezone(timedelta(hours=10))

    alias = AliasStore(db).record_alias(
        employer.id, "Acme Civil", collected_at=datetime(2026, 1, 5, 18, 0, tzinfo=melbourne)
    )

    assert alias.collected_at == datetime(2026, 1, 5, 8, 0)
