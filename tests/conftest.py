"""
Pytest configuration and shared fixtures.
"""

import sys
from datetime import datetime, timedelta
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from identity.database import create_session_factory
from identity.entity_resolution.matchers import normalize_employer_name
from identity.models import ApprovalStatus, Employer, EmployerAlias, SourceSystem

BASE_TIME = datetime(2026, 1, 5, 9, 0, 0)


@pytest.fixture
def base_time():
    return BASE_TIME


@pytest.fixture
def db():
    """Fresh in-memory database per test."""
    factory = create_session_factory("sqlite://")
    session = factory()
    yield session
    session.close()
    factory.kw["bind"].dispose()


@pytest.fixture
def make_employer(db):
    """Create and commit an employer."""

    def _make(name, status=ApprovalStatus.ACTIVE, created_at=None, **kwargs):
        employer = Employer(name=name, approval_status=status, **kwargs)
        if created_at is not None:
            employer.created_at = created_at
        db.add(employer)
        db.commit()
        return employer

    return _make


@pytest.fixture
def make_alias(db):
    """Insert an alias row directly, bypassing the store."""

    def _make(
        employer,
        text,
        normalized=None,
        source=SourceSystem.MANUAL,
        is_authoritative=False,
        collected_at=None,
        created_at=None,
    ):
        alias = EmployerAlias(
            employer_id=employer.id,
            alias=text,
            alias_normalized=normalized or normalize_employer_name(text),
            source_system=source,
            source_identifier=text,
            is_authoritative=is_authoritative,
            collected_at=collected_at or BASE_TIME,
        )
        if created_at is not None:
            alias.created_at = created_at
        db.add(alias)
        db.commit()
        return alias

    return _make


@pytest.fixture
def pending_acme_fixture(make_employer):
    """Pending employers created oldest to newest."""
    names = ["ACME Pty Ltd", "Acme Pty Ltd", "Acme Pty. Ltd", "Beta Constructions"]
    return [
        make_employer(name, status=ApprovalStatus.PENDING, created_at=BASE_TIME + timedelta(minutes=i))
        for i, name in enumerate(names)
    ]
