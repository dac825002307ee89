"""
Tests for duplicate pending employer detection.
"""

from datetime import timedelta

import pytest

from identity.access import Reviewer
from identity.entity_resolution import (
    DetectorConfig,
    DuplicateDetector,
    PendingEmployerRecord,
    cluster_pending,
)
from identity.errors import PermissionDenied
from identity.models import ApprovalStatus

ADMIN = Reviewer(id="user-admin", role="admin")


def records(*names):
    return [PendingEmployerRecord(id=f"e{i}", name=name) for i, name in enumerate(names)]


class TestClusterPending:
    """The pure clustering walk."""

    def test_groups_similar_names(self):
        clusters = cluster_pending(records("Acme Pty Ltd", "ACME Pty. Ltd", "Beta Constructions"))

        assert len(clusters) == 1
        assert clusters[0].canonical_id == "e0"
        assert clusters[0].member_ids == ["e0", "e1"]

    def test_anchor_is_first_member_at_100(self):
        cluster = cluster_pending(records("Acme Pty Ltd", "Acme Pty Ltd"))[0]

        assert cluster.members[0].id == cluster.canonical_id
        assert cluster.members[0].similarity == 100.0

    def test_singletons_not_emitted(self):
        assert cluster_pending(records("Acme Pty Ltd", "Beta Constructions", "Gamma Civil")) == []

    def test_threshold_is_inclusive(self):
        # 3 edits over 10 characters -> exactly 70.00
        cluster = cluster_pending(records("aaaaaaaaaa", "aaaaaaabbb"), threshold=70)[0]

        assert cluster.member_ids == ["e0", "e1"]
        assert cluster.min_similarity == 70.0

    def test_single_link_against_anchor_only(self):
        """B is close to both A and C, but C is not close to A: C is left out."""
        a, b, c = "aaaaaaaaaa", "aaaaaaaabb", "aaaaaabbbb"
        clusters = cluster_pending(records(a, b, c), threshold=70)

        assert len(clusters) == 1
        assert clusters[0].member_ids == ["e0", "e1"]

    def test_walk_order_decides_anchor(self):
        """Same names, different order: the middle name anchors and takes both."""
        a, b, c = "aaaaaaaaaa", "aaaaaaaabb", "aaaaaabbbb"
        clusters = cluster_pending(records(b, a, c), threshold=70)

        assert len(clusters) == 1
        assert clusters[0].member_ids == ["e0", "e1", "e2"]

    def test_assigned_members_do_not_anchor(self):
        clusters = cluster_pending(records("Acme Pty Ltd", "Acme Pty Ltd", "Acme Pty Ltd"))

        assert len(clusters) == 1
        assert clusters[0].member_count == 3

    def test_empty_names_cluster_together(self):
        clusters = cluster_pending(records("???", "---"))

        assert len(clusters) == 1
        assert clusters[0].max_similarity == 100.0

    def test_input_untouched(self):
        recs = records("Acme Pty Ltd", "Acme Pty Ltd")
        snapshot = list(recs)
        cluster_pending(recs)
        cluster_pending(recs)
        assert recs == snapshot


class TestDuplicateDetector:

    def test_acme_fixture(self, db, pending_acme_fixture):
        """Three Acme spellings cluster under the newest one; Beta stays out."""
        acme_upper, acme_title, acme_dotted, beta = pending_acme_fixture

        scan = DuplicateDetector(db).scan(ADMIN)

        assert scan.total_groups == 1
        assert scan.total_pending == 4
        cluster = scan.clusters[0]
        assert cluster.canonical_id == acme_dotted.id
        assert cluster.canonical_name == "Acme Pty. Ltd"
        assert cluster.member_ids == [acme_dotted.id, acme_title.id, acme_upper.id]
        assert cluster.member_count == 3
        assert cluster.min_similarity >= 70
        assert cluster.max_similarity == 100.0
        assert beta.id not in cluster.member_ids

    def test_only_pending_employers_scanned(self, db, make_employer, base_time):
        make_employer("Acme Pty Ltd", status=ApprovalStatus.ACTIVE, created_at=base_time)
        make_employer("Acme Pty Ltd", status=ApprovalStatus.PENDING, created_at=base_time + timedelta(minutes=1))

        scan = DuplicateDetector(db).scan(ADMIN)

        assert scan.clusters == []
        assert scan.total_pending == 1

    def test_configured_threshold(self, db, make_employer, base_time):
        make_employer("Acme Civil", status=ApprovalStatus.PENDING, created_at=base_time)
        make_employer("Acme Civl", status=ApprovalStatus.PENDING, created_at=base_time + timedelta(minutes=1))

        strict = DuplicateDetector(db, DetectorConfig(threshold=95)).scan(ADMIN)
        loose = DuplicateDetector(db, DetectorConfig(threshold=70)).scan(ADMIN)

        assert strict.clusters == []
        assert loose.total_groups == 1

    def test_scan_has_no_side_effects(self, db, pending_acme_fixture):
        detector = DuplicateDetector(db)
        first = detector.scan(ADMIN)
        second = detector.scan(ADMIN)

        assert [c.member_ids for c in first.clusters] == [c.member_ids for c in second.clusters]
        assert all(e.approval_status == ApprovalStatus.PENDING for e in pending_acme_fixture)

    @pytest.mark.parametrize("reviewer", [None, Reviewer(id="u1"), Reviewer(id="u2", role="organiser")])
    def test_requires_review_role(self, db, pending_acme_fixture, reviewer):
        with pytest.raises(PermissionDenied):
            DuplicateDetector(db).scan(reviewer)

    def test_lead_organiser_allowed(self, db, pending_acme_fixture):
        scan = DuplicateDetector(db).scan(Reviewer(id="u3", role="lead_organiser"))
        assert scan.total_groups == 1

    def test_custom_review_roles(self, db, pending_acme_fixture):
        config = DetectorConfig(threshold=70, review_roles={"data_steward"})

        with pytest.raises(PermissionDenied):
            DuplicateDetector(db, config).scan(ADMIN)
        assert DuplicateDetector(db, config).scan(Reviewer("u4", "data_steward")).total_groups == 1
