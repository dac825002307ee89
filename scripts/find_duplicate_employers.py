#!/usr/bin/env python3
"""
Duplicate Pending Employer Scan

Clusters pending employers by name similarity and prints each cluster with
its merge impact, for a reviewer deciding what to merge.

Usage:
    python scripts/find_duplicate_employers.py --reviewer <id> --role admin
    python scripts/find_duplicate_employers.py --reviewer <id> --role admin --threshold 80
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from config.settings import settings
from identity.access import Reviewer
from identity.database import SessionLocal, init_db
from identity.entity_resolution import DetectorConfig, DuplicateDetector
from identity.errors import IdentityError, error_response
from identity.merge_impact import MergeImpactAnalyzer


def main():
    parser = argparse.ArgumentParser(
        description="Find likely-duplicate pending employers"
    )
    parser.add_argument("--reviewer", required=True, help="Reviewer id")
    parser.add_argument("--role", default=None, help="Reviewer role")
    parser.add_argument(
        "--threshold",
        type=float,
        default=settings.DUPLICATE_SIMILARITY_THRESHOLD,
        help="Minimum similarity (0-100) to join a cluster",
    )
    parser.add_argument(
        "--no-impact",
        action="store_true",
        help="Skip merge impact counts",
    )
    args = parser.parse_args()

    init_db()
    db = SessionLocal()

    try:
        detector = DuplicateDetector(db, DetectorConfig(threshold=args.threshold))
        scan = detector.scan(Reviewer(id=args.reviewer, role=args.role))

        print("=" * 60)
        print("DUPLICATE PENDING EMPLOYERS")
        print("=" * 60)
        print(f"Pending employers: {scan.total_pending}")
        print(f"Clusters found:    {scan.total_groups}")
        print(f"Threshold:         {args.threshold}")
        print("=" * 60)

        analyzer = MergeImpactAnalyzer(db)
        for cluster in scan.clusters:
            print(
                f"\n{cluster.canonical_name} ({cluster.member_count} members, "
                f"similarity {cluster.min_similarity:.2f}-{cluster.max_similarity:.2f})"
            )
            impacts = {}
            if not args.no_impact:
                impacts = {i.employer_id: i for i in analyzer.analyze(cluster.member_ids)}
            for member in cluster.members:
                line = f"  {member.similarity:6.2f}  {member.name}  [{member.id}]"
                if member.id in impacts:
                    impact = impacts[member.id]
                    line += (
                        f"  workers={impact.worker_placements_count}"
                        f" projects={impact.project_count}"
                        f" eba={impact.eba_records_count}"
                    )
                print(line)

    except IdentityError as e:
        print(f"Error: {error_response(e)}")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
