#!/usr/bin/env python3
"""
Print dependent-record counts for employers about to be merged.

Usage:
    python scripts/merge_impact.py <employer_id> [<employer_id> ...]
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from identity.database import SessionLocal, init_db
from identity.merge_impact import IMPACT_SOURCES, MergeImpactAnalyzer


def main():
    parser = argparse.ArgumentParser(description="Show merge impact for employers")
    parser.add_argument("employer_ids", nargs="+")
    args = parser.parse_args()

    init_db()
    db = SessionLocal()

    try:
        impacts = MergeImpactAnalyzer(db).analyze(args.employer_ids)

        print("=" * 60)
        print("MERGE IMPACT")
        print("=" * 60)
        for impact in impacts:
            print(f"\n{impact.employer_id}  (total {impact.total})")
            for name in IMPACT_SOURCES:
                print(f"  {name:<26} {getattr(impact, name)}")
    finally:
        db.close()


if __name__ == "__main__":
    main()
