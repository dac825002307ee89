#!/usr/bin/env python3
"""
Canonical Promotion Review Queue

Prints the current promotion queue, or records a reviewer decision on one
alias.

Usage:
    python scripts/review_queue.py
    python scripts/review_queue.py --limit 20 --metrics
    python scripts/review_queue.py --approve <alias_id> --employer <id> --by <user> --reason "..."
    python scripts/review_queue.py --defer <alias_id> --employer <id> --by <user> --reason "..."

Reject and defer need --reason.
"""

import argparse
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from identity.audit import AuditLog
from identity.database import SessionLocal, init_db
from identity.errors import IdentityError, error_response
from identity.metrics import alias_metrics_summary, review_metrics
from identity.models import DecisionAction
from identity.promotion_queue import PromotionQueue


def print_queue(queue, limit):
    entries = queue.list()
    print("=" * 60)
    print(f"PROMOTION QUEUE ({len(entries)} entries)")
    print("=" * 60)
    for entry in entries[:limit]:
        print(
            f"[{entry.priority:>2}] {entry.current_canonical_name} -> {entry.proposed_name}"
            f"  ({entry.source_system}, alias {entry.alias_id})"
        )
        if entry.previous_decision:
            print(f"      previously {entry.previous_decision} at {entry.deferred_at}")
        for conflict in entry.conflict_warnings:
            print(
                f"      conflict: {conflict.employer_name} [{conflict.employer_id}]"
                f" similarity {conflict.similarity:.0%}"
            )
    return entries


def main():
    parser = argparse.ArgumentParser(description="Review alias promotions")
    decision = parser.add_mutually_exclusive_group()
    decision.add_argument("--approve", metavar="ALIAS_ID")
    decision.add_argument("--reject", metavar="ALIAS_ID")
    decision.add_argument("--defer", metavar="ALIAS_ID")
    parser.add_argument("--employer", help="Employer id owning the alias")
    parser.add_argument("--by", help="Reviewer id recording the decision")
    parser.add_argument("--reason", default=None, help="Required for --reject and --defer")
    parser.add_argument("--limit", type=int, default=50)
    parser.add_argument("--metrics", action="store_true", help="Print alias metrics")
    args = parser.parse_args()

    init_db()
    db = SessionLocal()

    try:
        for action in DecisionAction:
            alias_id = getattr(args, action.value)
            if alias_id:
                if not args.employer or not args.by:
                    parser.error("--employer and --by are required to record a decision")
                AuditLog(db).record_decision(args.employer, alias_id, action, args.by, args.reason)
                print(f"Recorded {action.value} for alias {alias_id}")
                return

        entries = print_queue(PromotionQueue(db), args.limit)

        if args.metrics:
            summary = alias_metrics_summary(db)
            review = review_metrics(entries)
            print("\n" + "=" * 60)
            print("ALIAS METRICS")
            print("=" * 60)
            print(f"Aliases:           {summary.total_aliases} ({summary.authoritative_aliases} authoritative)")
            print(f"Employers covered: {summary.employers_with_aliases}")
            for source, count in summary.aliases_by_source.items():
                print(f"  {source:<15} {count}")
            print(f"Last 7 / 30 days:  {summary.aliases_last_7_days} / {summary.aliases_last_30_days}")
            print(
                f"Decisions:         {summary.total_promotions} approved, "
                f"{summary.total_rejections} rejected, {summary.total_deferrals} deferred"
            )
            print(
                f"Queue:             {review.pending_reviews} pending "
                f"({review.high_priority_reviews} high, {review.medium_priority_reviews} medium, "
                f"{review.previously_deferred} previously deferred, {review.with_conflicts} with conflicts)"
            )

    except IdentityError as e:
        print(f"Error: {error_response(e)}")
        sys.exit(1)
    finally:
        db.close()


if __name__ == "__main__":
    main()
