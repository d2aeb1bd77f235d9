#!/usr/bin/env python3
from __future__ import annotations

import argparse
import sys
from collections import defaultdict
from pathlib import Path
from typing import Dict, List, Optional, Tuple

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sqlalchemy import func  # noqa: E402
from sqlalchemy.orm import Session  # noqa: E402

from fieldops.core.database import SessionLocal  # noqa: E402
from fieldops.models.job import Job  # noqa: E402
from fieldops.services.phase_mapper import (  # noqa: E402
    JobPhase,
    is_known_status,
    map_status_to_phase,
    phase_label,
)

UNKNOWN_BUCKET = "unknown"


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Job counts per phase, grouped by stored status.")
    parser.add_argument("--company", type=int, help="Only count jobs of this company id")
    return parser.parse_args()


def status_counts(db: Session, company_id: Optional[int] = None) -> List[Tuple[str, int]]:
    query = db.query(Job.status, func.count(Job.id))
    if company_id is not None:
        query = query.filter(Job.company_id == company_id)
    return [(status or "", count) for status, count in query.group_by(Job.status).all()]


def build_report(rows: List[Tuple[str, int]]) -> Dict[str, List[Tuple[str, int]]]:
    """Bucket ``(status, count)`` rows by phase.

    Statuses the mapper does not recognise land in their own ``unknown``
    bucket instead of being folded into the default phase.
    """
    report: Dict[str, List[Tuple[str, int]]] = defaultdict(list)
    for status, count in rows:
        bucket = map_status_to_phase(status).value if is_known_status(status) else UNKNOWN_BUCKET
        report[bucket].append((status, count))
    return report


def print_report(report: Dict[str, List[Tuple[str, int]]]) -> None:
    total = 0
    for phase in JobPhase:
        entries = sorted(report.get(phase.value, []))
        subtotal = sum(count for _, count in entries)
        total += subtotal
        print(f"{phase_label(phase)} ({phase.value}): {subtotal}")
        for status, count in entries:
            print(f"    {status!r}: {count}")

    unknown = sorted(report.get(UNKNOWN_BUCKET, []))
    if unknown:
        subtotal = sum(count for _, count in unknown)
        total += subtotal
        print(f"Unknown statuses: {subtotal}")
        for status, count in unknown:
            print(f"    {status!r}: {count}")

    print(f"Total jobs: {total}")


def main() -> int:
    args = parse_args()
    db = SessionLocal()
    try:
        rows = status_counts(db, args.company)
    finally:
        db.close()

    print_report(build_report(rows))
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
