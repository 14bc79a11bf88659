"""
Ingestion pipeline: reads bucket files, validates, upserts to DB.
Idempotent: same input = same hash = skips re-insert.

Bucket layout (every file is optional):
  business_hours.json   weekly open/close rules, keyed by day_of_week
  special_dates.json    per-date closures or special hours, keyed by date
  coaches.json          coaches with nested weekly availability blocks
"""
import json
import hashlib
import logging
from datetime import datetime, timedelta
from pathlib import Path

from sqlalchemy.orm import Session

from simbook.config import BUCKET_DIR, DEFAULT_OPEN_HOUR, DEFAULT_CLOSE_HOUR
from simbook.models import (
    BusinessHours, SpecialDate, Coach, CoachAvailability, IngestionRun,
)
from simbook.ingestion.schemas import (
    BusinessHoursSchema, SpecialDateSchema, CoachSchema,
)

logger = logging.getLogger(__name__)


# ── Helpers ───────────────────────────────────────────────────────────────────

def _hash_file(path: Path) -> str:
    return hashlib.md5(path.read_bytes()).hexdigest()

def _bucket_hash(bucket: Path) -> str:
    """Single hash of all bucket files combined."""
    combined = "".join(
        _hash_file(f) for f in sorted(bucket.iterdir()) if f.is_file()
    )
    return hashlib.md5(combined.encode()).hexdigest()

def _load_json(bucket: Path, filename: str) -> list:
    path = bucket / filename
    if not path.exists():
        return []
    return json.loads(path.read_text())


def _apply(existing, data: dict) -> bool:
    """Copy changed fields onto a row. True when anything changed."""
    changed = {k: v for k, v in data.items() if getattr(existing, k) != v}
    for k, v in changed.items():
        setattr(existing, k, v)
    return bool(changed)


# ── Per-entity upsert functions ───────────────────────────────────────────────

def _upsert_business_hours(db: Session, bucket: Path) -> dict:
    records = [BusinessHoursSchema(**r) for r in _load_json(bucket, "business_hours.json")]
    diff = {"upserted": [], "unchanged": []}

    for r in records:
        existing = db.query(BusinessHours).filter_by(day_of_week=r.day_of_week).first()
        data = r.model_dump()

        if existing is None:
            db.add(BusinessHours(**data))
            diff["upserted"].append(r.day_of_week)
        elif _apply(existing, data):
            diff["upserted"].append(r.day_of_week)
        else:
            diff["unchanged"].append(r.day_of_week)

    return diff


def _upsert_special_dates(db: Session, bucket: Path) -> dict:
    records = [SpecialDateSchema(**r) for r in _load_json(bucket, "special_dates.json")]
    diff = {"upserted": [], "unchanged": []}

    for r in records:
        key = r.date.isoformat()
        existing = db.query(SpecialDate).filter_by(date=r.date).first()
        data = r.model_dump()

        if existing is None:
            db.add(SpecialDate(**data))
            diff["upserted"].append(key)
        elif _apply(existing, data):
            diff["upserted"].append(key)
        else:
            diff["unchanged"].append(key)

    return diff


def _upsert_coaches(db: Session, bucket: Path) -> dict:
    records = [CoachSchema(**r) for r in _load_json(bucket, "coaches.json")]
    diff = {"upserted": [], "unchanged": [], "blocks_upserted": 0, "blocks_removed": 0}
    # New coaches join the roster in file order.
    registered_at = datetime.now()

    for position, r in enumerate(records):
        existing = db.get(Coach, r.id)
        data = r.model_dump(exclude={"availability"})

        if existing is None:
            db.add(Coach(**data, registered_at=registered_at + timedelta(microseconds=position)))
            db.flush()
            diff["upserted"].append(r.id)
        elif _apply(existing, data):
            diff["upserted"].append(r.id)
        else:
            diff["unchanged"].append(r.id)

        for block in r.availability:
            row = (
                db.query(CoachAvailability)
                .filter_by(coach_id=r.id, day_of_week=block.day_of_week,
                           start_hour=block.start_hour)
                .first()
            )
            if row is None:
                db.add(CoachAvailability(coach_id=r.id, **block.model_dump()))
                diff["blocks_upserted"] += 1
            elif row.end_hour != block.end_hour:
                row.end_hour = block.end_hour
                diff["blocks_upserted"] += 1

        # The file holds the whole weekly schedule; drop blocks it no longer lists.
        keep = {(b.day_of_week, b.start_hour) for b in r.availability}
        for row in db.query(CoachAvailability).filter_by(coach_id=r.id).all():
            if (row.day_of_week, row.start_hour) not in keep:
                db.delete(row)
                diff["blocks_removed"] += 1

    return diff


def seed_default_business_hours(db: Session) -> int:
    """
    Mon–Fri DEFAULT_OPEN_HOUR–DEFAULT_CLOSE_HOUR, Sat/Sun closed.
    Only runs against an empty table; returns the number of rows added.
    """
    if db.query(BusinessHours).count():
        return 0

    for dow in range(7):
        db.add(BusinessHours(
            day_of_week=dow,
            open_hour=DEFAULT_OPEN_HOUR,
            close_hour=DEFAULT_CLOSE_HOUR,
            is_closed=dow in (0, 6),
        ))
    db.commit()
    logger.info("Seeded default business hours")
    return 7


# ── Main entry point ──────────────────────────────────────────────────────────

def run_ingestion(db: Session, force: bool = False, bucket_dir: Path = BUCKET_DIR) -> dict:
    """
    Run full ingestion. Skips if bucket hash unchanged (idempotent).
    Set force=True to re-ingest regardless.
    """
    bucket = Path(bucket_dir)
    bucket_hash = _bucket_hash(bucket)

    # Idempotency check
    if not force:
        last_run = (
            db.query(IngestionRun)
            .filter(IngestionRun.status == "success")
            .order_by(IngestionRun.id.desc())
            .first()
        )
        if last_run and last_run.source_hash == bucket_hash:
            logger.info("Ingestion skipped, bucket unchanged (%s)", bucket_hash)
            return {
                "status": "skipped",
                "reason": "bucket unchanged",
                "hash": bucket_hash
            }

    diff_summary = {}
    try:
        diff_summary["business_hours"] = _upsert_business_hours(db, bucket)
        diff_summary["special_dates"] = _upsert_special_dates(db, bucket)
        diff_summary["coaches"] = _upsert_coaches(db, bucket)

        db.add(IngestionRun(
            source_hash=bucket_hash,
            status="success",
            diff_summary=diff_summary
        ))
        db.commit()

    except Exception as e:
        db.rollback()
        logger.error("Ingestion failed: %s", e)
        db.add(IngestionRun(
            source_hash=bucket_hash,
            status="failed",
            diff_summary={"error": str(e)}
        ))
        db.commit()
        raise

    seeded = seed_default_business_hours(db)
    if seeded:
        diff_summary["business_hours"]["seeded"] = seeded

    logger.info("Ingestion finished (%s)", bucket_hash)
    return {"status": "success", "hash": bucket_hash, "diff": diff_summary}
