"""Practice tracking: who practised this week, and how often."""
import json
from datetime import datetime, timezone

from spelling_bee.db import get_connection, get_record, write_record
from spelling_bee.models import ChildPractice, PracticeRecord

PRACTICE = "practice"


def practice_key(group: str, week_id: str) -> str:
    return f"{week_id}_{group}"


def get_practice_record(db_path: str, group: str, week_id: str) -> PracticeRecord | None:
    record = get_record(db_path, PRACTICE, practice_key(group, week_id))
    return PracticeRecord.from_record(record) if record else None


def record_practice(
    db_path: str,
    group: str,
    week_id: str,
    child_name: str,
    score: int,
    total: int,
    now: datetime | None = None,
) -> ChildPractice:
    """Count one completed practice for ``child_name``.

    The read and the write share one IMMEDIATE transaction, so two
    submissions for the same group and week cannot lose an increment.
    """
    now = now or datetime.now(timezone.utc)
    key = practice_key(group, week_id)
    conn = get_connection(db_path)
    try:
        conn.execute("BEGIN IMMEDIATE")
        row = conn.execute(
            "SELECT data FROM records WHERE collection = ? AND key = ?", (PRACTICE, key)
        ).fetchone()
        if row:
            record = PracticeRecord.from_record(json.loads(row["data"]))
        else:
            record = PracticeRecord(group=group, week_id=week_id)
        child = record.children.setdefault(child_name, ChildPractice())
        child.attempts += 1
        child.last_practice_at = now.isoformat()
        child.last_score = score
        child.last_total = total
        write_record(conn, PRACTICE, key, record.to_record())
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
    return child


def practice_summary(db_path: str, groups: list[str], week_id: str) -> dict[str, PracticeRecord]:
    summary = {}
    for group in groups:
        record = get_practice_record(db_path, group, week_id)
        if record:
            summary[group] = record
    return summary
