"""
Read side of the member store.

Every read is database-first. When the database is unreachable, errors out,
or simply has no rows yet, the reads answer from the seed list on disk so the
public tree keeps rendering.
"""
import json
import time
from functools import lru_cache
from pathlib import Path
from typing import Callable, Optional

from loguru import logger
from pydantic import ValidationError
from sqlalchemy import func, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from familytree.config import settings
from familytree.core.member_store import format_member_id, parse_member_number
from familytree.models.family_member import FamilyMember
from familytree.schemas.member_schema import member_to_dict

_availability = {"available": None, "checked_at": 0.0}


# ============================================================
# AVAILABILITY
# ============================================================

def is_database_available(db: Session) -> bool:
    """Probe with SELECT 1, trusting the answer for DB_CHECK_INTERVAL_SECONDS."""
    now = time.monotonic()
    cached = _availability["available"]
    if cached is not None and now - _availability["checked_at"] < settings.DB_CHECK_INTERVAL_SECONDS:
        return cached

    try:
        db.execute(text("SELECT 1"))
        available = True
    except SQLAlchemyError as e:
        logger.error(f"Database availability check failed: {e}")
        db.rollback()
        available = False

    _availability.update(available=available, checked_at=now)
    return available


def reset_availability_cache() -> None:
    _availability.update(available=None, checked_at=0.0)


# ============================================================
# FALLBACK DATA
# ============================================================

@lru_cache(maxsize=1)
def load_fallback_members() -> tuple:
    path = Path(settings.SEED_DATA_PATH)
    if not path.exists():
        return ()

    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        logger.error(f"Could not read seed members from {path}: {e}")
        return ()

    members = []
    for entry in raw:
        try:
            members.append(member_to_dict(entry))
        except ValidationError as e:
            logger.warning(f"Skipping invalid seed member {entry.get('id')}: {e.error_count()} errors")

    logger.info(f"Loaded {len(members)} fallback members from {path}")
    return tuple(members)


def _fallback() -> list[dict]:
    return [dict(m) for m in load_fallback_members()]


def _read(db: Session, label: str, query: Callable, fallback: Callable):
    if not is_database_available(db):
        logger.warning(f"Database unavailable, using in-memory data for {label}")
        return fallback()

    try:
        result = query()
    except SQLAlchemyError as e:
        logger.error(f"Error reading {label} from database: {e}")
        db.rollback()
        return fallback()

    if not result:
        return fallback()
    return result


def _ordered(q):
    return q.order_by(func.length(FamilyMember.id), FamilyMember.id)


# ============================================================
# READS
# ============================================================

def get_all_members(db: Session) -> list[dict]:
    return _read(
        db,
        "all members",
        lambda: [member_to_dict(m) for m in _ordered(db.query(FamilyMember)).all()],
        _fallback,
    )


def get_member_by_id(db: Session, member_id: str) -> Optional[dict]:
    def query():
        member = db.get(FamilyMember, member_id)
        return member_to_dict(member) if member else None

    return _read(
        db,
        f"member {member_id}",
        query,
        lambda: next((m for m in _fallback() if m["id"] == member_id), None),
    )


def get_male_members(db: Session) -> list[dict]:
    return _read(
        db,
        "male members",
        lambda: [member_to_dict(m) for m in _ordered(db.query(FamilyMember).filter(FamilyMember.gender == "Male")).all()],
        lambda: [m for m in _fallback() if m["gender"] == "Male"],
    )


def get_children(db: Session, parent_id: str) -> list[dict]:
    def query():
        children = (
            db.query(FamilyMember)
            .filter(FamilyMember.father_id == parent_id)
            .order_by(FamilyMember.birth_year, FamilyMember.id)
            .all()
        )
        return [member_to_dict(m) for m in children]

    # A stored member with no children is a real answer, not a miss
    if is_database_available(db) and db.get(FamilyMember, parent_id) is not None:
        return query()

    return _read(
        db,
        f"children of {parent_id}",
        query,
        lambda: [m for m in _fallback() if m["fatherId"] == parent_id],
    )


def get_gen2_branches(db: Session) -> list[dict]:
    return _read(
        db,
        "generation 2 branches",
        lambda: [member_to_dict(m) for m in _ordered(db.query(FamilyMember).filter(FamilyMember.generation == 2)).all()],
        lambda: [m for m in _fallback() if m["generation"] == 2],
    )


def get_member_count(db: Session) -> int:
    return _read(
        db,
        "member count",
        lambda: db.query(FamilyMember).count(),
        lambda: len(load_fallback_members()),
    )


def member_exists(db: Session, member_id: str) -> bool:
    return get_member_by_id(db, member_id) is not None


def get_next_id_for_display(db: Session) -> str:
    """Preview of the next id; the real one is allocated at insert time."""
    members = get_all_members(db)
    numbers = [n for n in (parse_member_number(m["id"]) for m in members) if n is not None]
    return format_member_id(max(numbers) + 1 if numbers else 1)


# ============================================================
# DERIVED VIEWS
# ============================================================

def get_statistics(db: Session) -> dict:
    members = get_all_members(db)
    total = len(members)

    if total == 0:
        return {
            "totalMembers": 0,
            "males": 0,
            "females": 0,
            "generations": 0,
            "branches": [],
            "generationBreakdown": [],
        }

    generations = max(m["generation"] for m in members)

    branch_counts: dict[str, int] = {}
    for m in members:
        if m.get("branch"):
            branch_counts[m["branch"]] = branch_counts.get(m["branch"], 0) + 1

    breakdown = []
    for gen in range(1, generations + 1):
        gen_members = [m for m in members if m["generation"] == gen]
        breakdown.append({
            "generation": gen,
            "count": len(gen_members),
            "males": sum(1 for m in gen_members if m["gender"] == "Male"),
            "females": sum(1 for m in gen_members if m["gender"] == "Female"),
            "percentage": round(len(gen_members) / total * 100),
        })

    return {
        "totalMembers": total,
        "males": sum(1 for m in members if m["gender"] == "Male"),
        "females": sum(1 for m in members if m["gender"] == "Female"),
        "generations": generations,
        "branches": [{"name": name, "count": count} for name, count in branch_counts.items()],
        "generationBreakdown": breakdown,
    }


def build_family_tree(db: Session) -> Optional[dict]:
    """Nested {...member, children: [...]} rooted at the first fatherless member."""
    members = get_all_members(db)
    if not members:
        return None

    root = next((m for m in members if not m.get("fatherId")), None)
    if root is None:
        return None

    children_of: dict[str, list[dict]] = {}
    for m in members:
        if m.get("fatherId"):
            children_of.setdefault(m["fatherId"], []).append(m)

    def attach(member: dict, seen: set) -> dict:
        seen = seen | {member["id"]}
        return {
            **member,
            "children": [attach(c, seen) for c in children_of.get(member["id"], []) if c["id"] not in seen],
        }

    return attach(root, set())
