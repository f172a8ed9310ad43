"""
Member write path.

* ids are allocated inside the inserting transaction; a collision with a
  concurrent writer rolls back and retries with a fresh id
* updates carry a version check: the row is only written while its version
  still equals the one that was read, otherwise ConcurrencyError
* sons_count / daughters_count on the father are kept in step with every
  create, delete and re-parent
"""
import time
from collections import deque
from typing import Callable, Optional, TypeVar

from loguru import logger
from sqlalchemy import case, func
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from familytree.config import settings
from familytree.errors import (
    ConcurrencyError,
    DatabaseError,
    DuplicateIdError,
    HasChildrenError,
    InvalidDataError,
    InvalidParentError,
    NotFoundError,
)
from familytree.models.family_member import FamilyMember

T = TypeVar("T")

ID_PREFIX = "P"

# Fields a caller may set through update_member
UPDATABLE_FIELDS = (
    "first_name",
    "father_name",
    "grandfather_name",
    "great_grandfather_name",
    "family_name",
    "father_id",
    "gender",
    "birth_year",
    "death_year",
    "sons_count",
    "daughters_count",
    "generation",
    "branch",
    "full_name_ar",
    "full_name_en",
    "phone",
    "city",
    "status",
    "photo_url",
    "biography",
    "occupation",
    "email",
)

TRANSIENT_MARKERS = ("locked", "busy", "connection", "timeout")


# ============================================================
# RETRY
# ============================================================

def _is_transient(exc: Exception) -> bool:
    message = str(exc).lower()
    return any(marker in message for marker in TRANSIENT_MARKERS)


def with_retry(operation: Callable[[], T], operation_name: str, db: Optional[Session] = None) -> T:
    """
    Run `operation`, retrying transient database errors with exponential backoff.
    """
    max_retries = settings.MEMBER_WRITE_MAX_RETRIES

    for attempt in range(1, max_retries + 1):
        try:
            return operation()
        except OperationalError as e:
            if db is not None:
                db.rollback()

            if _is_transient(e) and attempt < max_retries:
                delay_ms = settings.MEMBER_WRITE_RETRY_DELAY_MS * 2 ** (attempt - 1)
                logger.warning(
                    f"{operation_name}: database error, retrying in {delay_ms}ms "
                    f"(attempt {attempt}/{max_retries})"
                )
                time.sleep(delay_ms / 1000)
                continue

            logger.error(f"{operation_name} failed: {e}")
            raise DatabaseError(f"{operation_name} failed: database unavailable", "DB_UNAVAILABLE") from e

    raise DatabaseError(f"{operation_name} failed after {max_retries} retries")


# ============================================================
# IDS
# ============================================================

def format_member_id(number: int) -> str:
    return f"{ID_PREFIX}{number:03d}"


def parse_member_number(member_id: str) -> Optional[int]:
    if not member_id or not member_id.startswith(ID_PREFIX):
        return None
    digits = member_id[len(ID_PREFIX):]
    return int(digits) if digits.isdigit() else None


def get_next_id(db: Session) -> str:
    """
    Next free id after the numerically greatest P-number.

    P1000 sorts before P999 as a string, so order by length first.
    """
    rows = (
        db.query(FamilyMember.id)
        .filter(FamilyMember.id.like(f"{ID_PREFIX}%"))
        .order_by(func.length(FamilyMember.id).desc(), FamilyMember.id.desc())
        .all()
    )

    for (member_id,) in rows:
        number = parse_member_number(member_id)
        if number is not None:
            return format_member_id(number + 1)

    return format_member_id(1)


# ============================================================
# HELPERS
# ============================================================

def _count_column(gender: Optional[str]):
    return FamilyMember.sons_count if gender == "Male" else FamilyMember.daughters_count


def _adjust_child_count(db: Session, father_id: Optional[str], gender: Optional[str], delta: int) -> None:
    if not father_id:
        return

    column = _count_column(gender)
    db.query(FamilyMember).filter(FamilyMember.id == father_id).update(
        {
            column: case((column + delta < 0, 0), else_=column + delta),
            FamilyMember.version: FamilyMember.version + 1,
        },
        synchronize_session="fetch",
    )


def is_descendant(db: Session, candidate_id: str, ancestor_id: str) -> bool:
    """True when candidate_id sits somewhere below ancestor_id."""
    seen = {ancestor_id}
    queue = deque([ancestor_id])

    while queue:
        current = queue.popleft()
        children = db.query(FamilyMember.id).filter(FamilyMember.father_id == current).all()
        for (child_id,) in children:
            if child_id == candidate_id:
                return True
            if child_id not in seen:
                seen.add(child_id)
                queue.append(child_id)

    return False


def _require_valid_father(db: Session, father_id: str, member_id: Optional[str] = None) -> FamilyMember:
    if member_id is not None:
        if father_id == member_id:
            raise InvalidParentError("A member cannot be their own father")
        if is_descendant(db, father_id, member_id):
            raise InvalidParentError("Cannot set a descendant as parent (would create cycle)")

    father = db.get(FamilyMember, father_id)
    if not father:
        raise InvalidParentError(f"Father {father_id} not found")
    if father.gender != "Male":
        raise InvalidParentError("Father must be male")
    return father


def _build_member(db: Session, member_id: str, data: dict) -> FamilyMember:
    father = None
    if data.get("father_id"):
        father = _require_valid_father(db, data["father_id"])

    generation = data.get("generation")
    if not generation:
        generation = father.generation + 1 if father else 1

    return FamilyMember(
        id=member_id,
        first_name=data["first_name"],
        father_name=data.get("father_name") or (father.first_name if father else None),
        grandfather_name=data.get("grandfather_name") or None,
        great_grandfather_name=data.get("great_grandfather_name") or None,
        family_name=data.get("family_name") or settings.DEFAULT_FAMILY_NAME,
        father_id=data.get("father_id") or None,
        gender=data["gender"],
        birth_year=data.get("birth_year") or None,
        death_year=data.get("death_year") or None,
        sons_count=data.get("sons_count") or 0,
        daughters_count=data.get("daughters_count") or 0,
        generation=generation,
        branch=data.get("branch") or (father.branch if father else None),
        full_name_ar=data.get("full_name_ar") or None,
        full_name_en=data.get("full_name_en") or None,
        phone=data.get("phone") or None,
        city=data.get("city") or None,
        status=data.get("status") or "Living",
        photo_url=data.get("photo_url") or None,
        biography=data.get("biography") or None,
        occupation=data.get("occupation") or None,
        email=data.get("email") or None,
        created_by=data.get("created_by") or "system",
        version=1,
    )


def _insert(db: Session, member_id: str, data: dict) -> FamilyMember:
    if db.get(FamilyMember, member_id) is not None:
        raise DuplicateIdError(member_id)

    member = _build_member(db, member_id, data)
    db.add(member)
    db.flush()

    _adjust_child_count(db, member.father_id, member.gender, +1)
    return member


# ============================================================
# CREATE
# ============================================================

def create_member_with_auto_id(db: Session, data: dict) -> FamilyMember:
    """
    Insert a member under the next free id.

    Two writers can read the same "next id"; the loser hits the primary key,
    rolls back and tries again with a fresh id.
    """

    def attempt() -> FamilyMember:
        max_retries = settings.MEMBER_WRITE_MAX_RETRIES
        new_id = None

        for attempt_no in range(1, max_retries + 1):
            new_id = get_next_id(db)
            try:
                member = _insert(db, new_id, data)
                db.commit()
            except (DuplicateIdError, IntegrityError) as e:
                db.rollback()
                logger.warning(f"createMemberWithAutoId: id {new_id} taken ({attempt_no}/{max_retries}): {e}")
                continue
            except InvalidParentError:
                db.rollback()
                raise

            db.refresh(member)
            logger.info(f"Created member {member.id} ({member.first_name})")
            return member

        raise DuplicateIdError(new_id)

    return with_retry(attempt, "createMemberWithAutoId", db)


def create_member(db: Session, data: dict) -> FamilyMember:
    """Insert a member under a caller-supplied id (imports, restores)."""

    def attempt() -> FamilyMember:
        try:
            member = _insert(db, data["id"], data)
            db.commit()
        except IntegrityError as e:
            db.rollback()
            raise DuplicateIdError(data["id"]) from e
        except DatabaseError:
            db.rollback()
            raise

        db.refresh(member)
        logger.info(f"Created member {member.id} ({member.first_name})")
        return member

    return with_retry(attempt, "createMember", db)


# ============================================================
# UPDATE
# ============================================================

def update_member(
    db: Session,
    member_id: str,
    updates: dict,
    expected_version: Optional[int] = None,
    modified_by: Optional[str] = None,
) -> FamilyMember:
    """
    Apply allow-listed updates under an optimistic version check.
    """

    def attempt() -> FamilyMember:
        member = db.get(FamilyMember, member_id)
        if not member:
            raise NotFoundError(f"Member {member_id} not found")

        current_version = member.version
        if expected_version is not None and current_version != expected_version:
            raise ConcurrencyError(
                f"Member {member_id} was modified by another user. Expected version "
                f"{expected_version}, found {current_version}. Please refresh and try again."
            )

        values = {k: v for k, v in updates.items() if k in UPDATABLE_FIELDS}

        old_father, old_gender = member.father_id, member.gender
        new_father = values.get("father_id", old_father) or None
        new_gender = values.get("gender", old_gender)

        if "father_id" in values:
            values["father_id"] = new_father
            if new_father and new_father != old_father:
                _require_valid_father(db, new_father, member_id)

        values["version"] = current_version + 1
        if modified_by:
            values["last_modified_by"] = modified_by

        try:
            written = (
                db.query(FamilyMember)
                .filter(FamilyMember.id == member_id, FamilyMember.version == current_version)
                .update(values, synchronize_session="fetch")
            )
            if written == 0:
                raise ConcurrencyError(
                    f"Member {member_id} was modified by another user while saving. Please refresh and try again."
                )

            if (new_father, new_gender) != (old_father, old_gender):
                _adjust_child_count(db, old_father, old_gender, -1)
                _adjust_child_count(db, new_father, new_gender, +1)

            db.commit()
        except DatabaseError:
            db.rollback()
            raise
        except IntegrityError as e:
            db.rollback()
            logger.warning(f"Rejected update of member {member_id}: {e.orig}")
            raise InvalidDataError(f"Invalid update for member {member_id}: required fields cannot be empty") from e

        db.refresh(member)
        logger.info(f"Updated member {member_id} to version {member.version}")
        return member

    return with_retry(attempt, "updateMember", db)


# ============================================================
# DELETE
# ============================================================

def delete_member(db: Session, member_id: str) -> bool:
    """
    Delete a leaf member. Returns False when the member does not exist.
    """

    def attempt() -> bool:
        member = db.get(FamilyMember, member_id)
        if not member:
            return False

        has_children = db.query(FamilyMember.id).filter(FamilyMember.father_id == member_id).first()
        if has_children:
            raise HasChildrenError(
                f"Cannot delete member {member_id} because they have children. Delete children first."
            )

        father_id, gender = member.father_id, member.gender
        db.delete(member)
        db.flush()
        _adjust_child_count(db, father_id, gender, -1)
        db.commit()

        logger.info(f"Deleted member {member_id}")
        return True

    return with_retry(attempt, "deleteMember", db)


# ============================================================
# BULK
# ============================================================

def _parents_first(members: list[dict]) -> list[dict]:
    """Order rows so every father is inserted before his children."""
    by_id = {m["id"]: m for m in members}
    ordered, placed = [], set()

    def place(member: dict, trail: set):
        if member["id"] in placed:
            return
        father_id = member.get("father_id")
        if father_id in by_id and father_id not in placed and father_id not in trail:
            place(by_id[father_id], trail | {member["id"]})
        placed.add(member["id"])
        ordered.append(member)

    for m in members:
        place(m, set())
    return ordered


def bulk_create_members(db: Session, members: list[dict]) -> dict:
    """
    Insert pre-numbered members as-is (counts included) in one transaction.
    Rows whose id exists, or whose father is neither stored nor in the batch,
    are reported, not raised.
    """
    success, failed, errors = 0, 0, []
    inserted = set()

    for data in _parents_first(members):
        member_id = data.get("id")
        if not member_id or not data.get("first_name") or not data.get("gender"):
            failed += 1
            errors.append(f"ID {member_id}: Missing id, first name or gender")
            continue

        if member_id in inserted or db.get(FamilyMember, member_id) is not None:
            failed += 1
            errors.append(f"ID {member_id}: Already exists")
            continue

        father_id = data.get("father_id") or None
        if father_id and father_id not in inserted and db.get(FamilyMember, father_id) is None:
            failed += 1
            errors.append(f"ID {member_id}: Father {father_id} not found")
            continue

        row = {k: v for k, v in data.items() if k in UPDATABLE_FIELDS}
        row.update(
            father_id=father_id,
            family_name=data.get("family_name") or settings.DEFAULT_FAMILY_NAME,
            status=data.get("status") or "Living",
            generation=data.get("generation") or 1,
            sons_count=data.get("sons_count") or 0,
            daughters_count=data.get("daughters_count") or 0,
        )
        db.add(
            FamilyMember(
                id=member_id,
                created_by=data.get("created_by") or "system",
                last_modified_by=data.get("last_modified_by"),
                version=data.get("version") or 1,
                **row,
            )
        )
        db.flush()
        inserted.add(member_id)
        success += 1

    db.commit()
    logger.info(f"Bulk insert: {success} created, {failed} failed")
    return {"success": success, "failed": failed, "errors": errors}


def delete_all_members(db: Session) -> int:
    """Remove every member in one statement (self-references go with them)."""
    deleted = db.query(FamilyMember).delete(synchronize_session=False)
    db.flush()

    # Bulk delete bypasses the identity map
    for obj in list(db.identity_map.values()):
        if isinstance(obj, FamilyMember):
            db.expunge(obj)
    return deleted
