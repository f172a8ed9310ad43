import pytest
from sqlalchemy import text
from sqlalchemy.exc import OperationalError

from familytree.core import member_store
from familytree.core.member_store import (
    bulk_create_members,
    create_member,
    create_member_with_auto_id,
    delete_member,
    get_next_id,
    is_descendant,
    update_member,
    with_retry,
)
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


def _get(db, member_id):
    db.expire_all()
    return db.get(FamilyMember, member_id)


# ============================================================
# IDS
# ============================================================

def test_first_auto_id_is_p001(db):
    member = create_member_with_auto_id(db, {"first_name": "عبدالله", "gender": "Male"})

    assert member.id == "P001"
    assert member.version == 1
    assert member.generation == 1
    assert member.family_name


def test_next_id_follows_numeric_maximum(db):
    create_member(db, {"id": "P999", "first_name": "أ", "gender": "Male"})
    create_member(db, {"id": "P1000", "first_name": "ب", "gender": "Male"})

    assert get_next_id(db) == "P1001"


def test_auto_id_retries_after_collision(db, monkeypatch):
    create_member(db, {"id": "P001", "first_name": "أ", "gender": "Male"})

    # First call hands out an id that is already taken
    answers = iter(["P001", "P002"])
    monkeypatch.setattr(member_store, "get_next_id", lambda session: next(answers))

    member = create_member_with_auto_id(db, {"first_name": "ب", "gender": "Male"})

    assert member.id == "P002"


def test_auto_id_gives_up_after_max_retries(db, monkeypatch):
    create_member(db, {"id": "P001", "first_name": "أ", "gender": "Male"})
    monkeypatch.setattr(member_store, "get_next_id", lambda session: "P001")

    with pytest.raises(DuplicateIdError):
        create_member_with_auto_id(db, {"first_name": "ب", "gender": "Male"})


def test_create_with_existing_id_is_duplicate(family):
    with pytest.raises(DuplicateIdError) as exc:
        create_member(family, {"id": "P002", "first_name": "مكرر", "gender": "Male"})

    assert exc.value.code == "DUPLICATE_ID"


# ============================================================
# CREATE
# ============================================================

def test_child_inherits_lineage_and_bumps_father(family):
    child = create_member_with_auto_id(family, {"first_name": "خالد", "gender": "Male", "father_id": "P002"})

    assert child.id == "P005"
    assert child.generation == 3
    assert child.branch == "فرع أ"
    assert child.father_name == "محمد"

    father = _get(family, "P002")
    assert father.sons_count == 2
    assert father.version == 3


def test_daughter_counts_separately(family):
    create_member_with_auto_id(family, {"first_name": "سارة", "gender": "Female", "father_id": "P001"})

    father = _get(family, "P001")
    assert father.sons_count == 1
    assert father.daughters_count == 2


def test_female_father_is_rejected(family):
    with pytest.raises(InvalidParentError):
        create_member_with_auto_id(family, {"first_name": "خالد", "gender": "Male", "father_id": "P003"})

    assert family.query(FamilyMember).count() == 4


def test_missing_father_is_rejected(family):
    with pytest.raises(InvalidParentError):
        create_member_with_auto_id(family, {"first_name": "خالد", "gender": "Male", "father_id": "P404"})


# ============================================================
# UPDATE
# ============================================================

def test_update_bumps_version_and_records_modifier(family):
    member = update_member(family, "P004", {"city": "الرياض"}, expected_version=1, modified_by="u1")

    assert member.city == "الرياض"
    assert member.version == 2
    assert member.last_modified_by == "u1"


def test_stale_expected_version_conflicts(family):
    with pytest.raises(ConcurrencyError) as exc:
        update_member(family, "P004", {"city": "جدة"}, expected_version=7)

    assert "7" in exc.value.message
    assert "1" in exc.value.message
    assert _get(family, "P004").city is None


def test_write_between_read_and_update_conflicts(family, monkeypatch):
    read = family.get

    def read_then_concurrent_write(*args, **kwargs):
        member = read(*args, **kwargs)
        family.execute(text("UPDATE family_members SET version = version + 1 WHERE id = 'P004'"))
        return member

    monkeypatch.setattr(family, "get", read_then_concurrent_write)

    with pytest.raises(ConcurrencyError) as exc:
        update_member(family, "P004", {"city": "جدة"})

    assert "while saving" in exc.value.message
    monkeypatch.undo()
    stored = _get(family, "P004")
    assert stored.city is None
    assert stored.version == 1


def test_clearing_required_field_is_rejected(family):
    with pytest.raises(InvalidDataError):
        update_member(family, "P004", {"gender": None})

    stored = _get(family, "P004")
    assert stored.gender == "Male"
    assert stored.version == 1


def test_update_ignores_fields_outside_allow_list(family):
    member = update_member(family, "P004", {"id": "P999", "version": 50, "city": "جدة"})

    assert member.id == "P004"
    assert member.version == 2


def test_update_missing_member(db):
    with pytest.raises(NotFoundError):
        update_member(db, "P404", {"city": "جدة"})


def test_reparent_moves_child_count(family):
    update_member(family, "P004", {"father_id": "P001"})

    assert _get(family, "P002").sons_count == 0
    assert _get(family, "P001").sons_count == 2


def test_gender_change_moves_count_between_columns(family):
    update_member(family, "P003", {"gender": "Male"})

    father = _get(family, "P001")
    assert father.sons_count == 2
    assert father.daughters_count == 0


@pytest.mark.parametrize(
    "member_id, father_id",
    [
        ("P002", "P002"),  # self
        ("P002", "P004"),  # own son
        ("P001", "P004"),  # grandson
        ("P004", "P003"),  # female
    ],
)
def test_invalid_parents(family, member_id, father_id):
    with pytest.raises(InvalidParentError):
        update_member(family, member_id, {"father_id": father_id})


def test_is_descendant(family):
    assert is_descendant(family, "P004", "P001")
    assert not is_descendant(family, "P001", "P004")
    assert not is_descendant(family, "P003", "P002")


# ============================================================
# DELETE
# ============================================================

def test_delete_missing_returns_false(db):
    assert delete_member(db, "P404") is False


def test_delete_with_children_is_refused(family):
    with pytest.raises(HasChildrenError):
        delete_member(family, "P002")


def test_delete_leaf_decrements_father(family):
    assert delete_member(family, "P004") is True

    assert _get(family, "P004") is None
    father = _get(family, "P002")
    assert father.sons_count == 0
    assert father.version == 3


# ============================================================
# BULK
# ============================================================

def test_bulk_create_orders_parents_first_and_reports_failures(family):
    result = bulk_create_members(
        family,
        [
            {"id": "P011", "first_name": "ابن", "gender": "Male", "father_id": "P010"},
            {"id": "P010", "first_name": "أب", "gender": "Male"},
            {"id": "P001", "first_name": "مكرر", "gender": "Male"},
            {"id": "P012", "first_name": "يتيم", "gender": "Male", "father_id": "P500"},
        ],
    )

    assert result["success"] == 2
    assert result["failed"] == 2
    assert "ID P001: Already exists" in result["errors"]
    assert "ID P012: Father P500 not found" in result["errors"]
    assert _get(family, "P011").father_id == "P010"


# ============================================================
# RETRY
# ============================================================

def _operational(message):
    return OperationalError("UPDATE family_members", {}, Exception(message))


def test_with_retry_recovers_from_transient_error(monkeypatch):
    monkeypatch.setattr(member_store.time, "sleep", lambda s: None)
    calls = []

    def flaky():
        calls.append(1)
        if len(calls) < 3:
            raise _operational("database is locked")
        return "ok"

    assert with_retry(flaky, "flaky") == "ok"
    assert len(calls) == 3


def test_with_retry_does_not_retry_other_errors(monkeypatch):
    monkeypatch.setattr(member_store.time, "sleep", lambda s: None)
    calls = []

    def broken():
        calls.append(1)
        raise _operational("no such table: family_members")

    with pytest.raises(DatabaseError) as exc:
        with_retry(broken, "broken")

    assert len(calls) == 1
    assert exc.value.code == "DB_UNAVAILABLE"


def test_with_retry_gives_up_after_max_retries(monkeypatch):
    monkeypatch.setattr(member_store.time, "sleep", lambda s: None)
    calls = []

    def always_locked():
        calls.append(1)
        raise _operational("database is locked")

    with pytest.raises(DatabaseError):
        with_retry(always_locked, "locked")

    assert len(calls) == member_store.settings.MEMBER_WRITE_MAX_RETRIES
