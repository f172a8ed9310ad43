from sqlalchemy.exc import OperationalError

from familytree.core import member_reads
from familytree.core.member_reads import (
    get_gen2_branches,
    get_member_count,
    is_database_available,
    member_exists,
)


def test_gen2_branches_and_count(family):
    assert [m["id"] for m in get_gen2_branches(family)] == ["P002", "P003"]
    assert get_member_count(family) == 4


def test_member_exists(family):
    assert member_exists(family, "P003")
    assert not member_exists(family, "P404")


def test_empty_database_counts_fallback(db):
    assert get_member_count(db) == 0


def test_availability_is_cached(db, monkeypatch):
    assert is_database_available(db) is True

    def broken(*args, **kwargs):
        raise OperationalError("SELECT 1", {}, Exception("connection refused"))

    monkeypatch.setattr(db, "execute", broken)
    assert is_database_available(db) is True

    member_reads.reset_availability_cache()
    assert is_database_available(db) is False
