import os
import tempfile

# Settings are read at import time, so the environment is prepared first
_TMP = tempfile.mkdtemp(prefix="familytree-tests-")
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["LOCAL_MEDIA_PATH"] = os.path.join(_TMP, "media")
os.environ["SEED_DATA_PATH"] = os.path.join(_TMP, "missing-seed.json")
os.environ["EMAIL_PROVIDER"] = "none"
os.environ["SMS_PROVIDER"] = "none"
os.environ["PENDING_SUBMISSIONS_PER_HOUR"] = "3"
os.environ["MEMBER_WRITE_RETRY_DELAY_MS"] = "1"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from familytree.auth import create_access_token, hash_password
from familytree.core.member_reads import load_fallback_members, reset_availability_cache
from familytree.core.member_store import create_member
from familytree.database import Base, enable_sqlite_foreign_keys, get_db
from familytree.main import app
from familytree.models.user import User
from familytree.routers.branch_links_router import entry_limiter
from familytree.routers.pending_router import submission_limiter


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def _reset_process_state():
    reset_availability_cache()
    load_fallback_members.cache_clear()
    submission_limiter.reset()
    entry_limiter.reset()
    yield
    reset_availability_cache()
    load_fallback_members.cache_clear()


# ============================================================
# USERS
# ============================================================

def make_user(db, role, email, branch=None, status="ACTIVE") -> User:
    user = User(
        email=email,
        hashed_password=hash_password("password123"),
        name_arabic=f"مستخدم {role}",
        role=role,
        status=status,
        assigned_branch=branch,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token({'sub': user.id})}"}


@pytest.fixture
def super_admin(db):
    return make_user(db, "SUPER_ADMIN", "root@example.com")


@pytest.fixture
def super_admin_headers(super_admin):
    return auth_headers(super_admin)


@pytest.fixture
def admin_headers(db):
    return auth_headers(make_user(db, "ADMIN", "admin@example.com"))


@pytest.fixture
def branch_leader_headers(db):
    return auth_headers(make_user(db, "BRANCH_LEADER", "leader@example.com", branch="فرع أ"))


@pytest.fixture
def member_headers(db):
    return auth_headers(make_user(db, "MEMBER", "member@example.com"))


# ============================================================
# MEMBERS
# ============================================================

@pytest.fixture
def family(db):
    """
    P001 (root, male)
    ├── P002 (male, branch فرع أ)
    │   └── P004 (male)
    └── P003 (female, branch فرع ب)
    """
    create_member(db, {"id": "P001", "first_name": "عبدالله", "gender": "Male"})
    create_member(db, {"id": "P002", "first_name": "محمد", "gender": "Male", "father_id": "P001", "branch": "فرع أ"})
    create_member(db, {"id": "P003", "first_name": "نورة", "gender": "Female", "father_id": "P001", "branch": "فرع ب"})
    create_member(db, {"id": "P004", "first_name": "سعد", "gender": "Male", "father_id": "P002"})
    db.expire_all()
    return db
