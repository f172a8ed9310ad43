from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker

from familytree.config import settings


def _engine_kwargs(url: str) -> dict:
    # SQLite connections are shared across FastAPI's threadpool
    if url.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {"pool_pre_ping": True}


engine = create_engine(settings.DATABASE_URL, **_engine_kwargs(settings.DATABASE_URL))


def enable_sqlite_foreign_keys(target_engine):
    """
    SQLite ignores FOREIGN KEY clauses unless the pragma is set per connection.
    """
    if target_engine.dialect.name != "sqlite":
        return

    @event.listens_for(target_engine, "connect")
    def _set_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


enable_sqlite_foreign_keys(engine)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

Base = declarative_base()


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
