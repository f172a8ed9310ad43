from typing import Optional

from loguru import logger
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from familytree.models.feature_flag import FEATURE_KEYS, FeatureFlag

FLAG_ROW_ID = "default"

DEFAULT_FLAGS: dict[str, bool] = {key: True for key in FEATURE_KEYS.values()}

_COLUMN_BY_KEY = {key: column for column, key in FEATURE_KEYS.items()}


def _row_to_flags(row: FeatureFlag) -> dict[str, bool]:
    return {key: bool(getattr(row, column)) for column, key in FEATURE_KEYS.items()}


def get_flags(db: Session) -> dict[str, bool]:
    """Stored flags over the defaults; defaults alone when the table cannot be read."""
    try:
        row = db.get(FeatureFlag, FLAG_ROW_ID)
    except SQLAlchemyError as e:
        logger.warning(f"Database not available, using default flags: {e}")
        db.rollback()
        return dict(DEFAULT_FLAGS)

    if row is None:
        return dict(DEFAULT_FLAGS)
    return {**DEFAULT_FLAGS, **_row_to_flags(row)}


def valid_updates(body: dict) -> dict[str, bool]:
    """Known keys with real booleans only; everything else is dropped."""
    return {k: v for k, v in body.items() if k in DEFAULT_FLAGS and isinstance(v, bool)}


def save_flags(db: Session, updates: dict[str, bool], updated_by: Optional[str]) -> tuple[dict[str, bool], bool]:
    """
    Upsert the flag row. Returns (flags, fallback) where fallback means the
    database write failed and the flags are only echoed back.
    """
    try:
        row = db.get(FeatureFlag, FLAG_ROW_ID)
        if row is None:
            row = FeatureFlag(id=FLAG_ROW_ID, **{column: True for column in FEATURE_KEYS})
            db.add(row)

        for key, value in updates.items():
            setattr(row, _COLUMN_BY_KEY[key], value)
        row.updated_by = updated_by

        db.commit()
        db.refresh(row)
    except SQLAlchemyError as e:
        logger.error(f"Database error updating flags: {e}")
        db.rollback()
        return {**DEFAULT_FLAGS, **updates}, True

    logger.info(f"Feature flags updated by {updated_by}: {updates}")
    return _row_to_flags(row), False
