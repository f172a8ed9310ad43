from fastapi import Request
from fastapi.responses import JSONResponse
from loguru import logger


# ============================================================
# DATA LAYER ERRORS
# ============================================================

class DatabaseError(Exception):
    code: str | None = None

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code


class ConcurrencyError(DatabaseError):
    """Raised when a member was modified by someone else since it was read."""

    code = "CONCURRENCY_ERROR"


class DuplicateIdError(DatabaseError):
    code = "DUPLICATE_ID"

    def __init__(self, member_id: str):
        super().__init__(f"Member with ID {member_id} already exists")
        self.member_id = member_id


class NotFoundError(DatabaseError):
    code = "NOT_FOUND"


class HasChildrenError(DatabaseError):
    code = "HAS_CHILDREN"


class InvalidParentError(DatabaseError):
    code = "INVALID_PARENT"


class InvalidDataError(DatabaseError):
    code = "INVALID_DATA"


# Arabic text shown next to each data-layer error
_DATABASE_ERROR_AR = {
    "CONCURRENCY_ERROR": "تم تعديل هذا العضو من قبل مستخدم آخر، يرجى التحديث والمحاولة مرة أخرى",
    "DUPLICATE_ID": "رقم العضو مستخدم مسبقاً",
    "NOT_FOUND": "العضو غير موجود",
    "HAS_CHILDREN": "لا يمكن حذف عضو لديه أبناء",
    "INVALID_PARENT": "الأب المحدد غير صالح",
    "INVALID_DATA": "البيانات المدخلة غير صالحة",
}

_DATABASE_ERROR_STATUS = {
    "CONCURRENCY_ERROR": 409,
    "DUPLICATE_ID": 409,
    "NOT_FOUND": 404,
    "HAS_CHILDREN": 400,
    "INVALID_PARENT": 400,
    "INVALID_DATA": 400,
}


# ============================================================
# API ERRORS
# ============================================================

class ApiError(Exception):
    """
    Request-level failure rendered as {success, error, errorAr}.
    """

    def __init__(self, status_code: int, error: str, error_ar: str, **extra):
        super().__init__(error)
        self.status_code = status_code
        self.error = error
        self.error_ar = error_ar
        self.extra = extra
        self.headers: dict[str, str] | None = extra.pop("headers", None)


def error_payload(error: str, error_ar: str, **extra) -> dict:
    payload = {"success": False, "error": error, "errorAr": error_ar}
    payload.update(extra)
    return payload


# ============================================================
# HANDLERS
# ============================================================

async def api_error_handler(request: Request, exc: ApiError):
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload(exc.error, exc.error_ar, **exc.extra),
        headers=exc.headers,
    )


async def database_error_handler(request: Request, exc: DatabaseError):
    status_code = _DATABASE_ERROR_STATUS.get(exc.code, 500)
    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
    else:
        logger.warning(f"{request.method} {request.url.path} rejected: {exc.message}")

    return JSONResponse(
        status_code=status_code,
        content=error_payload(
            exc.message,
            _DATABASE_ERROR_AR.get(exc.code, "حدث خطأ في قاعدة البيانات"),
            code=exc.code,
        ),
    )


def register_error_handlers(app) -> None:
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(DatabaseError, database_error_handler)
