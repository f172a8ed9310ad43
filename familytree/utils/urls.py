from familytree.config import settings


def absolute_media_url(path: str | None) -> str | None:
    """Prefix stored /media paths with BASE_URL; external URLs pass through."""
    if not path or path.startswith(("http://", "https://")):
        return path or None
    return f"{settings.BASE_URL.rstrip('/')}{path}"


def branch_entry_url(token: str) -> str:
    return f"{settings.BASE_URL.rstrip('/')}/add-branch/{token}"
