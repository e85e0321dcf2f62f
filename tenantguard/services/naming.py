from __future__ import annotations

import re
import secrets
import time
from uuid import UUID

from tenantguard.core.errors import BadRequestError

MAX_NAME_LENGTH = 20

_NON_SLUG = re.compile(r"[^a-z0-9]+")


def validate_name(name: str) -> str:
    """Organization and project names: 1..20 characters, taken as-is."""
    if len(name) == 0:
        raise BadRequestError("Name is required")
    if len(name) > MAX_NAME_LENGTH:
        raise BadRequestError(f"Name must be {MAX_NAME_LENGTH} characters or fewer")
    return name


def slugify(value: str) -> str:
    return _NON_SLUG.sub("-", value.lower()).strip("-")


def generate_slug(name: str, user_id: UUID, *, fallback: str = "item") -> str:
    """``{name-slug}-{first 8 of user id}-{ms timestamp}{4 hex}``."""
    base = slugify(name) or fallback
    stamp = f"{int(time.time() * 1000)}{secrets.token_hex(2)}"
    return f"{base}-{str(user_id)[:8]}-{stamp}"
