# core/utils.py

import re
from datetime import datetime, timezone
from typing import Optional

# local@domain.tld, no whitespace
EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and bool(EMAIL_PATTERN.match(email))


def normalize_email(email: str) -> str:
    """Emails are stored and compared lower-case."""
    return (email or "").strip().lower()


def escape_like(value: str) -> str:
    """Escape LIKE wildcards so a value matches literally."""
    return (
        value.replace("\\", "\\\\")
        .replace("%", "\\%")
        .replace("_", "\\_")
    )


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()
