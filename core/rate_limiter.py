# core/rate_limiter.py

from typing import Dict, Tuple, Optional
from fastapi import HTTPException, Request
import time

from core.config import settings


# Simple in-memory rate limiter (per process)
_rate_limit_store: Dict[str, list] = {}

# Sweep identifiers with no attempts left in their window once the store grows past this
PRUNE_THRESHOLD = 1024


def prune_rate_limits(window_seconds: int) -> int:
    """Drop identifiers whose attempts have all left the window. Returns how many were dropped."""
    window_start = time.time() - window_seconds
    stale = [
        key for key, stamps in _rate_limit_store.items()
        if not stamps or stamps[-1] <= window_start
    ]
    for key in stale:
        del _rate_limit_store[key]
    return len(stale)


def check_rate_limit(
    identifier: str,
    max_requests: int = 10,
    window_seconds: int = 60,
    clear_expired: bool = True
) -> Tuple[bool, int]:
    """
    Check if a request should be rate limited.

    Args:
        identifier: Unique identifier (IP address, email, etc.)
        max_requests: Maximum number of requests allowed
        window_seconds: Time window in seconds
        clear_expired: Whether to clean up expired entries

    Returns:
        Tuple of (allowed: bool, remaining: int)
    """
    now = time.time()
    window_start = now - window_seconds

    if clear_expired and len(_rate_limit_store) > PRUNE_THRESHOLD:
        prune_rate_limits(window_seconds)

    requests = _rate_limit_store.get(identifier, [])

    # Remove expired entries
    if clear_expired:
        requests = [ts for ts in requests if ts > window_start]

    if len(requests) >= max_requests:
        _rate_limit_store[identifier] = requests
        return False, 0

    requests.append(now)
    _rate_limit_store[identifier] = requests

    remaining = max_requests - len(requests)
    return True, remaining


def reset_rate_limit(identifier: Optional[str] = None) -> None:
    """Forget attempts for one identifier, or for everyone."""
    if identifier is None:
        _rate_limit_store.clear()
    else:
        _rate_limit_store.pop(identifier, None)


def get_rate_limit_identifier(request: Request, user_id: Optional[str] = None) -> str:
    """
    Get a unique identifier for rate limiting.
    Prefers user_id (the submitted email) if available, otherwise uses IP address.
    """
    if user_id:
        return f"user:{user_id}"

    client_ip = request.client.host if request.client else "unknown"

    # Check for forwarded IP (common behind proxies)
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        client_ip = forwarded_for.split(",")[0].strip()

    return f"ip:{client_ip}"


def require_rate_limit(
    request: Request,
    identifier: Optional[str] = None,
    max_requests: Optional[int] = None,
    window_seconds: Optional[int] = None,
):
    """
    Raise HTTPException 429 if the identifier exceeded its budget.
    Defaults to LOGIN_RATE_LIMIT_MAX attempts per LOGIN_RATE_LIMIT_WINDOW_SECONDS.
    """
    if identifier is None:
        identifier = get_rate_limit_identifier(request)
    if max_requests is None:
        max_requests = settings.LOGIN_RATE_LIMIT_MAX
    if window_seconds is None:
        window_seconds = settings.LOGIN_RATE_LIMIT_WINDOW_SECONDS

    allowed, remaining = check_rate_limit(identifier, max_requests, window_seconds)

    if not allowed:
        raise HTTPException(
            status_code=429,
            detail=f"Too many attempts. Maximum {max_requests} requests per {window_seconds} seconds.",
            headers={
                "X-RateLimit-Limit": str(max_requests),
                "X-RateLimit-Window": str(window_seconds),
                "Retry-After": str(window_seconds),
            }
        )

    return remaining
