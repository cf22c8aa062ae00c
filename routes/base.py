"""Shared blueprint and helper utilities for DeckLedger routes."""

from __future__ import annotations

from flask import Blueprint, request
from flask_limiter.util import get_remote_address
from flask_login import current_user

views = Blueprint("views", __name__)


def limiter_key_user_or_ip() -> str:
    """Use the authenticated user id when present; otherwise fall back to IP."""
    user_id = current_user.get_id() if current_user else None
    if user_id:
        return f"user:{user_id}"
    addr = get_remote_address() or request.remote_addr or "unknown"
    return f"ip:{addr}"
