from __future__ import annotations

from typing import Optional

from fastapi import Header

from onsite_redemption.config import Config


def current_actor(x_actor_id: Optional[str] = Header(None)) -> str:
    """Operator id as forwarded by the authenticating proxy."""
    return (x_actor_id or "").strip() or Config.DEFAULT_ACTOR
