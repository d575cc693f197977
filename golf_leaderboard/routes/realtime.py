"""Bridge hosted database webhooks into the in-process change feed.

Supabase database webhooks POST ``{"type", "table", "schema", "record",
"old_record"}`` for every row change. Publishing them here is what makes
leaderboards served by the REST store live.
"""

from __future__ import annotations

import hmac
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import BaseModel, Field

from golf_leaderboard.config import Settings, get_settings
from golf_leaderboard.store import ChangeEvent, ChangeFeed
from golf_leaderboard.store.base import CHANGE_TYPES

from .deps import get_change_feed

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/realtime", tags=["realtime"])


class RowChangeIn(BaseModel):
    type: str
    table: str
    db_schema: str | None = Field(default=None, alias="schema")
    record: Dict[str, Any] | None = None
    old_record: Dict[str, Any] | None = None


def require_webhook_secret(
    x_webhook_secret: str | None = Header(default=None, alias="x-webhook-secret"),
    settings: Settings = Depends(get_settings),
) -> None:
    expected = settings.realtime_webhook_secret
    if not expected:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="realtime webhook not configured",
        )
    if not x_webhook_secret or not hmac.compare_digest(x_webhook_secret, expected):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid webhook secret"
        )


@router.post("/webhook", dependencies=[Depends(require_webhook_secret)])
def receive_row_change(
    body: RowChangeIn, feed: ChangeFeed = Depends(get_change_feed)
) -> Dict[str, Any]:
    change_type = body.type.strip().upper()
    if change_type not in CHANGE_TYPES:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=f"type must be one of {', '.join(CHANGE_TYPES)}",
        )
    delivered = feed.publish(
        ChangeEvent(
            table=body.table,
            type=change_type,
            record=dict(body.record or {}),
            old_record=dict(body.old_record or {}),
        )
    )
    logger.debug("%s on %s delivered to %d boards", change_type, body.table, delivered)
    return {"delivered": delivered}


__all__ = ["router", "require_webhook_secret"]
