"""HTTP routes: Telegram webhook, daily push trigger and health check.

Collaborators are read from ``request.app.state`` (set up in the lifespan).
"""

import secrets

import structlog
from fastapi import APIRouter, Header, HTTPException, Request

from daily_lesson_bot.broadcast import BroadcastStats, run_broadcast

logger = structlog.get_logger()
router = APIRouter(prefix="/api")


def _matches(given: str | None, expected: str) -> bool:
    return given is not None and secrets.compare_digest(given.encode(), expected.encode())


@router.get("/health")
async def health_check() -> dict:
    """Health check endpoint."""
    return {"status": "ok"}


@router.post("/webhook")
async def telegram_webhook(
    request: Request,
    x_telegram_bot_api_secret_token: str | None = Header(default=None),
) -> dict:
    """Feed one Telegram update to the dispatcher."""
    state = request.app.state
    secret = state.settings.webhook_secret
    if secret and not _matches(x_telegram_bot_api_secret_token, secret):
        logger.warning("webhook_secret_mismatch")
        raise HTTPException(status_code=403, detail="Forbidden")

    update = await request.json()
    await state.dispatcher.feed_webhook_update(state.bot, update)
    return {"ok": True}


@router.api_route("/daily-push", methods=["GET", "POST"])
async def daily_push(
    request: Request,
    authorization: str | None = Header(default=None),
) -> dict:
    """Send the morning message to every registered user."""
    state = request.app.state
    settings = state.settings
    if not settings.cron_secret or not _matches(authorization, f"Bearer {settings.cron_secret}"):
        logger.error("daily_push_unauthorized")
        raise HTTPException(status_code=401, detail="Unauthorized")

    profiles = state.store.list_profiles()
    if not profiles:
        return {
            "success": True,
            "message": "No active users to notify",
            "stats": BroadcastStats().model_dump(),
        }

    machine = state.machine
    stats = await run_broadcast(
        profiles,
        machine.daily_category,
        state.send,
        delay=settings.broadcast_delay_seconds,
        day=machine.today(),
        language=settings.target_language,
    )
    return {"success": True, "message": "Daily push completed", "stats": stats.model_dump()}
