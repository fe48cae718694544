import json
from datetime import datetime, timezone
from typing import Callable

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, Response
from pydantic import ValidationError
from sqlalchemy.orm import Session

from app.config import settings
from app.database import Database, get_database
from app.logging_config import get_logger
from app.schemas.line import LineEvent, LineWebhookRequest, LineWebhookResponse
from app.services.ai_service import get_llm_provider
from app.services.error_service import MSG_POSTBACK_FAILED, classify_error
from app.services.line_service import LineService, verify_signature
from app.services.mode_router import route_postback, route_text_message

logger = get_logger("webhook")

router = APIRouter()


def _handle_text_event(db: Session, event: LineEvent) -> str:
    return route_text_message(db, get_llm_provider, event.user_id, event.message.text or "")


def _handle_postback_event(db: Session, event: LineEvent) -> str:
    return route_postback(db, event.user_id, event.postback.data)


def _pick_handler(event: LineEvent) -> tuple[Callable[[Session, LineEvent], str], str] | None:
    if event.type == "postback" and event.postback is not None:
        return _handle_postback_event, MSG_POSTBACK_FAILED
    if event.type == "message" and event.message is not None and event.message.type == "text":
        return _handle_text_event, ""
    return None


def _deliver_reply(line: LineService, event: LineEvent, text: str) -> None:
    if not event.replyToken:
        logger.warning("Event has no reply token, dropping reply", extra={"context": {"user_id": event.user_id}})
        return
    result = line.reply_text(event.replyToken, text)
    if not result.ok:
        logger.error(
            f"Failed to deliver LINE reply: {result.error}",
            extra={"context": {"user_id": event.user_id, "error_code": result.error_code}},
        )


def process_event(database: Database, event: LineEvent) -> None:
    """Handle one webhook event after the HTTP response has been sent.

    Owns its session: commit on success, rollback on failure, always close.
    Never raises; the user gets a classified error reply instead.
    """
    picked = _pick_handler(event)
    if picked is None:
        logger.debug(f"Ignoring LINE event: {event.type}", extra={"context": {"user_id": event.user_id}})
        return
    handler, failure_message = picked

    db = database.session()
    try:
        try:
            reply = handler(db, event)
            db.commit()
        except Exception as e:
            db.rollback()
            logger.error(
                f"Event processing failed: {e}",
                extra={"context": {"user_id": event.user_id, "event_type": event.type}},
                exc_info=True,
            )
            reply = failure_message or classify_error(e)

        line = LineService(settings.line_channel_access_token, settings.line_api_base_url)
        _deliver_reply(line, event, reply)
    except Exception as e:
        logger.error(f"Unhandled error in background event task: {e}", exc_info=True)
    finally:
        db.close()


@router.post("/webhook", response_model=LineWebhookResponse)
async def handle_line_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    database: Database = Depends(get_database),
):
    """
    LINE webhook:
    - verify x-line-signature against the raw body
    - schedule one background task per event
    - answer 200 immediately
    """
    missing = settings.missing("line_channel_access_token", "line_channel_secret")
    if missing:
        logger.error(f"LINE configuration missing: {', '.join(missing)}")
        raise HTTPException(status_code=500, detail=f"{missing[0]} environment variable is not set")

    signature = request.headers.get("x-line-signature")
    if not signature:
        raise HTTPException(status_code=400, detail="Missing x-line-signature header")

    body = await request.body()
    if not verify_signature(body, signature, settings.line_channel_secret):
        logger.warning("LINE signature verification failed")
        raise HTTPException(status_code=401, detail="Signature verification failed")

    try:
        payload = LineWebhookRequest.model_validate(json.loads(body))
    except (ValueError, ValidationError) as e:
        logger.warning(f"Malformed LINE webhook body: {e}")
        raise HTTPException(status_code=400, detail="Malformed webhook body")

    for event in payload.events:
        background_tasks.add_task(process_event, database, event)

    logger.info(f"Webhook accepted {len(payload.events)} event(s)")
    return LineWebhookResponse(success=True)


@router.get("/webhook")
async def webhook_status():
    return {
        "message": "LINE webhook endpoint is running",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.head("/webhook")
async def webhook_head():
    return Response(status_code=200)
