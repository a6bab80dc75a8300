from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool
from pcshop.core_settings import get_settings
from pcshop.core.logging_config import get_logger
from pcshop.infrastructure.db import get_db
from pcshop.infrastructure.payment_gateway import SIGNATURE_HEADER, verify_signature
from pcshop.application.audit import RequestMeta
from pcshop.application.payments import PaymentWebhookService
from pcshop.application.schemas import PaymentEvent, WebhookAck
from .deps import get_request_meta, get_receipt_notifier, BackgroundReceiptNotifier

logger = get_logger(__name__)

router = APIRouter(prefix="/webhook", tags=["payments"])

@router.post("/payment", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    db: Session = Depends(get_db),
    notifier: BackgroundReceiptNotifier = Depends(get_receipt_notifier),
    meta: RequestMeta = Depends(get_request_meta),
):
    """Gateway callback. 200 for anything well-signed so the gateway does not retry-storm."""
    settings = get_settings()
    body = await request.body()
    verify_signature(
        body,
        request.headers.get(SIGNATURE_HEADER),
        settings.PAYMENT_WEBHOOK_SECRET,
        settings.PAYMENT_SIGNATURE_TOLERANCE,
    )
    try:
        event = PaymentEvent.model_validate_json(body)
    except ValidationError as e:
        logger.warning(
            "Ignoring malformed payment event",
            extra={'extra_fields': {'errors': e.errors(include_url=False, include_context=False, include_input=False)}}
        )
        return WebhookAck(received=True)

    outcome = await run_in_threadpool(PaymentWebhookService(db).handle, event, notifier, meta)
    logger.info(
        f"Payment event {event.event_type} handled: {outcome.value}",
        extra={'extra_fields': {'event_id': event.id, 'order_id': event.metadata.order_id}}
    )
    return WebhookAck(received=True)
