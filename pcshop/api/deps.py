from typing import Optional
from fastapi import BackgroundTasks, Depends, Request
from pcshop.core_settings import get_settings
from pcshop.core.logging_config import set_request_context
from pcshop.domain.errors import AuthenticationRequired
from pcshop.domain.models import Role
from pcshop.application.audit import RequestMeta
from pcshop.application.authorization import Actor
from pcshop.infrastructure.auth_local import decode_access_token
from pcshop.infrastructure.mailer import ReceiptSender

BEARER_PREFIX = "Bearer "

def _actor_from_request(request: Request) -> Optional[Actor]:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None
    if not auth_header.startswith(BEARER_PREFIX):
        raise AuthenticationRequired("Invalid token")
    token_data = decode_access_token(auth_header.split(" ", 1)[1])
    if not token_data or not token_data.get("sub"):
        raise AuthenticationRequired("Invalid token")
    try:
        role = Role(token_data.get("role", Role.USER.value))
    except ValueError:
        raise AuthenticationRequired("Invalid token")
    # Only binds for the request when called from an async dependency
    set_request_context(user_id=token_data["sub"])
    return Actor(user_id=token_data["sub"], role=role)

async def get_optional_actor(request: Request) -> Optional[Actor]:
    """Actor for endpoints that also serve guests."""
    return _actor_from_request(request)

async def get_actor(request: Request) -> Actor:
    actor = _actor_from_request(request)
    if actor is None:
        raise AuthenticationRequired("Authentication required")
    return actor

def get_request_meta(request: Request) -> RequestMeta:
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        ip = forwarded_for.split(",")[0].strip()
    else:
        ip = request.headers.get("x-real-ip") or (request.client.host if request.client else "")
    return RequestMeta(ip_address=ip, user_agent=request.headers.get("user-agent", ""))

def get_receipt_sender() -> ReceiptSender:
    settings = get_settings()
    return ReceiptSender(settings.MAIL_SERVICE_URL, settings.MAIL_TIMEOUT)

class BackgroundReceiptNotifier:
    """Schedules receipts to run after the response is sent."""

    def __init__(self, background_tasks: BackgroundTasks, sender: ReceiptSender):
        self.background_tasks = background_tasks
        self.sender = sender

    def send_receipt(self, order_id: str, locale: str) -> None:
        self.background_tasks.add_task(self.sender.send_receipt, order_id, locale)

def get_receipt_notifier(
    background_tasks: BackgroundTasks,
    sender: ReceiptSender = Depends(get_receipt_sender),
) -> BackgroundReceiptNotifier:
    return BackgroundReceiptNotifier(background_tasks, sender)
