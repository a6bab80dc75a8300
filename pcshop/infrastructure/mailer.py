import httpx
from typing import Optional
from pcshop.core.logging_config import get_logger

logger = get_logger(__name__)

class ReceiptSender:
    """Posts receipt requests to the mail service. Never raises."""

    def __init__(self, base_url: Optional[str], timeout: float = 5.0):
        self.base_url = base_url.rstrip("/") if base_url else None
        self.timeout = timeout

    def send_receipt(self, order_id: str, locale: str = "en") -> bool:
        if not self.base_url:
            logger.info(f"Mail service not configured, skipping receipt for order {order_id}")
            return False
        try:
            with httpx.Client(timeout=self.timeout) as client:
                response = client.post(
                    f"{self.base_url}/receipts",
                    json={"orderId": order_id, "locale": locale},
                )
                response.raise_for_status()
        except Exception:
            logger.error(
                f"Failed to send receipt for order {order_id}",
                exc_info=True,
                extra={'extra_fields': {'order_id': order_id, 'locale': locale}}
            )
            return False
        logger.info(f"Receipt sent for order {order_id}")
        return True
