"""Payment gateway webhook signatures.

The gateway sends ``Payment-Signature: t=<unix seconds>,v1=<hex digest>``,
the Stripe webhook scheme, so verification is delegated to the stripe SDK.
"""

import hashlib
import hmac
import time
from typing import Optional

import stripe

from pcshop.domain.errors import InvalidSignature

SIGNATURE_HEADER = "Payment-Signature"

def sign_payload(payload: bytes, secret: str, timestamp: Optional[int] = None) -> str:
    """Build a header value the way the gateway does. Used by tests and local tooling."""
    timestamp = int(time.time()) if timestamp is None else timestamp
    digest = hmac.new(secret.encode(), f"{timestamp}.".encode() + payload, hashlib.sha256).hexdigest()
    return f"t={timestamp},{stripe.WebhookSignature.EXPECTED_SCHEME}={digest}"

def verify_signature(payload: bytes, header: Optional[str], secret: str, tolerance: int = 300) -> None:
    """Raise InvalidSignature unless ``header`` signs ``payload`` with ``secret``.

    A zero tolerance disables the timestamp age check.
    """
    if not header:
        raise InvalidSignature(f"Missing {SIGNATURE_HEADER} header")
    try:
        stripe.WebhookSignature.verify_header(payload.decode("utf-8"), header, secret, tolerance=tolerance)
    except UnicodeDecodeError:
        raise InvalidSignature("Payload is not valid UTF-8")
    except stripe.SignatureVerificationError as e:
        raise InvalidSignature(e.user_message or "Invalid signature")
