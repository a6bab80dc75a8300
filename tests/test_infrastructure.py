import json
import logging
import warnings

from pcshop.core_settings import Settings
from pcshop.core.logging_config import SecurityFilter, StructuredFormatter, set_request_context
from pcshop.application.schemas import CamelModel, StockItemUpdate
from pcshop.infrastructure.auth_local import create_access_token, decode_access_token
from pcshop.infrastructure.cache import ResponseCache
from pcshop.infrastructure.mailer import ReceiptSender

def _record(message):
    return logging.LogRecord("pcshop.test", logging.INFO, __file__, 1, message, None, None)

def test_security_filter_redacts_secrets():
    record = _record("Payment-Signature: t=1700000000,v1=abcdef token=xyz user=u1")
    assert SecurityFilter().filter(record)
    message = record.getMessage()
    assert "abcdef" not in message
    assert "xyz" not in message
    assert "user=u1" in message

def test_structured_formatter_emits_json_with_context():
    set_request_context(request_id="req-42")
    record = _record("Order o-1 created")
    record.extra_fields = {"order_id": "o-1", "total": "519.79"}

    payload = json.loads(StructuredFormatter().format(record))

    assert payload["message"] == "Order o-1 created"
    assert payload["level"] == "INFO"
    assert payload["trace"]["request_id"] == "req-42"
    assert payload["entity"] == {"order_id": "o-1"}
    assert payload["custom"] == {"total": "519.79"}

def test_access_token_round_trip():
    token = create_access_token("u1", "SPECIALIST")
    claims = decode_access_token(token)
    assert claims["sub"] == "u1"
    assert claims["role"] == "SPECIALIST"
    assert decode_access_token(token + "x") is None
    assert decode_access_token(create_access_token("u1", "USER", expires_minutes=-5)) is None

def test_local_cache_prefix_invalidation():
    cache = ResponseCache(ttl=60)
    cache.set("public:configurations", [{"id": "c1"}])
    cache.set("other", 1)

    assert cache.get("public:configurations") == [{"id": "c1"}]
    cache.delete_prefix("public:")
    assert cache.get("public:configurations") is None
    assert cache.get("other") == 1

def test_unreachable_redis_falls_back_to_memory():
    cache = ResponseCache("redis://127.0.0.1:1/0", ttl=60)
    assert cache.redis_client is None
    cache.set("k", "v")
    assert cache.get("k") == "v"

def test_receipt_sender_never_raises():
    assert ReceiptSender(None).send_receipt("o-1") is False
    assert ReceiptSender("http://127.0.0.1:1", timeout=0.5).send_receipt("o-1", "en") is False

def test_settings_and_schemas_emit_no_deprecation_warnings():
    with warnings.catch_warnings():
        warnings.simplefilter("error")
        settings = Settings()
        changes = StockItemUpdate.model_validate({"quantity": 3}).model_dump(exclude_unset=True)

    assert settings.SHIPPING_RATES["STANDARD"] == 0
    assert changes == {"quantity": 3}
    assert "Config" not in vars(CamelModel)
    assert "Config" not in vars(Settings)
