"""FacilitatorClient против httpx.MockTransport."""
import base64
import json
from unittest.mock import patch

import httpx
import pybreaker
import pytest

from lockpost.errors import SettlementFailed, TransientInfrastructureFailure
from lockpost.services.payments.facilitator import (
    BREAKER_EXCLUDE,
    FacilitatorClient,
    decode_payment_header,
    encode_receipt_header,
)
from lockpost.services.payments.models import SettlementReceipt

PAYMENT = base64.b64encode(json.dumps({"x402Version": 1, "scheme": "exact", "payload": {"tx": "abc"}}).encode()).decode()


def _client(handler, breaker=None):
    http = httpx.Client(transport=httpx.MockTransport(handler))
    breaker = breaker or pybreaker.CircuitBreaker(fail_max=10, exclude=BREAKER_EXCLUDE)
    return FacilitatorClient(base_url="http://f.test/", http_client=http, breaker=breaker)


def _requirements(client):
    return client.build_requirements(
        amount="200000",
        asset="USDCmint",
        network="solana-devnet",
        description="Content by @alice",
        resource="https://lockpost.test/resources/r1",
        mime_type="text/plain",
    )


def test_decode_payment_header():
    assert decode_payment_header(PAYMENT)["payload"] == {"tx": "abc"}
    assert decode_payment_header("not base64 !!") is None
    assert decode_payment_header(base64.b64encode(b"[1,2]").decode()) is None


def test_verify_sends_payload_and_requirements():
    seen = {}

    def handler(request):
        seen["path"] = request.url.path
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"isValid": True})

    client = _client(handler)
    assert client.verify(PAYMENT, _requirements(client)) is True
    assert seen["path"] == "/verify"
    assert seen["body"]["x402Version"] == 1
    assert seen["body"]["paymentPayload"]["payload"] == {"tx": "abc"}
    assert seen["body"]["paymentRequirements"]["maxAmountRequired"] == "200000"


def test_verify_rejected():
    client = _client(lambda r: httpx.Response(200, json={"isValid": False, "invalidReason": "insufficient_funds"}))
    assert client.verify(PAYMENT, _requirements(client)) is False


def test_verify_malformed_header_skips_network():
    def handler(request):
        raise AssertionError("no request expected")

    client = _client(handler)
    assert client.verify("%%%", _requirements(client)) is False


def test_verify_outage_is_transient():
    client = _client(lambda r: httpx.Response(503, json={}))
    with pytest.raises(TransientInfrastructureFailure):
        client.verify(PAYMENT, _requirements(client))


def test_verify_client_error_is_invalid_payment():
    client = _client(lambda r: httpx.Response(400, json={"isValid": False, "invalidReason": "invalid_payload"}))
    assert client.verify(PAYMENT, _requirements(client)) is False


def test_bad_payments_do_not_open_breaker():
    breaker = pybreaker.CircuitBreaker(fail_max=2, exclude=BREAKER_EXCLUDE)
    client = _client(lambda r: httpx.Response(400, json={"isValid": False}), breaker=breaker)
    for _ in range(5):
        assert client.verify(PAYMENT, _requirements(client)) is False
    assert breaker.current_state == pybreaker.STATE_CLOSED


def test_default_breaker_excludes_rejections():
    with patch("lockpost.services.payments.facilitator.get_circuit_breaker") as get_breaker:
        FacilitatorClient(base_url="http://f.test")
    get_breaker.assert_called_once_with("facilitator", exclude=BREAKER_EXCLUDE)


def test_verify_server_errors_open_breaker():
    breaker = pybreaker.CircuitBreaker(fail_max=2, exclude=BREAKER_EXCLUDE)
    client = _client(lambda r: httpx.Response(502, json={}), breaker=breaker)
    for _ in range(2):
        with pytest.raises(TransientInfrastructureFailure):
            client.verify(PAYMENT, _requirements(client))
    assert breaker.current_state == pybreaker.STATE_OPEN


def test_settle_success():
    client = _client(
        lambda r: httpx.Response(
            200, json={"success": True, "transaction": "sig123", "network": "solana-devnet", "payer": "Buyer"}
        )
    )
    receipt = client.settle(PAYMENT, _requirements(client))
    assert receipt.transaction == "sig123"
    assert receipt.payer == "Buyer"


def test_settle_rejected():
    client = _client(lambda r: httpx.Response(200, json={"success": False, "errorReason": "expired"}))
    with pytest.raises(SettlementFailed, match="expired"):
        client.settle(PAYMENT, _requirements(client))


def test_settle_outage():
    client = _client(lambda r: httpx.Response(500, text="boom"))
    with pytest.raises(SettlementFailed):
        client.settle(PAYMENT, _requirements(client))


def test_settle_client_error():
    client = _client(lambda r: httpx.Response(400, json={"errorReason": "insufficient_funds"}))
    with pytest.raises(SettlementFailed, match="insufficient_funds"):
        client.settle(PAYMENT, _requirements(client))


def test_receipt_header_round_trip():
    receipt = SettlementReceipt(success=True, transaction="sig", network="solana", payer="p")
    decoded = json.loads(base64.b64decode(encode_receipt_header(receipt)))
    assert decoded == {"success": True, "transaction": "sig", "network": "solana", "payer": "p"}
