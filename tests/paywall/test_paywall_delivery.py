"""deliver_content: x402 gate, журнал покупок, целостность, settlement."""
import base64

import pytest

from lockpost.errors import ContentCorrupted, PaymentInvalid, PaymentRequired, ResourceNotFound, SettlementFailed
from lockpost.models.purchase import PURCHASE_SETTLE_FAILED, PURCHASE_SETTLED, Purchase
from lockpost.paywall import deliver_content
from lockpost.paywall.watermark import extract_text_watermark, strip_text_watermark
from lockpost.services.content.service import ContentStore


@pytest.fixture
def published(db, store_resource, publish_resource):
    stored = store_resource(content="The premium article body.", message_id="c1")
    publish_resource(stored.resource_id)
    return stored.resource_id


def test_unknown_resource(db, facilitator):
    with pytest.raises(ResourceNotFound):
        deliver_content(db, "missing", None, facilitator)


def test_draft_is_not_served(db, store_resource, facilitator):
    stored = store_resource(message_id="c0")
    with pytest.raises(ResourceNotFound):
        deliver_content(db, stored.resource_id, "payment", facilitator)


def test_scenario_c(db, published, facilitator):
    with pytest.raises(PaymentRequired) as exc:
        deliver_content(db, published, None, facilitator)
    requirements = exc.value.requirements
    assert requirements.max_amount_required == "200000"
    assert requirements.asset
    assert exc.value.error == "X-PAYMENT header is required"
    assert db.query(Purchase).count() == 0

    result = deliver_content(db, published, "signed-payment", facilitator)

    assert result.content == "The premium article body."
    assert result.encoding == "utf-8"
    assert result.metadata.creator == "owner-1"
    assert result.receipt.transaction == "5igTx"
    resource = ContentStore(db).get(published)
    assert resource.total_purchases == 1
    assert resource.total_revenue_minor_units == 20
    purchase = db.query(Purchase).one()
    assert purchase.status == PURCHASE_SETTLED
    assert purchase.settlement_reference == "5igTx"
    assert purchase.payer == "BuyerWallet"


def test_invalid_payment(db, published, facilitator):
    facilitator.valid = False
    with pytest.raises(PaymentInvalid) as exc:
        deliver_content(db, published, "bad-payment", facilitator)
    assert exc.value.requirements.max_amount_required == "200000"
    assert db.query(Purchase).count() == 0
    assert ContentStore(db).get(published).total_purchases == 0


def test_corrupted_content_never_settles(db, published, facilitator):
    resource = ContentStore(db).get(published)
    resource.content_hash = "0" * 64
    db.commit()
    with pytest.raises(ContentCorrupted):
        deliver_content(db, published, "signed-payment", facilitator)
    assert facilitator.settled == []


def test_settlement_failure(db, published, facilitator):
    facilitator.settle_ok = False
    with pytest.raises(SettlementFailed):
        deliver_content(db, published, "signed-payment", facilitator)
    assert db.query(Purchase).one().status == PURCHASE_SETTLE_FAILED


def test_binary_content_is_base64(db, store_resource, publish_resource, facilitator):
    stored = store_resource(content=b"\x89PNG\r\n", message_id="c2", content_type="image/png")
    publish_resource(stored.resource_id)
    result = deliver_content(db, stored.resource_id, "signed-payment", facilitator)
    assert result.encoding == "base64"
    assert base64.b64decode(result.content) == b"\x89PNG\r\n"


def test_watermark_when_enabled(db, published, facilitator):
    resource = ContentStore(db).get(published)
    resource.watermark_enabled = True
    db.commit()
    result = deliver_content(db, published, "signed-payment", facilitator)
    assert extract_text_watermark(result.content).startswith("wm-")
    assert strip_text_watermark(result.content) == "The premium article body."
