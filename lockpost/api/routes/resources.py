"""
Resource routes: creator ingestion (authenticated) and buyer access (x402).
"""
import logging
import secrets
import time

from fastapi import APIRouter, Depends, Header, HTTPException, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from lockpost.api.deps import get_current_owner, get_facilitator
from lockpost.db.session import get_db
from lockpost.errors import (
    ContentCorrupted,
    PaymentRequired,
    ResourceNotFound,
    SettlementFailed,
    TransientInfrastructureFailure,
)
from lockpost.paywall import ResourcePreview, deliver_content
from lockpost.paywall.access import format_price
from lockpost.paywall.config import get_payment_network
from lockpost.paywall.models import PreviewOwner, PreviewPrice
from lockpost.schemas.resources import IngestionQueued, ResourceCreate, ResourceCreated
from lockpost.services.content.service import ContentStore
from lockpost.services.payments.facilitator import PaymentFacilitator, encode_receipt_header
from lockpost.services.payments.models import PaymentRequiredBody
from lockpost.services.social.client import SocialUser
from lockpost.workers.policy import submit
from lockpost.workers.tasks.ingestion import create_resource, ingest_content

logger = logging.getLogger(__name__)

router = APIRouter(tags=["resources"])


def _message_id(body: ResourceCreate) -> str:
    return body.source_message_id or f"api-{int(time.time() * 1000)}-{secrets.token_hex(4)}"


@router.post("/api/resources", response_model=ResourceCreated, status_code=status.HTTP_201_CREATED)
def create(
    body: ResourceCreate,
    owner: SocialUser = Depends(get_current_owner),
    db: Session = Depends(get_db),
):
    """Store content synchronously and return the proof token to the owner."""
    stored = create_resource(
        db,
        owner_id=owner.id,
        handle=owner.handle,
        content=body.content,
        source_platform=body.source_platform,
        source_message_id=_message_id(body),
        content_type=body.content_type,
        price_minor_units=body.price_minor_units,
    )
    return ResourceCreated(
        resource_id=stored.resource_id,
        proof_token=stored.proof_token,
        duplicate=not stored.is_new,
    )


@router.post("/api/resources/async", response_model=IngestionQueued, status_code=status.HTTP_202_ACCEPTED)
def create_async(body: ResourceCreate, owner: SocialUser = Depends(get_current_owner)):
    """Enqueue ingestion; the proof token arrives by direct message."""
    try:
        task_id = submit(
            ingest_content,
            owner_id=owner.id,
            handle=owner.handle,
            content=body.content,
            source_message_id=_message_id(body),
            source_platform=body.source_platform,
            content_type=body.content_type,
            price_minor_units=body.price_minor_units,
        )
    except TransientInfrastructureFailure:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Queue unavailable")
    return IngestionQueued(task_id=task_id)


@router.get("/resources/{resource_id}")
def fetch(
    resource_id: str,
    x_payment: str | None = Header(None, alias="X-PAYMENT"),
    db: Session = Depends(get_db),
    facilitator: PaymentFacilitator = Depends(get_facilitator),
):
    try:
        result = deliver_content(db, resource_id, x_payment, facilitator)
    except ResourceNotFound:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Resource not found")
    except PaymentRequired as e:
        logger.info("paywall_payment_required", extra={"resource_id": resource_id, "reason": e.code})
        body = PaymentRequiredBody(error=e.error, accepts=[e.requirements])
        return JSONResponse(status_code=status.HTTP_402_PAYMENT_REQUIRED, content=body.wire())
    except ContentCorrupted:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Content unavailable")
    except SettlementFailed:
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Payment settlement failed")
    except TransientInfrastructureFailure:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Payment service unavailable")

    return JSONResponse(
        content={
            "content": result.content,
            "encoding": result.encoding,
            "metadata": result.metadata.model_dump(mode="json"),
        },
        headers={
            "X-PAYMENT-RESPONSE": encode_receipt_header(result.receipt),
            "Access-Control-Expose-Headers": "X-PAYMENT-RESPONSE",
        },
    )


@router.get("/resources/{resource_id}/preview", response_model=ResourcePreview)
def preview(resource_id: str, db: Session = Depends(get_db)):
    """Public fields only: no ciphertext, proof data or purchase history."""
    resource = ContentStore(db).get_published(resource_id)
    if resource is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Resource not found")
    return ResourcePreview(
        id=resource.id,
        owner=PreviewOwner(id=resource.owner_id, handle=resource.owner_handle),
        content_type=resource.content_type,
        price=PreviewPrice(amount=format_price(resource.price_minor_units), currency=resource.currency),
        chain=resource.chain,
        network=get_payment_network(),
        social_post_id=resource.social_post_id,
        social_post_url=resource.social_post_url,
        status=resource.status,
    )
