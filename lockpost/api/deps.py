"""
FastAPI dependencies: authenticated owner and outbound collaborators.
"""
from typing import Iterator

from fastapi import Cookie, Depends, Header, HTTPException, status

from lockpost.services.payments.facilitator import FacilitatorClient, PaymentFacilitator
from lockpost.services.social.client import SocialClient, SocialUser, XClient
from lockpost.services.social.errors import PermanentSocialError, SocialAPIError

ACCESS_TOKEN_COOKIE = "x_access_token"
REFRESH_TOKEN_COOKIE = "x_refresh_token"


def get_social_client() -> Iterator[SocialClient]:
    client = XClient()
    try:
        yield client
    finally:
        client.close()


def get_facilitator() -> Iterator[PaymentFacilitator]:
    client = FacilitatorClient()
    try:
        yield client
    finally:
        client.close()


def _bearer(authorization: str | None) -> str | None:
    if authorization and authorization.lower().startswith("bearer "):
        return authorization[7:].strip() or None
    return None


def get_current_owner(
    authorization: str | None = Header(None),
    x_access_token: str | None = Cookie(None),
    social: SocialClient = Depends(get_social_client),
) -> SocialUser:
    """Owner identity from bearer token or session cookie, validated against the platform."""
    token = _bearer(authorization) or x_access_token
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    try:
        return social.get_me(token)
    except PermanentSocialError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )
    except SocialAPIError:
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Identity provider unavailable")
