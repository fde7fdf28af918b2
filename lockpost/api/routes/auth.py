"""
X OAuth2 (PKCE) helper routes. The browser keeps the challenge; we keep the
verifier in Redis under the `state` value until the callback arrives.
"""
import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse, RedirectResponse
from urllib.parse import urlencode

from lockpost.api.deps import ACCESS_TOKEN_COOKIE, REFRESH_TOKEN_COOKIE, get_social_client
from lockpost.core.config import settings
from lockpost.schemas.resources import OAuthInit, OAuthSession
from lockpost.services.oauth_sessions import OAuthSessionStore
from lockpost.services.social.client import SocialClient
from lockpost.services.social.errors import SocialAPIError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


def get_session_store() -> OAuthSessionStore:
    return OAuthSessionStore()


@router.post("/init", response_model=OAuthSession)
def init(body: OAuthInit, store: OAuthSessionStore = Depends(get_session_store)):
    return OAuthSession(session_id=store.create(body.verifier))


@router.get("/callback")
def callback(
    code: str = Query(...),
    state: str = Query(...),
    store: OAuthSessionStore = Depends(get_session_store),
    social: SocialClient = Depends(get_social_client),
):
    session = store.pop(state)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Invalid or expired session. Please try logging in again.",
        )
    try:
        tokens = social.exchange_code(code, session["verifier"])
        user = social.get_me(tokens["access_token"])
    except (SocialAPIError, KeyError) as e:
        logger.warning("oauth_callback_failed", extra={"error": str(e)})
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Authentication failed")

    query = urlencode({"userId": user.id, "username": user.handle})
    response = RedirectResponse(url=f"{settings.frontend_url}/auth/success?{query}", status_code=status.HTTP_302_FOUND)
    secure = settings.app_env != "local"
    response.set_cookie(
        ACCESS_TOKEN_COOKIE,
        tokens["access_token"],
        max_age=int(tokens.get("expires_in") or 7200),
        httponly=True,
        secure=secure,
        samesite="lax",
    )
    if tokens.get("refresh_token"):
        response.set_cookie(
            REFRESH_TOKEN_COOKIE,
            tokens["refresh_token"],
            max_age=30 * 24 * 3600,
            httponly=True,
            secure=secure,
            samesite="lax",
        )
    logger.info("oauth_login", extra={"owner_id": user.id})
    return response


@router.post("/logout")
def logout():
    response = JSONResponse({"message": "Logged out"})
    response.delete_cookie(ACCESS_TOKEN_COOKIE)
    response.delete_cookie(REFRESH_TOKEN_COOKIE)
    return response
