# storefront/utils/auth.py
import logging
from typing import Optional

from jose import JWTError, jwt
from starlette.requests import Request

logger = logging.getLogger(__name__)

# Cookie set by the identity provider on same-site page requests
SESSION_COOKIE = "__session"


# Token from "Authorization: Bearer ..." or, for page navigations, the session cookie
def extract_session_token(request: Request) -> Optional[str]:
    authorization = request.headers.get("authorization") or ""
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.cookies.get(SESSION_COOKIE) or None


# Verify a session token issued by the identity provider.
# Returns the claims, or None when the session is missing, invalid or expired.
def decode_session_token(token: Optional[str], key: Optional[str], algorithm: str) -> Optional[dict]:
    if not token:
        return None
    if not key:
        logger.warning("AUTH_JWT_KEY is not configured; rejecting session on protected route")
        return None
    try:
        claims = jwt.decode(token, key, algorithms=[algorithm], options={"verify_aud": False})
    except JWTError as e:
        logger.info("Rejected session token: %s", e)
        return None

    # A session without a subject does not identify a user
    if not claims.get("sub"):
        return None
    return claims
