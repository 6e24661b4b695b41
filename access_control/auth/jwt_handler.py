import logging
from typing import Optional
from jose import JWTError, jwt
from access_control.core.config import settings

logger = logging.getLogger(__name__)

def decode_access_token(token: str) -> Optional[dict]:
    """Decode and validate an externally issued access token"""
    try:
        # jose rejects expired tokens when an exp claim is present
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.debug(f"Access token rejected: {str(e)}")
        return None

    # Check token type when the issuer sets one
    token_type = payload.get("type")
    if token_type is not None and token_type != "access":
        return None

    if payload.get("sub") is None:
        return None

    return payload

def get_user_id_from_token(token: str) -> Optional[int]:
    payload = decode_access_token(token)
    if payload is None:
        return None
    try:
        return int(payload["sub"])
    except (TypeError, ValueError):
        return None
