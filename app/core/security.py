# app/core/security.py
#
# Tokens are issued by the identity service; this module only validates them.

from jose import jwt, ExpiredSignatureError, JWTError

from app.core.config import (
    JWT_ACCESS_SECRET_KEY,
    JWT_ALGORITHM,
)
from app.core.exceptions import Unauthorized

# Claims every access token must carry
REQUIRED_CLAIMS = ("sub", "token_version")


# =====================================================
# DECODE + VALIDATE TOKEN
# =====================================================
def decode_access_token(token: str) -> dict:
    try:
        payload = jwt.decode(
            token,
            JWT_ACCESS_SECRET_KEY,
            algorithms=[JWT_ALGORITHM],
        )
    except ExpiredSignatureError:
        raise Unauthorized("Session expired")
    except JWTError:
        raise Unauthorized("Invalid token")

    if payload.get("type") != "access":
        raise Unauthorized("Invalid token type")

    missing = [claim for claim in REQUIRED_CLAIMS if payload.get(claim) is None]
    if missing:
        raise Unauthorized(f"Token is missing claims: {', '.join(missing)}")

    return payload
