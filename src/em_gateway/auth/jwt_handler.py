"""Identity token verification.

Tokens are issued by the external auth service; this service only decodes
them. Both sides share one JWT_SECRET (HS256). Required claims:
  - sub:      stable user id
  - username: display name, 3-20 chars of [A-Za-z0-9_]

MVP NOTE: No token revocation. A token is accepted until its exp claim.
"""

from jose import JWTError, jwt

from config.settings import settings
from src.em_common.errors import InvalidCredentialsError

_ALGORITHM = settings.JWT_ALGORITHM  # "HS256"


def decode_token(token: str) -> dict[str, str]:
    """Decode and validate an identity token.

    Returns:
        Decoded payload dict with at minimum {"sub": ..., "username": ...}.

    Raises:
        InvalidCredentialsError: signature/expiry invalid or a claim is missing.
    """
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[_ALGORITHM],  # Explicit list prevents algorithm confusion
        )
    except JWTError:
        raise InvalidCredentialsError() from None

    if not payload.get("sub") or not payload.get("username"):
        raise InvalidCredentialsError()
    return payload
