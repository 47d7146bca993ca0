"""FastAPI dependencies: get_current_user, require_admin.

Usage in any protected router:
    from src.em_gateway.auth.dependencies import get_current_user

    @router.get("/protected")
    async def protected(user: User = Depends(get_current_user)):
        ...
"""

import logging

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from src.em_common.database import get_db_session, unit_of_work
from src.em_common.errors import AdminRequiredError, InvalidCredentialsError
from src.em_gateway.auth.jwt_handler import decode_token
from src.em_ledger.application.schemas import USERNAME_PATTERN
from src.em_ledger.domain.models import User
from src.em_ledger.infrastructure.persistence import LedgerRepository

logger = logging.getLogger(__name__)

# Tokens come from the external auth service, so there is no tokenUrl here.
bearer_scheme = HTTPBearer(auto_error=False)

_repo = LedgerRepository()

# Reusable 401 exception with WWW-Authenticate header (OAuth2 standard)
_CREDENTIALS_EXCEPTION = HTTPException(
    status_code=status.HTTP_401_UNAUTHORIZED,
    detail="Invalid or expired token",
    headers={"WWW-Authenticate": "Bearer"},
)


async def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db_session),
) -> User:
    """Validate the Bearer token and return the User, creating it on first sight.

    A new user starts with balance 0 and no role.
    Raises HTTP 401 if the token is missing, invalid, expired, or carries a
    malformed username.
    Raises UsernameTakenError (409) when a new subject claims a username
    another subject already holds.
    """
    if credentials is None:
        raise _CREDENTIALS_EXCEPTION
    try:
        payload = decode_token(credentials.credentials)
    except InvalidCredentialsError:
        raise _CREDENTIALS_EXCEPTION from None

    user_id = payload["sub"]
    user = await _repo.get_user(db, user_id)
    if user is not None:
        return user

    username = payload["username"]
    if not USERNAME_PATTERN.match(username):
        raise _CREDENTIALS_EXCEPTION
    async with unit_of_work(db):
        user = await _repo.ensure_user(db, user_id, username)
    logger.info("Registered user %s (%s) on first request", user.id, user.username)
    return user


async def require_admin(current_user: User = Depends(get_current_user)) -> User:
    """Verify the caller carries the is_admin flag.

    Raises HTTP 403 (AppError code 6002) otherwise.
    """
    if not current_user.is_admin:
        raise AdminRequiredError()
    return current_user
