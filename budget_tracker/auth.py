import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from budget_tracker.config import settings
from budget_tracker.exceptions import UnauthorizedError

_bearer = HTTPBearer()


async def verify_token(
    credentials: HTTPAuthorizationCredentials = Depends(_bearer),  # noqa: B008
) -> dict:
    try:
        return jwt.decode(credentials.credentials, settings.jwt_secret, algorithms=["HS256"])
    except jwt.ExpiredSignatureError:
        raise UnauthorizedError("Token has expired") from None
    except jwt.InvalidTokenError:
        raise UnauthorizedError("Invalid token") from None


async def current_owner(claims: dict = Depends(verify_token)) -> str:  # noqa: B008
    """Resolve the owner id budgets and transactions are scoped to."""
    owner_id = claims.get("sub")
    if not owner_id:
        raise UnauthorizedError("Token has no subject")
    return str(owner_id)
