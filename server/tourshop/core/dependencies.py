"""FastAPI dependencies for database, authentication, idempotency and outbound clients."""

from typing import Optional

import jwt
from fastapi import Depends, Header
from jwt import PyJWTError

from .config import settings
from .database import get_db
from .exceptions import AuthenticationError, AuthorizationError, ValidationError

ADMIN_ROLE = "admin"


def token_roles(payload: dict) -> set[str]:
    """
    Roles granted by a token.

    Both the singular ``role`` claim and a ``roles`` claim are honoured. A bare
    string counts as one role, never as a sequence of characters.
    """
    roles: set[str] = set()
    for claim in (payload.get("role"), payload.get("roles")):
        if isinstance(claim, str):
            roles.add(claim)
        elif isinstance(claim, (list, tuple)):
            roles.update(role for role in claim if isinstance(role, str))
    return roles


async def get_current_user(
    authorization: Optional[str] = Header(None, alias="Authorization")
) -> dict:
    """
    Authentication dependency that validates Bearer tokens.

    Tokens are issued by the external identity provider and signed with the
    shared HS256 secret. The ``sub`` claim becomes the customer reference.

    Args:
        authorization: Authorization header with Bearer token

    Returns:
        dict: User information from validated token

    Raises:
        AuthenticationError: If token is invalid or missing
    """
    if not authorization:
        raise AuthenticationError(detail="Authorization header missing")

    try:
        scheme, token = authorization.split()
    except ValueError:
        raise AuthenticationError(detail="Invalid authorization header format")

    if scheme.lower() != "bearer":
        raise AuthenticationError(detail="Invalid authentication scheme")

    try:
        payload = jwt.decode(
            token,
            settings.bearer_token_secret,
            algorithms=["HS256"]
        )
    except PyJWTError as e:
        raise AuthenticationError(detail=f"Token validation failed: {e}")

    user_id = payload.get("sub")
    if user_id is None:
        raise AuthenticationError(detail="Invalid token payload")

    return {
        "user_id": str(user_id),
        "username": payload.get("username"),
        "email": payload.get("email"),
        "roles": token_roles(payload),
    }


async def require_admin(user: dict = Depends(get_current_user)) -> dict:
    """Authorization dependency for admin-only routes."""
    if ADMIN_ROLE not in user["roles"]:
        raise AuthorizationError(required_roles=[ADMIN_ROLE])
    return user


async def get_idempotency_key(
    idempotency_key: str = Header(..., alias="Idempotency-Key")
) -> str:
    """
    Extract and validate idempotency key from request headers.

    Raises:
        ValidationError: If idempotency key format is invalid
    """
    if len(idempotency_key) < 1 or len(idempotency_key) > 255:
        raise ValidationError(
            detail="Idempotency key must be between 1 and 255 characters"
        )
    return idempotency_key


def get_payment_gateway():
    """Payment processor client used by the payment routes."""
    from ..payments.paypal import get_paypal_gateway

    return get_paypal_gateway()


def get_exchange_rate_service():
    """Process-wide exchange rate cache."""
    from ..services.exchange_rate_service import exchange_rate_service

    return exchange_rate_service


def get_notification_service():
    """Outbound mail for OTP codes and confirmations."""
    from ..services.notification_service import notification_service

    return notification_service


RequiredAuth = Depends(get_current_user)
AdminAuth = Depends(require_admin)
DatabaseSession = Depends(get_db)
IdempotencyKey = Depends(get_idempotency_key)
PaymentGatewayDep = Depends(get_payment_gateway)
ExchangeRatesDep = Depends(get_exchange_rate_service)
NotificationsDep = Depends(get_notification_service)
