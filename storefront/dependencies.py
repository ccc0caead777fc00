from typing import Annotated, Callable

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from storefront.config import settings
from storefront.services.checkout import PaymentConfig
from storefront.services.nowpayments_service import NowPaymentsClient
from storefront.services.reconciler import log_service_activation

security = HTTPBearer(auto_error=False)

ACCESS_TOKEN_ROLES = {None, "authenticated"}


def decode_user_id(token: str) -> str | None:
    """Resolve an identity-provider access token to its user id, or None."""
    audience = settings.JWT_AUDIENCE or None
    try:
        payload = jwt.decode(
            token,
            settings.JWT_SECRET,
            algorithms=[settings.JWT_ALGORITHM],
            audience=audience,
            options={"verify_aud": audience is not None},
        )
    except JWTError:
        return None
    sub = payload.get("sub")
    if not isinstance(sub, str) or not sub.strip():
        return None
    if payload.get("role") not in ACCESS_TOKEN_ROLES:
        return None
    return sub.strip()


def get_current_user_id_optional(
    credentials: Annotated[HTTPAuthorizationCredentials | None, Depends(security)],
) -> str | None:
    if not credentials:
        return None
    return decode_user_id(credentials.credentials)


def get_current_user_id(
    user_id: Annotated[str | None, Depends(get_current_user_id_optional)],
) -> str:
    if user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return user_id


def get_payment_config() -> PaymentConfig:
    return PaymentConfig.from_settings(settings)


def get_invoice_provider(
    config: Annotated[PaymentConfig, Depends(get_payment_config)],
) -> NowPaymentsClient | None:
    if not config.api_key:
        return None
    return NowPaymentsClient(
        api_key=config.api_key,
        base_url=config.api_url,
        timeout=config.timeout_seconds,
    )


def get_activation_hook() -> Callable[[str], None]:
    return log_service_activation
