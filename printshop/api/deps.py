"""
FastAPI dependencies for authentication and service construction.

Bearer tokens are issued by the external identity provider. This module
verifies them, turns their claims into an ``ActorContext`` and binds the
actor to the logging context for the rest of the request.
"""

from typing import Annotated, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from redis.exceptions import RedisError
from sqlalchemy.ext.asyncio import AsyncSession

from printshop.cache.redis_client import RedisClient, get_redis_client
from printshop.core.config import get_settings
from printshop.core.logging import get_logger, set_actor
from printshop.core.security import ActorContext, TokenError, actor_from_token
from printshop.database.connection import get_db
from printshop.services.notifications.service import NotificationService
from printshop.services.orders.service import OrderService
from printshop.services.pricing.rates import ExchangeRateResolver
from printshop.services.pricing.repository import PricingRepository
from printshop.services.quotations.service import QuotationService

logger = get_logger(__name__)

security = HTTPBearer(auto_error=False)


async def get_current_actor(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> ActorContext:
    """
    Validate the bearer token and build the acting user's context.

    Args:
        credentials: HTTP Bearer token from Authorization header

    Returns:
        ActorContext: Acting user, role and company

    Raises:
        HTTPException: 401 if the token is missing, invalid or expired
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    if credentials is None:
        logger.warning("Authentication failed: No credentials provided")
        raise credentials_exception

    try:
        actor = actor_from_token(credentials.credentials)
    except TokenError as e:
        logger.warning(
            "Authentication failed: token rejected",
            code=e.code,
            error=str(e),
        )
        raise credentials_exception

    set_actor(str(actor.user_id), actor.role.value)
    return actor


def get_notification_service() -> NotificationService:
    return NotificationService()


async def get_rate_cache() -> Optional[RedisClient]:
    """
    Shared Redis client for exchange rate caching.

    Returns None when caching is disabled or Redis cannot be reached;
    rates are then read from the database.
    """
    if not get_settings().exchange_rate_cache_enabled:
        return None
    try:
        return await get_redis_client()
    except RedisError as e:
        logger.warning("Exchange rate cache unavailable", error=str(e))
        return None


async def get_rate_resolver(
    db: Annotated[AsyncSession, Depends(get_db)],
    rate_cache: Annotated[Optional[RedisClient], Depends(get_rate_cache)],
) -> ExchangeRateResolver:
    return ExchangeRateResolver(PricingRepository(db), redis_client=rate_cache)


async def get_order_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    notifications: Annotated[NotificationService, Depends(get_notification_service)],
    rates: Annotated[ExchangeRateResolver, Depends(get_rate_resolver)],
) -> OrderService:
    return OrderService(db, notification_service=notifications, rate_resolver=rates)


async def get_quotation_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    notifications: Annotated[NotificationService, Depends(get_notification_service)],
    rates: Annotated[ExchangeRateResolver, Depends(get_rate_resolver)],
) -> QuotationService:
    return QuotationService(db, notification_service=notifications, rate_resolver=rates)


CurrentActor = Annotated[ActorContext, Depends(get_current_actor)]
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
OrderServiceDep = Annotated[OrderService, Depends(get_order_service)]
QuotationServiceDep = Annotated[QuotationService, Depends(get_quotation_service)]
