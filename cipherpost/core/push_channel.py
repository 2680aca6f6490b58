"""
Push channel client.

The push transport is an external gateway that owns Web Push encryption and
delivery. This module only forwards delivery instructions to it and
classifies the outcome per subscription.
"""
import enum
import logging
from typing import TYPE_CHECKING, Any, Dict, Optional, Protocol

import httpx

from cipherpost.config import settings

if TYPE_CHECKING:
    from cipherpost.models.push_subscription import UserPushSubscription

logger = logging.getLogger(__name__)


class PushResult(str, enum.Enum):
    """Outcome of a single delivery attempt."""
    DELIVERED = "delivered"
    GONE = "gone"
    TRANSIENT_FAILURE = "transient_failure"


class PushChannel(Protocol):
    """Anything able to deliver a metadata-only notification to one subscription."""

    async def send(
        self,
        subscription: "UserPushSubscription",
        metadata: Dict[str, Any],
    ) -> PushResult:
        ...


class HttpPushChannel:
    """
    Push channel backed by an HTTP push gateway.

    Status mapping:
    - 2xx: delivered
    - 404 / 410: the endpoint is gone (expired or unregistered)
    - anything else, or a transport error: transient failure
    """

    GONE_STATUS_CODES = (404, 410)

    def __init__(
        self,
        gateway_url: str,
        api_key: str = "",
        timeout: float = 5.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.gateway_url = gateway_url
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    def _get_headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    async def send(
        self,
        subscription: "UserPushSubscription",
        metadata: Dict[str, Any],
    ) -> PushResult:
        """
        Forward one delivery instruction to the gateway.

        Args:
            subscription: Target device subscription
            metadata: Notification metadata (never message content)

        Returns:
            PushResult classifying the gateway response
        """
        payload = {
            "endpoint": subscription.endpoint,
            "keys": {"p256dh": subscription.p256dh, "auth": subscription.auth},
            "metadata": metadata,
        }

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                response = await client.post(
                    self.gateway_url,
                    headers=self._get_headers(),
                    json=payload,
                )
            except httpx.RequestError as e:
                logger.warning(
                    "Push gateway unreachable for subscription %s: %s",
                    subscription.id,
                    type(e).__name__,
                )
                return PushResult.TRANSIENT_FAILURE

        if response.is_success:
            return PushResult.DELIVERED
        if response.status_code in self.GONE_STATUS_CODES:
            return PushResult.GONE

        logger.warning(
            "Push gateway returned %d for subscription %s",
            response.status_code,
            subscription.id,
        )
        return PushResult.TRANSIENT_FAILURE


def get_push_channel() -> Optional[HttpPushChannel]:
    """Build the configured push channel, or None when push is disabled."""
    if not settings.push_enabled:
        return None
    return HttpPushChannel(
        gateway_url=settings.push_gateway_url,
        api_key=settings.push_gateway_api_key,
        timeout=settings.push_timeout_seconds,
    )
