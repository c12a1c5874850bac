"""
Webhook HTTP transport.

One POST per attempt. Any non-2xx status or network failure is a
TransientDeliveryError so the dispatcher retries it with backoff.
"""

import logging
from typing import Mapping, Optional

import httpx

from ..outbox.errors import TransientDeliveryError

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = "ReservePlatformWebhook/1.0"
MAX_ERROR_BODY = 200


class WebhookHttpProvider:
    """
    Posts signed webhook bodies.

    Pass a shared ``httpx.AsyncClient`` to reuse connections across
    deliveries; without one a client is opened per request.
    """

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        user_agent: str = DEFAULT_USER_AGENT,
        timeout: float = 10.0,
    ):
        self._client = client
        self.user_agent = user_agent
        self.timeout = timeout

    async def _post(
        self, client: httpx.AsyncClient, url: str, body: str, headers: Mapping[str, str]
    ) -> httpx.Response:
        return await client.post(url, content=body.encode("utf-8"), headers=dict(headers))

    async def post(self, url: str, body: str, headers: Mapping[str, str]) -> httpx.Response:
        try:
            if self._client is not None:
                response = await self._post(self._client, url, body, headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await self._post(client, url, body, headers)
        except httpx.TimeoutException as e:
            raise TransientDeliveryError(f"Endpoint timed out: {e.__class__.__name__}") from e
        except httpx.HTTPError as e:
            raise TransientDeliveryError(f"Endpoint request failed: {e}") from e

        if not response.is_success:
            text = response.text[:MAX_ERROR_BODY]
            raise TransientDeliveryError(
                f"Endpoint responded with {response.status_code} {response.reason_phrase}"
                + (f": {text}" if text else "")
            )

        return response
