"""Notification service client."""

import logging
from typing import Sequence

import httpx

from quote_engine.clients.base import ServiceClient

logger = logging.getLogger(__name__)


class NotificationClient(ServiceClient):
    """Fire-and-forget notifications; failures are logged and never raised."""

    service = "notification"

    async def notify_contractors_assigned(self, request_id: int, contractor_ids: Sequence[str]) -> bool:
        """
        Tell contractors they were invited to bid on a request.

        Returns:
            True if the notification service accepted the message, False otherwise
        """
        if not contractor_ids:
            return True
        try:
            response = await self._request(
                "POST",
                "/api/internal/notifications/contractors-assigned",
                json={"request_id": request_id, "contractor_ids": list(contractor_ids)},
            )
        except httpx.HTTPError as e:
            logger.warning(f"Assignment notification for request {request_id} failed: {e}")
            return False

        if not response.is_success:
            logger.warning(
                f"Assignment notification for request {request_id} "
                f"returned {response.status_code}"
            )
            return False

        logger.debug(f"Notified {len(contractor_ids)} contractors about request {request_id}")
        return True
