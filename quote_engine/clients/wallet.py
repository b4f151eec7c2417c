"""Wallet service client for penalty debits."""

import logging
from decimal import Decimal

import httpx

from quote_engine.clients.base import ServiceClient
from quote_engine.errors import DependencyError

logger = logging.getLogger(__name__)


class WalletClient(ServiceClient):
    """Client for the wallet service's penalty debit endpoint."""

    service = "wallet"

    async def apply_penalty_debit(
        self,
        contractor_id: str,
        amount: Decimal,
        description: str,
        penalty_id: int,
    ) -> bool:
        """
        Debit a penalty from the contractor's wallet.

        Args:
            contractor_id: Contractor to debit
            amount: Penalty amount
            description: Ledger description
            penalty_id: Penalty instance id, used as the idempotency reference

        Returns:
            True when the wallet accepted the debit

        Raises:
            DependencyError: Timeout, transport failure or non-2xx response
        """
        payload = {
            "contractor_id": contractor_id,
            "amount": str(amount),
            "description": description,
            "reference_type": "penalty",
            "reference_id": str(penalty_id),
        }
        try:
            response = await self._request(
                "POST",
                "/api/internal/wallet/penalty-debits",
                json=payload,
                headers={"Idempotency-Key": f"penalty-{penalty_id}"},
            )
        except httpx.TimeoutException as e:
            raise DependencyError("wallet", "penalty debit timed out", {"penalty_id": penalty_id}) from e
        except httpx.HTTPError as e:
            raise DependencyError("wallet", f"penalty debit failed: {e}", {"penalty_id": penalty_id}) from e

        if not response.is_success:
            raise DependencyError(
                "wallet",
                f"penalty debit rejected with status {response.status_code}",
                {"penalty_id": penalty_id, "status_code": response.status_code},
            )

        logger.info(f"Wallet debited {amount} from contractor {contractor_id} for penalty {penalty_id}")
        return True
