"""Contractor and user profile lookups."""

import asyncio
import logging
from dataclasses import asdict, dataclass
from typing import Iterable, Optional

import httpx

from quote_engine.clients.base import ServiceClient, unwrap

logger = logging.getLogger(__name__)


@dataclass
class ContractorProfile:
    """Contractor details used to enrich quotes."""

    contractor_id: str
    business_name: str
    contact_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    verification_level: Optional[str] = None
    is_placeholder: bool = False

    @classmethod
    def placeholder(cls, contractor_id: str) -> "ContractorProfile":
        return cls(
            contractor_id=contractor_id,
            business_name=f"Contractor {contractor_id[:8]}",
            is_placeholder=True,
        )

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass
class UserProfile:
    """Requester details used to enrich quotes."""

    user_id: str
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    is_placeholder: bool = False

    @classmethod
    def placeholder(cls, user_id: str) -> "UserProfile":
        return cls(user_id=user_id, name=f"User {user_id[:8]}", is_placeholder=True)

    def to_dict(self) -> dict:
        return asdict(self)


class ContractorDirectory(ServiceClient):
    """Client for the contractor service's internal profile endpoint."""

    service = "contractor"

    async def get_contractor_info(self, contractor_id: str) -> ContractorProfile:
        try:
            response = await self._request("GET", f"/api/internal/contractors/{contractor_id}")
        except httpx.HTTPError as e:
            logger.warning(f"Contractor lookup failed for {contractor_id}: {e}")
            return ContractorProfile.placeholder(contractor_id)

        if response.status_code != 200:
            if response.status_code != 404:
                logger.warning(
                    f"Contractor lookup for {contractor_id} returned {response.status_code}"
                )
            return ContractorProfile.placeholder(contractor_id)

        try:
            data = unwrap(response.json())
        except ValueError:
            logger.warning(f"Contractor lookup for {contractor_id} returned invalid JSON")
            return ContractorProfile.placeholder(contractor_id)

        return ContractorProfile(
            contractor_id=contractor_id,
            business_name=(
                data.get("business_name")
                or data.get("company_name")
                or f"Contractor {contractor_id[:8]}"
            ),
            contact_name=data.get("contact_name") or data.get("name"),
            email=data.get("email"),
            phone=data.get("phone"),
            verification_level=data.get("verification_level"),
        )


class UserDirectory(ServiceClient):
    """Client for the user service's internal profile endpoint."""

    service = "user"

    async def get_user_info(self, user_id: str) -> UserProfile:
        try:
            response = await self._request("GET", f"/api/internal/users/{user_id}")
        except httpx.HTTPError as e:
            logger.warning(f"User lookup failed for {user_id}: {e}")
            return UserProfile.placeholder(user_id)

        if response.status_code != 200:
            if response.status_code != 404:
                logger.warning(f"User lookup for {user_id} returned {response.status_code}")
            return UserProfile.placeholder(user_id)

        try:
            data = unwrap(response.json())
        except ValueError:
            logger.warning(f"User lookup for {user_id} returned invalid JSON")
            return UserProfile.placeholder(user_id)

        name = data.get("name") or " ".join(
            part for part in (data.get("first_name"), data.get("last_name")) if part
        )
        return UserProfile(
            user_id=user_id,
            name=name or f"User {user_id[:8]}",
            email=data.get("email"),
            phone=data.get("phone"),
        )


class IdentityClient:
    """
    Identity lookup over the contractor and user services.

    Lookups never raise: not found, timeouts and malformed responses all
    degrade to a profile flagged with is_placeholder.
    """

    def __init__(self, contractors: ContractorDirectory, users: UserDirectory):
        self.contractors = contractors
        self.users = users

    async def get_contractor_info(self, contractor_id: str) -> ContractorProfile:
        return await self.contractors.get_contractor_info(contractor_id)

    async def get_user_info(self, user_id: str) -> UserProfile:
        return await self.users.get_user_info(user_id)

    async def get_contractors_info(self, contractor_ids: Iterable[str]) -> dict[str, ContractorProfile]:
        """Look up several contractors concurrently."""
        unique_ids = list(dict.fromkeys(contractor_ids))
        profiles = await asyncio.gather(*(self.get_contractor_info(cid) for cid in unique_ids))
        return dict(zip(unique_ids, profiles))

    async def get_users_info(self, user_ids: Iterable[str]) -> dict[str, UserProfile]:
        unique_ids = list(dict.fromkeys(user_ids))
        profiles = await asyncio.gather(*(self.get_user_info(uid) for uid in unique_ids))
        return dict(zip(unique_ids, profiles))

    async def close(self):
        await self.contractors.close()
        await self.users.close()
