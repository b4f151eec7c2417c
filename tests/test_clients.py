"""Tests for the collaborator HTTP clients using httpx mock transports."""

import json
from decimal import Decimal

import httpx
import pytest

from quote_engine.clients import (
    ContractorDirectory,
    IdentityClient,
    NotificationClient,
    UserDirectory,
    WalletClient,
)
from quote_engine.errors import DependencyError


def transport(handler):
    return httpx.MockTransport(handler)


def timeout_handler(request):
    raise httpx.ReadTimeout("timed out", request=request)


class TestIdentityClient:
    """Profile lookups degrade to placeholders instead of raising."""

    def build(self, handler):
        return IdentityClient(
            ContractorDirectory("http://contractors", transport=transport(handler)),
            UserDirectory("http://users", transport=transport(handler)),
        )

    async def test_contractor_profile_from_envelope(self):
        def handler(request):
            assert request.url.path == "/api/internal/contractors/c-123"
            assert request.headers["X-Service"] == "quote-service"
            return httpx.Response(
                200,
                json={"data": {"business_name": "Sunrise Solar", "email": "ops@sunrise.example"}},
            )

        client = self.build(handler)
        profile = await client.get_contractor_info("c-123")
        await client.close()

        assert profile.business_name == "Sunrise Solar"
        assert profile.email == "ops@sunrise.example"
        assert profile.is_placeholder is False

    async def test_user_name_from_parts(self):
        def handler(request):
            return httpx.Response(200, json={"first_name": "Lina", "last_name": "Haddad"})

        client = self.build(handler)
        profile = await client.get_user_info("u-1")
        await client.close()

        assert profile.name == "Lina Haddad"

    async def test_missing_contractor_gets_placeholder(self):
        client = self.build(lambda request: httpx.Response(404))

        profile = await client.get_contractor_info("abcdefghijkl")
        await client.close()

        assert profile.is_placeholder is True
        assert profile.business_name == "Contractor abcdefgh"

    async def test_timeout_gets_placeholder(self):
        client = self.build(timeout_handler)

        contractors = await client.get_contractors_info(["c-1", "c-2", "c-1"])
        user = await client.get_user_info("u-1")
        await client.close()

        assert list(contractors) == ["c-1", "c-2"]
        assert all(profile.is_placeholder for profile in contractors.values())
        assert user.is_placeholder is True

    async def test_invalid_json_gets_placeholder(self):
        client = self.build(lambda request: httpx.Response(200, content=b"<html>"))

        profile = await client.get_user_info("u-1")
        await client.close()

        assert profile.is_placeholder is True


class TestWalletClient:
    async def test_debit_sends_idempotency_key(self):
        seen = {}

        def handler(request):
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(201, json={"success": True})

        wallet = WalletClient("http://wallet", transport=transport(handler))
        assert await wallet.apply_penalty_debit("c-1", Decimal("250.00"), "Late", 7) is True
        await wallet.close()

        assert seen["headers"]["Idempotency-Key"] == "penalty-7"
        assert seen["body"] == {
            "contractor_id": "c-1",
            "amount": "250.00",
            "description": "Late",
            "reference_type": "penalty",
            "reference_id": "7",
        }

    async def test_server_error_raises_dependency_error(self):
        wallet = WalletClient("http://wallet", transport=transport(lambda r: httpx.Response(500)))

        with pytest.raises(DependencyError) as exc_info:
            await wallet.apply_penalty_debit("c-1", Decimal("10"), "Late", 1)
        await wallet.close()

        assert exc_info.value.details["status_code"] == 500
        assert exc_info.value.service == "wallet"

    async def test_timeout_raises_dependency_error(self):
        wallet = WalletClient("http://wallet", transport=transport(timeout_handler))

        with pytest.raises(DependencyError) as exc_info:
            await wallet.apply_penalty_debit("c-1", Decimal("10"), "Late", 1)
        await wallet.close()

        assert "timed out" in exc_info.value.message


class TestNotificationClient:
    async def test_notification_posted(self):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(202)

        notifier = NotificationClient("http://notify", transport=transport(handler))
        assert await notifier.notify_contractors_assigned(5, ["c-1", "c-2"]) is True
        await notifier.close()

        assert seen["body"] == {"request_id": 5, "contractor_ids": ["c-1", "c-2"]}

    @pytest.mark.parametrize(
        "handler",
        [lambda request: httpx.Response(503), timeout_handler],
    )
    async def test_failures_return_false(self, handler):
        notifier = NotificationClient("http://notify", transport=transport(handler))

        assert await notifier.notify_contractors_assigned(5, ["c-1"]) is False
        await notifier.close()

    async def test_empty_contractor_list_is_noop(self):
        def handler(request):
            raise AssertionError("no request expected")

        notifier = NotificationClient("http://notify", transport=transport(handler))
        assert await notifier.notify_contractors_assigned(5, []) is True
