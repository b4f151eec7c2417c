"""Explicit wiring of services, stores and collaborator clients."""

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from quote_engine.admin.review import AdminReviewService
from quote_engine.clients import (
    ContractorDirectory,
    IdentityClient,
    NotificationClient,
    UserDirectory,
    WalletClient,
)
from quote_engine.config import Settings
from quote_engine.db.session import (
    SessionFactory,
    create_engine_from_settings,
    create_session_factory,
)
from quote_engine.penalties.engine import PenaltyEngine
from quote_engine.penalties.sla import SLAViolationDetector
from quote_engine.pricing.config_store import PricingConfigStore
from quote_engine.quotes.assignments import AssignmentManager
from quote_engine.quotes.contractor_quotes import ContractorQuoteManager
from quote_engine.quotes.requests import QuoteRequestService
from quote_engine.worker.tasks import PenaltyTaskRunner

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Every service of the engine, built once per application."""

    settings: Settings
    session_factory: SessionFactory
    engine: Optional[AsyncEngine]
    identity: object
    wallet: object
    notifier: object
    pricing: PricingConfigStore
    requests: QuoteRequestService
    assignments: AssignmentManager
    quotes: ContractorQuoteManager
    penalties: PenaltyEngine
    detector: SLAViolationDetector
    tasks: PenaltyTaskRunner
    admin: AdminReviewService

    async def close(self):
        """Close collaborator clients and dispose the engine."""
        for client in (self.identity, self.wallet, self.notifier):
            close = getattr(client, "close", None)
            if close is not None:
                await close()
        if self.engine is not None:
            await self.engine.dispose()


def build_collaborators(settings: Settings) -> tuple[IdentityClient, WalletClient, NotificationClient]:
    """HTTP clients for the identity, wallet and notification services."""
    common = {
        "timeout": settings.collaborator_timeout_seconds,
        "service_name": settings.service_name,
    }
    identity = IdentityClient(
        ContractorDirectory(settings.contractor_service_url, **common),
        UserDirectory(settings.user_service_url, **common),
    )
    wallet = WalletClient(settings.wallet_service_url, **common)
    notifier = NotificationClient(settings.notification_service_url, **common)
    return identity, wallet, notifier


def build_services(
    settings: Settings,
    session_factory: Optional[SessionFactory] = None,
    identity=None,
    wallet=None,
    notifier=None,
) -> Services:
    """
    Build the service graph.

    Args:
        settings: Application settings
        session_factory: Existing session factory; an engine is created from
            settings when omitted
        identity: Identity lookup collaborator (HTTP client by default)
        wallet: Wallet debit collaborator (HTTP client by default)
        notifier: Notification collaborator (HTTP client by default)
    """
    engine = None
    if session_factory is None:
        engine = create_engine_from_settings(settings)
        session_factory = create_session_factory(engine)

    if identity is None or wallet is None or notifier is None:
        default_identity, default_wallet, default_notifier = build_collaborators(settings)
        identity = identity or default_identity
        wallet = wallet or default_wallet
        notifier = notifier or default_notifier

    page_size = settings.max_page_size
    pricing = PricingConfigStore(session_factory)
    requests = QuoteRequestService(session_factory, notifier, max_page_size=page_size)
    assignments = AssignmentManager(session_factory, identity, notifier, max_page_size=page_size)
    quotes = ContractorQuoteManager(
        session_factory,
        identity,
        quote_validity_days=settings.quote_validity_days,
        vat_percent=settings.vat_percent,
        max_page_size=page_size,
    )
    penalties = PenaltyEngine(session_factory, wallet, max_page_size=page_size)
    detector = SLAViolationDetector(session_factory)
    tasks = PenaltyTaskRunner(detector, penalties, applied_by=settings.auto_penalty_applied_by)
    admin = AdminReviewService(
        session_factory,
        quotes=quotes,
        assignments=assignments,
        penalties=penalties,
        pricing=pricing,
        identity=identity,
        vat_percent=settings.vat_percent,
        max_page_size=page_size,
    )

    logger.debug("Service graph built")
    return Services(
        settings=settings,
        session_factory=session_factory,
        engine=engine,
        identity=identity,
        wallet=wallet,
        notifier=notifier,
        pricing=pricing,
        requests=requests,
        assignments=assignments,
        quotes=quotes,
        penalties=penalties,
        detector=detector,
        tasks=tasks,
        admin=admin,
    )
