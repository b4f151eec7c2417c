"""Clients for collaborator services (identity, wallet, notification)."""

from quote_engine.clients.identity import (
    ContractorDirectory,
    ContractorProfile,
    IdentityClient,
    UserDirectory,
    UserProfile,
)
from quote_engine.clients.notifications import NotificationClient
from quote_engine.clients.wallet import WalletClient

__all__ = [
    "ContractorDirectory",
    "ContractorProfile",
    "IdentityClient",
    "NotificationClient",
    "UserDirectory",
    "UserProfile",
    "WalletClient",
]
