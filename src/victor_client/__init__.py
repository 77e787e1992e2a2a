"""Async client for the Victor marketplace API with endpoint fallback."""

from victor_client.api_manager import ApiManager
from victor_client.client import VictorClient
from victor_client.config import ClientSettings, load_client_settings
from victor_client.error_handler import ErrorHandler
from victor_client.exceptions import ApiError, ApiUnavailableError
from victor_client.network_monitor import NetworkMonitor, NetworkStatus
from victor_client.state_store import StateStore

__all__ = [
    "ApiError",
    "ApiManager",
    "ApiUnavailableError",
    "ClientSettings",
    "ErrorHandler",
    "NetworkMonitor",
    "NetworkStatus",
    "StateStore",
    "VictorClient",
    "load_client_settings",
]
