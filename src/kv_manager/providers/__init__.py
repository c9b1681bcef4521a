"""Storage providers for the key/value pipeline."""

from kv_manager.providers.base import PROVIDER_HANDLERS, Provider, ProviderContext
from kv_manager.providers.memory import MemoryProvider

__all__ = ["PROVIDER_HANDLERS", "MemoryProvider", "Provider", "ProviderContext"]
