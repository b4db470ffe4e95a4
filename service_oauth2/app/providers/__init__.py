"""
Identity provider integrations.
"""

from .base import OAuth2Provider, ProviderServices
from .registry import ProviderRegistry, build_registry

__all__ = ["OAuth2Provider", "ProviderServices", "ProviderRegistry", "build_registry"]
