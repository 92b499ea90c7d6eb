"""
Task Provider Factory - Create task provider instances by provider name

Registry of BaseTaskProvider subclasses keyed by provider name
("microsoft", "google"). The sync engine receives the instance and never
branches on the provider name itself.
"""

import logging
from typing import Dict, List, Optional, Type

import httpx

from .base import BaseTaskProvider

logger = logging.getLogger(__name__)


class TaskProviderFactory:
    """Factory for creating task provider instances."""

    _providers: Dict[str, Type[BaseTaskProvider]] = {}

    @classmethod
    def register_provider(cls, provider_name: str, provider_class: type):
        """
        Register a provider implementation.

        Args:
            provider_name: Provider identifier ("microsoft", "google")
            provider_class: Provider class (must inherit from BaseTaskProvider)
        """
        if not issubclass(provider_class, BaseTaskProvider):
            raise TypeError(f"{provider_class} must inherit from BaseTaskProvider")

        cls._providers[provider_name.lower()] = provider_class
        logger.debug(f"Registered task provider: {provider_name}")

    @classmethod
    def create_provider(
        cls,
        provider_name: str,
        http_client: Optional[httpx.AsyncClient] = None,
    ) -> BaseTaskProvider:
        """
        Create a provider instance.

        Raises:
            ValueError: provider_name is not registered
        """
        provider_class = cls._providers.get((provider_name or "").lower())
        if not provider_class:
            logger.error(
                f"Unsupported task provider: {provider_name}. "
                f"Available providers: {list(cls._providers.keys())}"
            )
            raise ValueError(f"Unsupported task provider: {provider_name}")
        return provider_class(http_client=http_client)

    @classmethod
    def get_supported_providers(cls) -> List[str]:
        """Get list of supported provider names."""
        return list(cls._providers.keys())


def _register_providers():
    """Register the built-in task providers."""
    from .google_tasks import GoogleTasksProvider
    from .microsoft_todo import MicrosoftTodoProvider

    TaskProviderFactory.register_provider(MicrosoftTodoProvider.PROVIDER, MicrosoftTodoProvider)
    TaskProviderFactory.register_provider(GoogleTasksProvider.PROVIDER, GoogleTasksProvider)


_register_providers()
