"""Provider registry of provider factories.

The registry maps ``(provider_type, name)`` keys to factories. It never
holds provider instances: every ``create`` call builds a fresh provider, so
engines and clients have explicit lifetimes owned by whoever created them.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, TypeVar, Union, cast

from .base import Provider

logger = logging.getLogger(__name__)

T = TypeVar('T')

ProviderFactory = Callable[..., Provider]


def _key(provider_type: Union[str, Enum], name: str) -> Tuple[str, str]:
    if isinstance(provider_type, Enum):
        provider_type = provider_type.value
    return (str(provider_type), name)


class ProviderRegistry:
    """Registry for provider factories.

    This class provides:
    1. Factory registration keyed by provider type and name
    2. Factory metadata lookup
    3. Fresh, optionally type-checked, provider construction
    """

    def __init__(self):
        """Initialize provider registry."""
        self._factories: Dict[Tuple[str, str], ProviderFactory] = {}
        self._factory_metadata: Dict[Tuple[str, str], Dict[str, Any]] = {}

    def register_factory(
        self,
        provider_type: Union[str, Enum],
        name: str,
        factory: ProviderFactory,
        **metadata: Any
    ) -> None:
        """Register a factory for creating providers.

        Args:
            provider_type: Type of provider (e.g., llm)
            name: Unique name for this provider
            factory: Callable that creates the provider
            **metadata: Additional metadata about the provider
        """
        key = _key(provider_type, name)
        if key in self._factories:
            logger.warning(f"Replacing provider factory: {name} (type: {key[0]})")

        self._factories[key] = factory
        self._factory_metadata[key] = {"provider_type": key[0], **metadata}

        logger.debug(f"Registered provider factory: {name} (type: {key[0]})")

    def get_factory(self, provider_type: Union[str, Enum], name: str) -> ProviderFactory:
        """Get a provider factory.

        Raises:
            KeyError: If factory doesn't exist
        """
        key = _key(provider_type, name)
        if key not in self._factories:
            raise KeyError(f"Provider factory '{name}' of type '{key[0]}' not found")
        return self._factories[key]

    def get_factory_metadata(self, provider_type: Union[str, Enum], name: str) -> Dict[str, Any]:
        """Get metadata for a provider factory.

        Raises:
            KeyError: If factory doesn't exist
        """
        key = _key(provider_type, name)
        if key not in self._factories:
            raise KeyError(f"Provider factory '{name}' of type '{key[0]}' not found")
        return dict(self._factory_metadata.get(key, {}))

    def contains_factory(self, provider_type: Union[str, Enum], name: str) -> bool:
        """Check if a provider factory exists."""
        return _key(provider_type, name) in self._factories

    def list_factories(self, provider_type: Optional[Union[str, Enum]] = None) -> List[str]:
        """List registered factory names, optionally filtered by type."""
        wanted = _key(provider_type, "")[0] if provider_type is not None else None
        return [
            name for (ptype, name) in self._factories.keys()
            if wanted is None or ptype == wanted
        ]

    def create(
        self,
        provider_type: Union[str, Enum],
        factory_name: str,
        expected_type: Optional[Type[T]] = None,
        **kwargs: Any
    ) -> Provider:
        """Create a new provider instance from a registered factory.

        Args:
            provider_type: Type of provider
            factory_name: Registered factory name
            expected_type: Optional class the result must be an instance of
            **kwargs: Passed through to the factory, including the instance ``name``

        Returns:
            A new, uninitialized provider

        Raises:
            KeyError: If factory doesn't exist
            TypeError: If the created provider doesn't match expected type
        """
        factory = self.get_factory(provider_type, factory_name)
        provider = factory(**kwargs)

        if expected_type and not isinstance(provider, expected_type):
            raise TypeError(f"Provider '{factory_name}' is not of expected type {expected_type.__name__}")

        logger.debug(f"Created provider '{provider.name}' from factory '{factory_name}'")
        return cast(Provider, provider)


provider_registry = ProviderRegistry()
