"""Class decorators that register providers with the global registry."""

from typing import Any, Callable, Type, TypeVar, Union

from .constants import ProviderType
from .registry import provider_registry

C = TypeVar("C", bound=type)


def provider(name: str, provider_type: Union[str, ProviderType] = ProviderType.LLM,
             **metadata: Any) -> Callable[[C], C]:
    """Register the decorated class under ``(provider_type, name)``.

    The factory passes keyword arguments straight to the constructor and
    uses the registered name as the instance name unless one is given::

        @provider("local")
        class LocalModelProvider(ModelProvider[LocalProviderSettings]):
            ...

        provider_registry.create(ProviderType.LLM, "local", settings=...)
    """
    def register(cls: C) -> C:
        def factory(**kwargs: Any):
            kwargs.setdefault("name", name)
            return cls(**kwargs)

        provider_registry.register_factory(
            provider_type, name, factory, provider_class=cls.__name__, **metadata
        )
        cls.__provider_name__ = name
        cls.__provider_type__ = provider_type
        return cls

    return register


def model_provider(name: str, **metadata: Any) -> Callable[[Type], Type]:
    """Shorthand for ``@provider(name, ProviderType.LLM)``."""
    return provider(name, ProviderType.LLM, **metadata)
