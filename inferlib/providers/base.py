"""Provider settings and lifecycle.

Every backend is a ``Provider`` parameterised with its pydantic settings
class. Construction is cheap and does no I/O. Native or remote resources
are acquired in ``initialize()`` and released in ``shutdown()``, which also
makes providers usable as ``async with`` blocks.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Generic, Optional, Type, TypeVar, Union

from pydantic import BaseModel, Field, field_validator

from ..core.errors import ResourceError

logger = logging.getLogger(__name__)


class ProviderSettings(BaseModel):
    """Settings common to all providers.

    Attributes:
        timeout_seconds: Upper bound for a single remote operation
        log_requests: Log outgoing requests at DEBUG (never their secrets)
        log_responses: Log response status and size at DEBUG
        custom_settings: Free-form extras for a specific deployment
    """

    timeout_seconds: float = 60.0
    log_requests: bool = False
    log_responses: bool = False
    custom_settings: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("timeout_seconds")
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Timeout must be positive")
        return v

    def merge(self, other: Union["ProviderSettings", Dict[str, Any]]) -> "ProviderSettings":
        """Overlay the explicitly set fields of ``other`` onto these settings.

        ``custom_settings`` dictionaries are merged key by key.
        """
        overlay = self.__class__(**other) if isinstance(other, dict) else other
        values = self.model_dump()

        for key in overlay.model_fields_set:
            value = getattr(overlay, key)
            if value is None:
                continue
            if key == "custom_settings":
                values["custom_settings"] = {**values["custom_settings"], **value}
            else:
                values[key] = value

        return self.__class__(**values)

    def with_overrides(self, **fields: Any) -> "ProviderSettings":
        """Copy of these settings with ``fields`` overlaid, validated like ``merge``."""
        return self.merge(fields)


S = TypeVar("S", bound=ProviderSettings)


class Provider(ABC, Generic[S]):
    """Base class for providers.

    Subclasses declare their settings type as the generic parameter, for
    example ``class CloudInferenceClient(ModelProvider[CloudProviderSettings])``,
    and implement ``_initialize`` (plus ``_shutdown`` when they hold
    resources).
    """

    def __init__(
        self,
        name: str,
        settings: Optional[Union[S, Dict[str, Any]]] = None,
        provider_type: Optional[str] = None
    ):
        """Initialize provider.

        Args:
            name: Instance name, also used as the registry name by factories
            settings: Settings instance or a dict of field values
            provider_type: Category reported in errors, defaults to the class name

        Raises:
            TypeError: If ``settings`` is neither a dict nor the declared settings type
        """
        self.name = name
        self.provider_type = provider_type or type(self).__name__
        self._initialized = False
        self._setup_lock = asyncio.Lock()

        settings_cls = self.settings_class()
        if settings is None:
            settings = settings_cls()
        elif isinstance(settings, dict):
            settings = settings_cls(**settings)
        elif not isinstance(settings, settings_cls):
            raise TypeError(
                f"{type(self).__name__} expects {settings_cls.__name__} settings, "
                f"got {type(settings).__name__}"
            )
        self.settings: S = settings

        logger.debug(f"Created provider: {name} ({self.provider_type})")

    @classmethod
    def settings_class(cls) -> Type[ProviderSettings]:
        """Settings type bound to the ``Provider[...]`` generic parameter."""
        for klass in cls.__mro__:
            for base in getattr(klass, "__orig_bases__", ()):
                for arg in getattr(base, "__args__", ()):
                    if isinstance(arg, type) and issubclass(arg, ProviderSettings):
                        return arg
        raise TypeError(f"{cls.__name__} does not declare a settings type, e.g. Provider[MySettings]")

    @property
    def initialized(self) -> bool:
        return self._initialized

    async def initialize(self) -> None:
        """Acquire the provider's resources once.

        Concurrent callers wait for the first one. Failures other than
        ``ResourceError`` are wrapped in one.
        """
        if self._initialized:
            return

        async with self._setup_lock:
            if self._initialized:
                return
            try:
                await self._initialize()
            except ResourceError:
                raise
            except Exception as e:
                logger.error(f"Failed to initialize provider '{self.name}': {e}")
                raise ResourceError(
                    message=f"Failed to initialize provider: {e}",
                    resource_id=self.name,
                    resource_type=self.provider_type,
                    cause=e
                ) from e
            self._initialized = True
            logger.info(f"Provider '{self.name}' initialized")

    async def shutdown(self) -> None:
        """Release resources. Errors are logged, never raised."""
        if not self._initialized:
            return
        try:
            await self._shutdown()
            logger.info(f"Provider '{self.name}' shut down")
        except Exception as e:
            logger.error(f"Error shutting down provider '{self.name}': {e}")
        finally:
            self._initialized = False

    @abstractmethod
    async def _initialize(self) -> None:
        """Acquire resources; implemented by subclasses."""

    async def _shutdown(self) -> None:
        """Release resources; nothing to do by default."""

    async def __aenter__(self):
        await self.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.shutdown()
