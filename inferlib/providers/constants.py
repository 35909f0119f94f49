"""Constants for the provider registry.

This module defines the standardized provider types used as the first half
of every registry key.
"""

from enum import Enum


class ProviderType(str, Enum):
    """Enumeration of provider types.

    Using string enum ensures type checking while maintaining
    string compatibility for storage and serialization.
    """
    LLM = "llm"
