"""External knowledge sources: provider capabilities, cache and registry."""

from .base import AIProvider, KnowledgeProvider
from .cache import LRUCache, create_cache_key
from .registry import PROVIDER_ORDER, KnowledgeRegistry

__all__ = [
    "AIProvider",
    "KnowledgeProvider",
    "KnowledgeRegistry",
    "LRUCache",
    "PROVIDER_ORDER",
    "create_cache_key",
]
