"""Provider data adapters."""

from .base import ProviderAdapter
from .business_profile import BusinessProfileAdapter
from .clarity import ClarityAdapter
from .ga4 import GA4Adapter
from .search_console import SearchConsoleAdapter

__all__ = [
    "BusinessProfileAdapter",
    "ClarityAdapter",
    "GA4Adapter",
    "ProviderAdapter",
    "SearchConsoleAdapter",
]
