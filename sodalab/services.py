"""
External-service interfaces used by the discovery engines.

Engines depend on these small interfaces instead of calling remote
APIs directly. The defaults below are deterministic stand-ins for
services that are not wired up yet (popularity analytics, machine
translation, Amazon product availability).
"""

import copy
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from config import MOCK_ALTERNATIVES, MOCK_AVAILABILITY

logger = logging.getLogger(__name__)


class PopularityService(ABC):
    """Popularity of catalog items, used for ranking."""

    @abstractmethod
    def popularity(self, item_type: str, item_id: str) -> float:
        """
        Popularity score for an item.

        Args:
            item_type: "recipe", "ingredient", "supplier" or "category"
            item_id: Catalog id of the item

        Returns:
            Score in [0, 1]
        """


class TranslationService(ABC):
    """Query translation for multilingual autocomplete."""

    @abstractmethod
    def translate(self, text: str, source_language: str, target_language: str) -> str:
        """Translate ``text``; return it unchanged when no translation exists."""


class ProductAvailabilityService(ABC):
    """Regional stock information for Amazon products."""

    @abstractmethod
    def availability(self, asin: str, region: str) -> Optional[Dict[str, Any]]:
        """
        Stock record for ``asin`` in ``region``, or None when unknown.

        A record carries ``status`` (in-stock, limited, out-of-stock,
        pre-order), ``stockLevel``, ``fulfillmentType``, ``sellerCount``,
        ``shippingOptions``, ``priceStability`` and optionally
        ``restockDate`` (ISO date).
        """

    @abstractmethod
    def alternatives(self, asin: str) -> List[Dict[str, Any]]:
        """Alternative products for ``asin`` with their regional availability."""


# =============================================================================
# DEFAULT IMPLEMENTATIONS
# =============================================================================

class UniformPopularityService(PopularityService):
    """Every item is equally popular."""

    def __init__(self, score: float = 0.5):
        self.score = score

    def popularity(self, item_type: str, item_id: str) -> float:
        return self.score


class IdentityTranslationService(TranslationService):
    def translate(self, text: str, source_language: str, target_language: str) -> str:
        return text


class StaticAvailabilityService(ProductAvailabilityService):
    """Availability served from an in-memory table (MOCK_AVAILABILITY by default)."""

    def __init__(
        self,
        table: Optional[Dict[str, Dict[str, Dict[str, Any]]]] = None,
        alternatives_table: Optional[List[Dict[str, Any]]] = None,
    ):
        self._table = MOCK_AVAILABILITY if table is None else table
        self._alternatives = MOCK_ALTERNATIVES if alternatives_table is None else alternatives_table

    def availability(self, asin: str, region: str) -> Optional[Dict[str, Any]]:
        record = self._table.get(asin, {}).get(region)
        return copy.deepcopy(record) if record is not None else None

    def alternatives(self, asin: str) -> List[Dict[str, Any]]:
        return [copy.deepcopy(alt) for alt in self._alternatives if alt.get("asin") != asin]
