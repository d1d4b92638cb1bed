"""
Affiliate click-to-conversion attribution.

Every tracked click gets an attribution id of the form
``attr_<epoch-ms>_<32 hex chars>`` that stays valid for 30 days. A
conversion reported with that id is linked back to the click and the
id is retired.

Storage is in-memory and owned by the AttributionTracker instance.
"""

import logging
import secrets
import time
from dataclasses import asdict, dataclass, field
from typing import Any, Callable, Dict, List, Optional

from config import (
    ATTRIBUTION_PREFIX,
    ATTRIBUTION_RECENT_WINDOW_HOURS,
    DEFAULT_CONVERSION_CURRENCY,
    Settings,
)

logger = logging.getLogger(__name__)

SECONDS_PER_DAY = 24 * 60 * 60


@dataclass
class Attribution:
    id: str
    timestamp: float
    expires_at: float
    affiliate: str = ""
    product_id: Optional[str] = None
    flavor_id: Optional[str] = None
    click: Dict[str, Any] = field(default_factory=dict)

    def is_expired(self, now: float) -> bool:
        return now > self.expires_at

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "timestamp": self.timestamp,
            "expiresAt": self.expires_at,
            "affiliate": self.affiliate,
            "productId": self.product_id,
            "flavorId": self.flavor_id,
        }


@dataclass
class Conversion:
    attribution_id: str
    affiliate: str
    value: Optional[float]
    currency: str
    conversion_type: str
    order_id: Optional[str]
    product_id: Optional[str]
    flavor_id: Optional[str]
    timestamp: float
    status: str = "confirmed"

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        return {
            "attributionId": data["attribution_id"],
            "affiliate": data["affiliate"],
            "value": data["value"],
            "currency": data["currency"],
            "conversionType": data["conversion_type"],
            "orderId": data["order_id"],
            "productId": data["product_id"],
            "flavorId": data["flavor_id"],
            "timestamp": data["timestamp"],
            "status": data["status"],
        }


class AttributionTracker:
    """
    Tracks affiliate clicks and links conversions back to them.

    Usage:
        tracker = AttributionTracker(settings)
        attribution_id = tracker.track_click("amazon", product_id="B08N5WRWNW")
        tracker.track_conversion(attribution_id, "amazon", order_value=12.5)

    Args:
        settings: Supplies ``attribution_expiry_days``
        clock: Returns the current time in seconds (injectable for tests)
    """

    def __init__(self, settings: Settings, clock: Callable[[], float] = time.time):
        self.expiry_seconds = settings.attribution_expiry_days * SECONDS_PER_DAY
        self._clock = clock
        self._store: Dict[str, Attribution] = {}
        self._conversions: List[Conversion] = []

    def generate_id(self) -> str:
        """Create and register a new, empty attribution."""
        now = self._clock()
        attribution_id = f"{ATTRIBUTION_PREFIX}{int(now * 1000)}_{secrets.token_hex(16)}"
        self._store[attribution_id] = Attribution(
            id=attribution_id,
            timestamp=now,
            expires_at=now + self.expiry_seconds,
        )
        self.cleanup_expired()
        return attribution_id

    def store_click(
        self,
        attribution_id: str,
        affiliate: str,
        product_id: Optional[str] = None,
        flavor_id: Optional[str] = None,
    ) -> bool:
        """Attach click data to an existing attribution. Returns False for unknown ids."""
        attribution = self._store.get(attribution_id)
        if attribution is None:
            return False
        attribution.affiliate = affiliate
        attribution.product_id = product_id
        attribution.flavor_id = flavor_id
        return True

    def track_click(
        self,
        affiliate: str,
        product_id: Optional[str] = None,
        flavor_id: Optional[str] = None,
        referrer: Optional[str] = None,
        user_agent: Optional[str] = None,
        ip: Optional[str] = None,
    ) -> str:
        """
        Record an affiliate click.

        Returns:
            The new attribution id
        """
        attribution_id = self.generate_id()
        self.store_click(attribution_id, affiliate, product_id, flavor_id)
        self._store[attribution_id].click = {
            "referrer": referrer,
            "userAgent": user_agent,
            "ip": ip,
            "type": "click",
        }
        logger.info(f"Affiliate click tracked: {affiliate} product={product_id} id={attribution_id}")
        return attribution_id

    def validate(self, attribution_id: str) -> bool:
        """True if the id exists and has not expired; expired ids are dropped."""
        attribution = self._store.get(attribution_id)
        if attribution is None:
            return False
        if attribution.is_expired(self._clock()):
            del self._store[attribution_id]
            return False
        return True

    def get(self, attribution_id: str) -> Optional[Attribution]:
        if not self.validate(attribution_id):
            return None
        return self._store[attribution_id]

    def mark_conversion_complete(self, attribution_id: str) -> bool:
        return self._store.pop(attribution_id, None) is not None

    def track_conversion(
        self,
        attribution_id: str,
        affiliate: str,
        order_value: Optional[float] = None,
        currency: Optional[str] = None,
        conversion_type: str = "purchase",
        order_id: Optional[str] = None,
        product_id: Optional[str] = None,
        flavor_id: Optional[str] = None,
    ) -> Optional[Conversion]:
        """
        Link a conversion to its click and retire the attribution id.

        Returns:
            The conversion record, or None if the id is unknown or expired
        """
        attribution = self.get(attribution_id)
        if attribution is None:
            logger.warning(f"Conversion for invalid or expired attribution {attribution_id}")
            return None

        conversion = Conversion(
            attribution_id=attribution_id,
            affiliate=affiliate,
            value=order_value,
            currency=currency or DEFAULT_CONVERSION_CURRENCY,
            conversion_type=conversion_type or "purchase",
            order_id=order_id,
            product_id=product_id or attribution.product_id,
            flavor_id=flavor_id or attribution.flavor_id,
            timestamp=self._clock(),
        )
        self._conversions.append(conversion)
        self.mark_conversion_complete(attribution_id)

        logger.info(
            f"Affiliate conversion tracked: {affiliate} value={order_value} "
            f"{conversion.currency} id={attribution_id}"
        )
        return conversion

    def cleanup_expired(self) -> int:
        now = self._clock()
        expired = [aid for aid, a in self._store.items() if a.is_expired(now)]
        for aid in expired:
            del self._store[aid]
        if expired:
            logger.info(f"Cleaned up {len(expired)} expired attribution IDs")
        return len(expired)

    def stats(self) -> Dict[str, int]:
        """Counts for monitoring: active, expired (not yet purged) and last-24h ids."""
        now = self._clock()
        recent_cutoff = now - ATTRIBUTION_RECENT_WINDOW_HOURS * 60 * 60
        expired = sum(1 for a in self._store.values() if a.is_expired(now))
        recent = sum(1 for a in self._store.values() if a.timestamp > recent_cutoff)
        return {
            "totalActive": len(self._store) - expired,
            "totalExpired": expired,
            "recentActivity": recent,
            "totalConversions": len(self._conversions),
        }

    @property
    def conversions(self) -> List[Conversion]:
        return list(self._conversions)
