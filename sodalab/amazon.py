"""
Amazon regional URLs and stock availability.

AmazonURLGenerator builds product and search URLs for each configured
marketplace (amazon.com, amazon.co.uk, amazon.de, ...) with the right
affiliate tag and locale.

AvailabilityChecker aggregates per-region stock records from a
ProductAvailabilityService into urgency levels, restock predictions,
alerts and purchasing recommendations.
"""

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import urlencode

from config import (
    AMAZON_CATEGORY_MAP,
    AMAZON_SORT_MAP,
    DEFAULT_AVAILABILITY_REGIONS,
    LIMITED_STOCK_ALERT_THRESHOLD,
    LOW_STOCK_THRESHOLD,
    RESTOCK_CONFIDENCE_ESTIMATED,
    RESTOCK_CONFIDENCE_KNOWN_DATE,
    RESTOCK_ESTIMATE_DAYS,
)
from sodalab.cache import TTLCache
from sodalab.exceptions import InvalidRegionError
from sodalab.services import ProductAvailabilityService, StaticAvailabilityService

logger = logging.getLogger(__name__)

URL_CACHE_TTL = 15 * 60


class AmazonURLGenerator:
    """
    Regional Amazon URL builder.

    Usage:
        generator = AmazonURLGenerator(catalog.regions)
        generator.product_url("B08N5WRWNW", "uk")
        # -> https://amazon.co.uk/dp/B08N5WRWNW?tag=sodalab-21&locale=en_GB&ref=sr_1_1
    """

    def __init__(self, regions: Dict[str, Dict[str, Any]]):
        self.regions = {code.upper(): config for code, config in regions.items()}
        self._cache = TTLCache(URL_CACHE_TTL)

    def get_region(self, region: str) -> Dict[str, Any]:
        """Region config by case-insensitive code; raises InvalidRegionError."""
        config = self.regions.get(str(region or "").upper())
        if config is None:
            raise InvalidRegionError(region)
        return config

    def product_url(
        self,
        asin: str,
        region: str,
        include_affiliate: bool = True,
        include_tracking: bool = True,
        include_locale: bool = True,
        include_currency: bool = False,
        custom_parameters: Optional[Dict[str, str]] = None,
    ) -> str:
        """
        Product detail page URL.

        Query parameters are added in the order tag, locale, currency,
        ref, then any custom parameters.
        """
        cache_key = (
            f"product:{asin}:{str(region).upper()}:{include_affiliate}:{include_tracking}:"
            f"{include_locale}:{include_currency}:{sorted((custom_parameters or {}).items())}"
        )
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        config = self.get_region(region)
        params: Dict[str, str] = {}
        if include_affiliate and config.get("affiliateTag"):
            params["tag"] = config["affiliateTag"]
        if include_locale and config.get("locale"):
            params["locale"] = config["locale"]
        if include_currency and config.get("currency"):
            params["currency"] = config["currency"]
        if include_tracking:
            params["ref"] = "sr_1_1"
        params.update(custom_parameters or {})

        url = f"https://{config['domain']}/dp/{asin}"
        if params:
            url = f"{url}?{urlencode(params)}"

        self._cache.set(cache_key, url)
        return url

    def search_url(
        self,
        region: str,
        query: Optional[str] = None,
        category: Optional[str] = None,
        brand: Optional[str] = None,
        price_range: Optional[Dict[str, float]] = None,
        sort_by: Optional[str] = None,
        affiliate_tag: Optional[str] = None,
    ) -> str:
        """
        Marketplace search URL.

        Args:
            region: Marketplace code
            query: Search keywords (``k``)
            category: Catalog category mapped to the store's ``i`` value
            brand: Brand filter
            price_range: ``{"min": 5, "max": 20}`` in major currency units
            sort_by: relevance, price-low, price-high, rating or newest
            affiliate_tag: Overrides the region's default tag
        """
        config = self.get_region(region)
        code = str(region).upper()
        params: Dict[str, str] = {}

        if query:
            params["k"] = query
        if category:
            params["i"] = AMAZON_CATEGORY_MAP.get(category, {}).get(code, category)
        if brand:
            params["brand"] = brand
        if price_range:
            low = int(round(float(price_range["min"]) * 100))
            high = int(round(float(price_range["max"]) * 100))
            params["rh"] = f"p_36:{low}-{high}"
        if sort_by:
            params["s"] = AMAZON_SORT_MAP.get(sort_by, AMAZON_SORT_MAP["relevance"])

        tag = affiliate_tag or config.get("affiliateTag")
        if tag:
            params["tag"] = tag

        return f"https://{config['domain']}/s?{urlencode(params)}"

    def list_regions(self) -> List[Dict[str, Any]]:
        return [dict(config, code=code) for code, config in sorted(self.regions.items())]


class AvailabilityChecker:
    """
    Multi-region stock checker.

    Usage:
        checker = AvailabilityChecker(AmazonURLGenerator(regions))
        report = checker.check(["B08N5WRWNW"], regions=["US", "UK"])

    Args:
        url_generator: Builds the per-region product URLs
        service: Source of stock records (defaults to the static table)
        today: Returns today's date; injectable for restock predictions
    """

    def __init__(
        self,
        url_generator: AmazonURLGenerator,
        service: Optional[ProductAvailabilityService] = None,
        today: Callable[[], date] = date.today,
    ):
        self.url_generator = url_generator
        self.service = service or StaticAvailabilityService()
        self._today = today
        self._alerts: List[Dict[str, Any]] = []

    def check(
        self,
        asins: List[str],
        regions: Optional[List[str]] = None,
        check_alternatives: bool = True,
    ) -> Dict[str, Any]:
        """
        Availability report for several products.

        Returns:
            Dict with keys: availability (one entry per ASIN), summary,
            alerts, recommendations

        Raises:
            InvalidRegionError: If a requested region is not configured
        """
        regions = list(regions or DEFAULT_AVAILABILITY_REGIONS)
        availability = [self._check_product(asin, regions, check_alternatives) for asin in asins]

        logger.info(f"Availability checked for {len(asins)} products across {len(regions)} regions")
        return {
            "availability": availability,
            "summary": self.summarize(availability),
            "alerts": self.alerts(availability),
            "recommendations": self.recommendations(availability),
        }

    def _check_product(self, asin: str, regions: List[str], check_alternatives: bool) -> Dict[str, Any]:
        by_region: Dict[str, Dict[str, Any]] = {}
        total_stock = 0

        for region in regions:
            url = self.url_generator.product_url(asin, region)
            record = self.service.availability(asin, region)

            if record is None:
                by_region[region] = {
                    "status": "unknown",
                    "fulfillmentType": "unknown",
                    "sellerCount": 0,
                    "shippingOptions": [],
                    "priceStability": "stable",
                    "url": url,
                }
                continue

            by_region[region] = {
                "status": record.get("status"),
                "stockLevel": record.get("stockLevel"),
                "fulfillmentType": record.get("fulfillmentType"),
                "sellerCount": record.get("sellerCount", 0),
                "shippingOptions": record.get("shippingOptions", []),
                "priceStability": record.get("priceStability", "stable"),
                "restockDate": record.get("restockDate"),
                "url": url,
            }
            if record.get("status") == "in-stock" and record.get("stockLevel"):
                total_stock += record["stockLevel"]

        alternatives = self._alternatives(asin, regions) if check_alternatives else []

        return {
            "asin": asin,
            "totalStock": total_stock,
            "availabilityByRegion": by_region,
            "alternatives": alternatives,
            "restockPredictions": self.restock_predictions(by_region),
            "urgencyLevel": self.urgency_level(total_stock),
        }

    def _alternatives(self, asin: str, regions: List[str]) -> List[Dict[str, Any]]:
        return [
            {**alt, "url": self.url_generator.product_url(alt["asin"], alt["region"])}
            for alt in self.service.alternatives(asin)
            if alt.get("region") in regions
        ]

    def restock_predictions(self, by_region: Dict[str, Dict[str, Any]]) -> List[Dict[str, Any]]:
        """
        Deterministic restock estimates.

        Out of stock with a known restock date keeps that date; limited
        stock below LOW_STOCK_THRESHOLD is expected back two weeks from today.
        """
        predictions = []
        for region, data in by_region.items():
            if data["status"] == "out-of-stock" and data.get("restockDate"):
                predictions.append({
                    "region": region,
                    "predictedDate": data["restockDate"],
                    "confidence": RESTOCK_CONFIDENCE_KNOWN_DATE,
                })
            elif (
                data["status"] == "limited"
                and data.get("stockLevel")
                and data["stockLevel"] < LOW_STOCK_THRESHOLD
            ):
                predicted = self._today() + timedelta(days=RESTOCK_ESTIMATE_DAYS)
                predictions.append({
                    "region": region,
                    "predictedDate": predicted.isoformat(),
                    "confidence": RESTOCK_CONFIDENCE_ESTIMATED,
                })
        return predictions

    @staticmethod
    def urgency_level(total_stock: int) -> str:
        if total_stock == 0:
            return "critical"
        if total_stock < 10:
            return "high"
        if total_stock < 50:
            return "medium"
        return "low"

    @staticmethod
    def summarize(availability: List[Dict[str, Any]]) -> Dict[str, int]:
        summary = {
            "totalProducts": len(availability),
            "inStock": 0,
            "outOfStock": 0,
            "limited": 0,
            "preOrder": 0,
            "totalStock": 0,
        }
        for product in availability:
            for data in product["availabilityByRegion"].values():
                status = data["status"]
                if status == "in-stock":
                    summary["inStock"] += 1
                    summary["totalStock"] += data.get("stockLevel") or 0
                elif status == "out-of-stock":
                    summary["outOfStock"] += 1
                elif status == "limited":
                    summary["limited"] += 1
                    summary["totalStock"] += data.get("stockLevel") or 0
                elif status == "pre-order":
                    summary["preOrder"] += 1
        return summary

    @staticmethod
    def alerts(availability: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        alerts = []
        for product in availability:
            asin = product["asin"]
            if product["urgencyLevel"] == "critical":
                alerts.append({
                    "type": "out-of-stock",
                    "severity": "critical",
                    "message": f"{asin} is out of stock in all regions",
                    "asin": asin,
                })
            elif product["urgencyLevel"] == "high":
                alerts.append({
                    "type": "low-stock",
                    "severity": "high",
                    "message": f"{asin} has very limited stock ({product['totalStock']} units)",
                    "asin": asin,
                })

            for region, data in product["availabilityByRegion"].items():
                level = data.get("stockLevel")
                if data["status"] == "limited" and level and level < LIMITED_STOCK_ALERT_THRESHOLD:
                    alerts.append({
                        "type": "limited-stock",
                        "severity": "medium",
                        "message": f"{asin} has only {level} units left in {region}",
                        "asin": asin,
                        "region": region,
                    })
        return alerts

    @staticmethod
    def recommendations(availability: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        recommendations = []
        for product in availability:
            in_stock = [
                (region, data) for region, data in product["availabilityByRegion"].items()
                if data["status"] == "in-stock"
            ]
            in_stock.sort(key=lambda pair: pair[1].get("stockLevel") or 0, reverse=True)

            if in_stock:
                region, data = in_stock[0]
                recommendations.append({
                    "asin": product["asin"],
                    "recommendation": "available-now",
                    "region": region,
                    "reason": f"In stock with {data.get('stockLevel') or 'unknown'} units available",
                    "urgency": product["urgencyLevel"],
                    "url": data["url"],
                })
            elif product["alternatives"]:
                alternative = product["alternatives"][0]
                recommendations.append({
                    "asin": product["asin"],
                    "recommendation": "alternative",
                    "alternative": alternative["asin"],
                    "region": alternative["region"],
                    "reason": "Original product unavailable, consider alternative",
                    "urgency": product["urgencyLevel"],
                    "url": alternative["url"],
                })
        return recommendations

    def configure_alert(
        self,
        asin: str,
        region: str,
        threshold: int = 5,
        email: Optional[str] = None,
        webhook: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Register a stock alert; the region must be a configured marketplace."""
        self.url_generator.get_region(region)
        alert = {
            "asin": asin,
            "region": region,
            "threshold": threshold,
            "email": email,
            "webhook": webhook,
            "createdAt": datetime.now(timezone.utc).isoformat(),
            "active": True,
        }
        self._alerts.append(alert)
        logger.info(f"Stock alert configured for {asin} in {region} (threshold {threshold})")
        return alert

    @property
    def configured_alerts(self) -> List[Dict[str, Any]]:
        return list(self._alerts)
