"""
Batch calculator.

Base recipes are written for one syrup batch (``yield.syrup`` ml of
syrup that makes ``yield.drink`` ml of finished drink). Flavor recipes
are added to that same syrup batch, so both scale with the amount of
syrup the requested drink volume needs.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

MG_PER_G = 1000


@dataclass
class CalculatedIngredient:
    id: str
    name: str
    amount: float
    unit: str
    type: str  # "base" or "flavor"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "amount": round(self.amount, 4),
            "unit": self.unit,
            "type": self.type,
        }


@dataclass
class CalculationResult:
    ingredients: List[CalculatedIngredient]
    total_caffeine: float
    caffeine_per_serving: float
    volume: float
    syrup_volume: float
    water_volume: float
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ingredients": [i.to_dict() for i in self.ingredients],
            "totalCaffeine": round(self.total_caffeine, 2),
            "caffeinePerServing": round(self.caffeine_per_serving, 2),
            "volume": self.volume,
            "syrupVolume": round(self.syrup_volume, 2),
            "waterVolume": round(self.water_volume, 2),
            "warnings": self.warnings,
        }


def _is_caffeine(ingredient_id: str) -> bool:
    return "caffeine" in ingredient_id


def calculate_recipe(
    base: Dict[str, Any],
    flavor: Dict[str, Any],
    volume: float,
    target_caffeine: Optional[float] = None,
    serving_size: float = 250,
    catalog=None,
) -> CalculationResult:
    """
    Scale a base + flavor combination to a drink volume.

    Args:
        base: Base recipe record (needs ``yield.syrup`` and ``yield.drink``)
        flavor: Flavor recipe record
        volume: Finished drink volume in ml
        target_caffeine: Desired caffeine in mg per serving. When set, the
            first caffeine ingredient is recomputed to hit it; when None
            the recipe's own caffeine amount is kept.
        serving_size: Serving size in ml
        catalog: Optional CatalogLoader used to resolve names, units and
            caffeine safety thresholds

    Returns:
        CalculationResult

    Raises:
        ValueError: If volume, serving size or the base yield is not positive
    """
    if volume <= 0 or serving_size <= 0:
        raise ValueError("volume and serving_size must be positive")

    syrup_yield = float(base["yield"]["syrup"])
    drink_yield = float(base["yield"]["drink"])
    if syrup_yield <= 0 or drink_yield <= 0:
        raise ValueError(f"Base {base.get('id')} has an invalid yield")

    dilution = drink_yield / syrup_yield
    syrup_volume = volume / dilution
    water_volume = volume - syrup_volume
    scale = syrup_volume / syrup_yield

    ingredients: List[CalculatedIngredient] = []
    for source, kind in ((base, "base"), (flavor, "flavor")):
        for item in source.get("ingredients", []):
            ingredient_id = item["ingredientId"]
            info = catalog.get_ingredient(ingredient_id) if catalog is not None else None
            ingredients.append(CalculatedIngredient(
                id=ingredient_id,
                name=info.get("name", ingredient_id) if info else ingredient_id,
                amount=item["amount"] * scale,
                unit=info.get("unit", "g") if info else "g",
                type=kind,
            ))

    caffeine = next((i for i in ingredients if _is_caffeine(i.id)), None)
    total_caffeine = 0.0
    if caffeine is not None:
        if target_caffeine is not None:
            total_caffeine = target_caffeine / serving_size * volume
            caffeine.amount = total_caffeine / MG_PER_G
        else:
            total_caffeine = caffeine.amount * MG_PER_G

    per_serving = total_caffeine / volume * serving_size

    warnings = []
    compatible = flavor.get("compatibleBases")
    if compatible and base.get("id") not in compatible:
        warnings.append(f"{flavor.get('name', flavor.get('id'))} is not listed as compatible with {base.get('id')}")
    if caffeine is not None and catalog is not None:
        info = catalog.get_ingredient(caffeine.id) or {}
        threshold = info.get("safety", {}).get("warningThreshold")
        if threshold is not None and per_serving > threshold:
            warnings.append(
                f"Caffeine per serving ({per_serving:.0f} mg) exceeds the "
                f"{threshold} mg warning threshold for {caffeine.name}"
            )

    logger.info(
        f"Calculated {flavor.get('id')} on {base.get('id')}: {volume}ml drink, "
        f"{syrup_volume:.1f}ml syrup, {per_serving:.1f}mg caffeine/serving"
    )

    return CalculationResult(
        ingredients=ingredients,
        total_caffeine=total_caffeine,
        caffeine_per_serving=per_serving,
        volume=volume,
        syrup_volume=syrup_volume,
        water_volume=water_volume,
        warnings=warnings,
    )
