"""
Validate the JSON catalog under data/.

Checks required fields for ingredients, suppliers, bases and flavors,
duplicate ids, and recipe references to ingredients or bases that
do not exist.

Usage:
    python scripts/validate_data.py [data_dir]

Exit status is 1 when any error is found.
"""

import json
import sys
from pathlib import Path
from typing import Any, Dict, List, Tuple

# Project root
PROJECT_ROOT = Path(__file__).parent.parent
DEFAULT_DATA_DIR = PROJECT_ROOT / "data"

INGREDIENT_REQUIRED = ["id", "name", "category", "unit", "safety"]
SAFETY_REQUIRED = ["maxDaily", "warningThreshold", "euCompliant", "banned"]
SUPPLIER_REQUIRED = ["id", "name", "url", "location"]
BASE_REQUIRED = ["id", "name", "yield", "ingredients"]
FLAVOR_REQUIRED = ["id", "name", "category", "sodaType", "caffeineCategory", "ingredients", "compatibleBases"]


def _missing(record: Dict[str, Any], required: List[str], prefix: str) -> List[str]:
    return [f"{prefix}{field} is required" for field in required if field not in record]


def _duplicates(records: List[Dict[str, Any]], label: str) -> List[str]:
    seen, errors = set(), []
    for record in records:
        record_id = record.get("id")
        if record_id in seen:
            errors.append(f"Duplicate {label} ID: {record_id}")
        seen.add(record_id)
    return errors


def _load(path: Path) -> Tuple[Any, List[str]]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f), []
    except FileNotFoundError:
        return None, [f"{path.name}: file not found"]
    except json.JSONDecodeError as e:
        return None, [f"{path.name}: invalid JSON ({e})"]


def validate_ingredients(data: Any) -> List[str]:
    if not isinstance(data, list):
        return ["Ingredients data must be an array"]

    errors = []
    for index, item in enumerate(data):
        prefix = f"ingredients[{index}]."
        errors.extend(_missing(item, INGREDIENT_REQUIRED, prefix))
        safety = item.get("safety")
        if isinstance(safety, dict):
            errors.extend(_missing(safety, SAFETY_REQUIRED, f"{prefix}safety."))
            if "maxDaily" in safety and not isinstance(safety["maxDaily"], (int, float)):
                errors.append(f"{prefix}safety.maxDaily must be a number")
    errors.extend(_duplicates(data, "ingredient"))
    return errors


def validate_suppliers(data: Any) -> List[str]:
    suppliers = data.get("suppliers") if isinstance(data, dict) else None
    if not isinstance(suppliers, list):
        return ["Suppliers data must contain a suppliers array"]

    errors = []
    for index, item in enumerate(suppliers):
        prefix = f"suppliers[{index}]."
        errors.extend(_missing(item, SUPPLIER_REQUIRED, prefix))
    errors.extend(_duplicates(suppliers, "supplier"))
    return errors


def validate_recipe(data: Any, required: List[str], ingredient_ids: set) -> List[str]:
    if not isinstance(data, dict):
        return ["Recipe must be a JSON object"]

    errors = _missing(data, required, "")
    for index, item in enumerate(data.get("ingredients", [])):
        ingredient_id = item.get("ingredientId")
        if ingredient_id not in ingredient_ids:
            errors.append(f"ingredients[{index}] references unknown ingredient {ingredient_id}")
        if not isinstance(item.get("amount"), (int, float)):
            errors.append(f"ingredients[{index}].amount must be a number")

    recipe_yield = data.get("yield")
    if isinstance(recipe_yield, dict):
        for key in ("syrup", "drink"):
            if not isinstance(recipe_yield.get(key), (int, float)) or recipe_yield[key] <= 0:
                errors.append(f"yield.{key} must be a positive number")
    return errors


def validate_catalog(data_dir: Path) -> Dict[str, List[str]]:
    """
    Validate every catalog file.

    Returns:
        Dict of relative file path -> list of errors (empty list = valid)
    """
    data_dir = Path(data_dir)
    report: Dict[str, List[str]] = {}

    ingredients, errors = _load(data_dir / "ingredients" / "ingredients.json")
    report["ingredients/ingredients.json"] = errors or validate_ingredients(ingredients)
    ingredient_ids = {i.get("id") for i in ingredients} if isinstance(ingredients, list) else set()

    suppliers, errors = _load(data_dir / "suppliers" / "netherlands.json")
    report["suppliers/netherlands.json"] = errors or validate_suppliers(suppliers)

    base_ids = set()
    for path in sorted((data_dir / "bases").glob("*.json")):
        base, errors = _load(path)
        report[f"bases/{path.name}"] = errors or validate_recipe(base, BASE_REQUIRED, ingredient_ids)
        if isinstance(base, dict):
            base_ids.add(base.get("id"))

    for path in sorted((data_dir / "flavors").glob("*.json")):
        flavor, errors = _load(path)
        if not errors:
            errors = validate_recipe(flavor, FLAVOR_REQUIRED, ingredient_ids)
            compatible = flavor.get("compatibleBases", []) if isinstance(flavor, dict) else []
            for base_id in compatible:
                if base_id not in base_ids:
                    errors.append(f"compatibleBases references unknown base {base_id}")
        report[f"flavors/{path.name}"] = errors

    return report


def main(argv: List[str]) -> int:
    data_dir = Path(argv[1]) if len(argv) > 1 else DEFAULT_DATA_DIR
    print(f"Validating data files in {data_dir}...\n")

    report = validate_catalog(data_dir)
    failed = 0
    for name, errors in report.items():
        if errors:
            failed += 1
            print(f"FAIL {name}:")
            for error in errors:
                print(f"  - {error}")
        else:
            print(f"OK   {name}")

    print(f"\n{len(report) - failed}/{len(report)} files valid")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(main(sys.argv))
