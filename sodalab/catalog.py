"""
Catalog Loader for the SodaLab Discovery Service.

Loads the static JSON catalog once and keeps it in memory:
1. bases/*.json            - base syrup recipes
2. flavors/*.json          - flavor recipes (the searchable records)
3. ingredients/ingredients.json
4. suppliers/netherlands.json
5. suppliers/amazon-regions.json

Every engine receives the same CatalogLoader instance from the
application factory; nothing here is a module-level singleton.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

from config import DATA_PATHS, Settings
from sodalab.exceptions import CatalogLoadError

logger = logging.getLogger(__name__)


class CatalogLoader:
    """
    In-memory view of the recipe catalog.

    Usage:
        catalog = CatalogLoader(settings)
        catalog.initialize()
        cola = catalog.get_flavor("classic-cola")

    Accessing any collection before ``initialize()`` triggers the load,
    so callers never see a half-populated catalog.
    """

    def __init__(self, settings: Settings):
        self.data_dir = Path(settings.data_dir)

        self._flavors: List[Dict[str, Any]] = []
        self._bases: List[Dict[str, Any]] = []
        self._ingredients: List[Dict[str, Any]] = []
        self._suppliers: List[Dict[str, Any]] = []
        self._regions: Dict[str, Dict[str, Any]] = {}

        self._flavor_index: Dict[str, Dict[str, Any]] = {}
        self._base_index: Dict[str, Dict[str, Any]] = {}
        self._ingredient_index: Dict[str, Dict[str, Any]] = {}

        self._initialized = False
        self._available = False

    def initialize(self) -> bool:
        """
        Load every catalog file.

        Returns:
            True if the catalog loaded, False otherwise. A failed load is
            logged and remembered so the loader does not retry on every
            request.
        """
        if self._initialized:
            return self._available

        logger.info(f"Loading catalog from {self.data_dir}")

        try:
            self._bases = self._load_directory(DATA_PATHS["bases"])
            self._flavors = sorted(
                self._load_directory(DATA_PATHS["flavors"]),
                key=lambda recipe: recipe["id"],
            )
            self._ingredients = self._load_list(DATA_PATHS["ingredients"])
            self._suppliers = self._load_file(DATA_PATHS["suppliers"]).get("suppliers", [])
            self._regions = self._load_file(DATA_PATHS["amazon_regions"]).get("regions", {})

            self._flavor_index = {f["id"]: f for f in self._flavors}
            self._base_index = {b["id"]: b for b in self._bases}
            self._ingredient_index = {i["id"]: i for i in self._ingredients}

            self._available = True
            logger.info(
                f"Catalog loaded: {len(self._flavors)} flavors, {len(self._bases)} bases, "
                f"{len(self._ingredients)} ingredients, {len(self._suppliers)} suppliers"
            )
        except CatalogLoadError as e:
            logger.error(f"Catalog initialization failed: {e}")
            self._available = False

        self._initialized = True
        return self._available

    def _read_json(self, path: Path) -> Any:
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError as e:
            raise CatalogLoadError(f"Missing data file: {path}") from e
        except json.JSONDecodeError as e:
            raise CatalogLoadError(f"Invalid JSON in {path}: {e}") from e

    def _load_file(self, relative: str) -> Dict[str, Any]:
        return self._read_json(self.data_dir / relative)

    def _load_list(self, relative: str) -> List[Dict[str, Any]]:
        data = self._read_json(self.data_dir / relative)
        if not isinstance(data, list):
            raise CatalogLoadError(f"Expected a JSON list in {relative}")
        return data

    def _load_directory(self, relative: str) -> List[Dict[str, Any]]:
        directory = self.data_dir / relative
        if not directory.is_dir():
            raise CatalogLoadError(f"Missing data directory: {directory}")

        records = []
        for path in sorted(directory.glob("*.json")):
            records.append(self._read_json(path))
        logger.debug(f"Loaded {len(records)} records from {directory}")
        return records

    def _ensure_loaded(self) -> None:
        if not self._initialized:
            self.initialize()

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def is_available(self) -> bool:
        return self._available

    @property
    def flavors(self) -> List[Dict[str, Any]]:
        self._ensure_loaded()
        return self._flavors

    @property
    def bases(self) -> List[Dict[str, Any]]:
        self._ensure_loaded()
        return self._bases

    @property
    def ingredients(self) -> List[Dict[str, Any]]:
        self._ensure_loaded()
        return self._ingredients

    @property
    def suppliers(self) -> List[Dict[str, Any]]:
        self._ensure_loaded()
        return self._suppliers

    @property
    def regions(self) -> Dict[str, Dict[str, Any]]:
        self._ensure_loaded()
        return self._regions

    def flavor_ids(self) -> List[str]:
        return [f["id"] for f in self.flavors]

    def get_flavor(self, flavor_id: str) -> Optional[Dict[str, Any]]:
        self._ensure_loaded()
        return self._flavor_index.get(flavor_id)

    def get_base(self, base_id: str) -> Optional[Dict[str, Any]]:
        self._ensure_loaded()
        return self._base_index.get(base_id)

    def get_ingredient(self, ingredient_id: str) -> Optional[Dict[str, Any]]:
        self._ensure_loaded()
        return self._ingredient_index.get(ingredient_id)

    def get_ingredient_name(self, ingredient_id: str) -> str:
        """Display name for an ingredient id, falling back to the id itself."""
        ingredient = self.get_ingredient(ingredient_id)
        if ingredient:
            return ingredient.get("name", ingredient_id)
        return ingredient_id

    def summary(self) -> Dict[str, int]:
        return {
            "flavors": len(self.flavors),
            "bases": len(self.bases),
            "ingredients": len(self.ingredients),
            "suppliers": len(self.suppliers),
            "regions": len(self.regions),
        }
