"""
Exceptions raised by the SodaLab discovery engines.

The Flask layer maps these onto HTTP status codes: lookup failures
become 404, malformed filter queries become 400, everything else is
reported as a 500.
"""


class SodaLabError(Exception):
    """Base class for all discovery-service errors."""


class CatalogLoadError(SodaLabError):
    """A data file is missing or cannot be parsed."""


class RecipeNotFoundError(SodaLabError):
    """No recipe (flavor or base) exists with the requested id."""

    def __init__(self, recipe_id: str):
        super().__init__(f"Recipe not found: {recipe_id}")
        self.recipe_id = recipe_id


class InvalidFilterError(SodaLabError):
    """A filter query is structurally valid but cannot be evaluated."""


class UnknownFilterFieldError(InvalidFilterError):
    """A filter expression references a field with no definition."""

    def __init__(self, field: str):
        super().__init__(f"Unknown filter field: {field}")
        self.field = field


class InvalidRegionError(SodaLabError):
    """The requested Amazon marketplace is not configured."""

    def __init__(self, region: str):
        super().__init__(f"Invalid region: {region}")
        self.region = region
