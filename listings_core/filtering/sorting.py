"""Sort preset resolution for listing queries."""

from .query import SortConfig


SORT_PRESETS = {
    "newest": SortConfig("created_at", False),
    "oldest": SortConfig("created_at", True),
    "price-low": SortConfig("price", True),
    "price-asc": SortConfig("price", True),
    "price-high": SortConfig("price", False),
    "price-desc": SortConfig("price", False),
    "popular": SortConfig("views", False),
}

SORTABLE_FIELDS = frozenset({"created_at", "price"})


def get_sort_config(sort_by: str = "newest") -> SortConfig:
    """
    Resolve a sort preset or a "field-order" string to a SortConfig.

    Unknown values fall back to newest first. Free-form strings are accepted
    only for ``created_at`` and ``price``.

    Examples:
        >>> get_sort_config("price-low")
        SortConfig(field='price', ascending=True)
        >>> get_sort_config("created_at-asc")
        SortConfig(field='created_at', ascending=True)
    """
    if sort_by in SORT_PRESETS:
        return SORT_PRESETS[sort_by]

    if sort_by and "-" in sort_by:
        field_name, _, order = sort_by.partition("-")
        if field_name in SORTABLE_FIELDS:
            return SortConfig(field_name, order == "asc")

    return SORT_PRESETS["newest"]
