"""Raw declared type -> field type category.

The mapping is total: an unrecognized raw type is returned unchanged as a
best-effort label, because one odd field in a schema we do not control must
not stop generation.
"""
from enum import Enum
from typing import Dict, List, Optional, Tuple


class FieldCategory(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    DATE = "date"
    TIMESTAMP = "timestamp"
    CONTAINER = "container"
    LIST = "list"
    # layout protocol only
    TIME = "time"


BASE_CATEGORIES = {c.value for c in FieldCategory}

ODATA_TYPE_MAP: Dict[str, FieldCategory] = {
    "Edm.String": FieldCategory.TEXT,
    "Edm.Decimal": FieldCategory.NUMBER,
    "Edm.Int16": FieldCategory.NUMBER,
    "Edm.Int32": FieldCategory.NUMBER,
    "Edm.Int64": FieldCategory.NUMBER,
    "Edm.Double": FieldCategory.NUMBER,
    "Edm.Single": FieldCategory.NUMBER,
    "Edm.Boolean": FieldCategory.BOOLEAN,
    "Edm.Date": FieldCategory.DATE,
    "Edm.DateTimeOffset": FieldCategory.TIMESTAMP,
    "Edm.Binary": FieldCategory.CONTAINER,
    "Edm.Stream": FieldCategory.CONTAINER,
}

LAYOUT_TYPE_MAP: Dict[str, FieldCategory] = {
    "text": FieldCategory.TEXT,
    "number": FieldCategory.NUMBER,
    "date": FieldCategory.DATE,
    "time": FieldCategory.TIME,
    "timestamp": FieldCategory.TIMESTAMP,
    "container": FieldCategory.CONTAINER,
}

# override spellings that are aliases of a base category
OVERRIDE_ALIASES = {"fmBooleanNumber": FieldCategory.BOOLEAN.value}


def map_type(raw_type: str, override: Optional[str] = None) -> str:
    if override:
        return override
    if raw_type in ODATA_TYPE_MAP:
        return ODATA_TYPE_MAP[raw_type].value
    if raw_type in LAYOUT_TYPE_MAP:
        return LAYOUT_TYPE_MAP[raw_type].value
    if raw_type.startswith("Collection("):
        return FieldCategory.LIST.value
    return raw_type


def base_category(category: str) -> Optional[str]:
    """The base category a mapped label renders as, or None for passthrough labels."""
    category = OVERRIDE_ALIASES.get(category, category)
    return category if category in BASE_CATEGORIES else None


def describe_type_map() -> List[Tuple[str, str]]:
    rows = [(raw, cat.value) for raw, cat in ODATA_TYPE_MAP.items()]
    rows += [(raw, cat.value) for raw, cat in LAYOUT_TYPE_MAP.items()]
    rows.append(("Collection(...)", FieldCategory.LIST.value))
    return rows
