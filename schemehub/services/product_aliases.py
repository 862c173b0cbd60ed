"""
Product line normalization for scheme payloads.

Front-end screens and spreadsheet imports spell product fields in
several ways. Each canonical snapshot field lists the input names it
accepts, in priority order; the first one carrying a non-empty value wins.

    item_id               itemCode, ITEMID, item_id
    item_name             itemName, ITEMNAME, item_name
    flavour_type          flavour, FLAVOUR, FLAVOURTYPE, flavour_type
    brand_name            brandName, BRANDNAME, brand_name
    pack_type             packType, PACKTYPE, pack_type
    pack_type_group_name  packGroup, PACKTYPEGROUPNAME, pack_type_group_name
    style                 style, Style
    nob                   nob, NOB
    configuration         mrp, Configuration, configuration
    discount_price        discountPrice, discount_price   (default 0)
    custom_fields         customFields, custom_fields     (default {})

Values are copied verbatim and must be scalars (text, number or boolean);
the snapshot never changes after creation.
"""
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, List, Mapping, Optional, Tuple

from schemehub.core.exceptions import ValidationError


PRODUCT_FIELD_ALIASES: Dict[str, Tuple[str, ...]] = {
    "item_id": ("itemCode", "ITEMID", "item_id"),
    "item_name": ("itemName", "ITEMNAME", "item_name"),
    "flavour_type": ("flavour", "FLAVOUR", "FLAVOURTYPE", "flavour_type"),
    "brand_name": ("brandName", "BRANDNAME", "brand_name"),
    "pack_type": ("packType", "PACKTYPE", "pack_type"),
    "pack_type_group_name": ("packGroup", "PACKTYPEGROUPNAME", "pack_type_group_name"),
    "style": ("style", "Style"),
    "nob": ("nob", "NOB"),
    "configuration": ("mrp", "Configuration", "configuration"),
}

DISCOUNT_ALIASES = ("discountPrice", "discount_price")
CUSTOM_FIELDS_ALIASES = ("customFields", "custom_fields")


def _first_present(raw: Mapping[str, Any], aliases: Tuple[str, ...]) -> Optional[Any]:
    for alias in aliases:
        value = raw.get(alias)
        if value is not None and value != "":
            return value
    return None


def _scalar(raw: Mapping[str, Any], field: str, position: int) -> Optional[Any]:
    value = _first_present(raw, PRODUCT_FIELD_ALIASES[field])
    if value is not None and not isinstance(value, (str, int, float)):
        raise ValidationError(f"Product {position}: {field} must be text or a number")
    return value


def _discount(raw: Mapping[str, Any], position: int) -> float:
    value = _first_present(raw, DISCOUNT_ALIASES)
    if value is None:
        return 0
    if isinstance(value, bool):
        raise ValidationError(f"Product {position}: discountPrice must be a number")
    try:
        return float(Decimal(str(value)))
    except InvalidOperation:
        raise ValidationError(f"Product {position}: discountPrice must be a number")


def normalize_product_line(raw: Any, position: int = 1) -> Dict[str, Any]:
    """Map one incoming product line onto the canonical snapshot shape."""
    if not isinstance(raw, Mapping):
        raise ValidationError(f"Product {position} must be an object")

    line: Dict[str, Any] = {
        field: _scalar(raw, field, position) for field in PRODUCT_FIELD_ALIASES
    }
    line["discount_price"] = _discount(raw, position)

    custom_fields = _first_present(raw, CUSTOM_FIELDS_ALIASES)
    if custom_fields is None:
        custom_fields = {}
    if not isinstance(custom_fields, Mapping):
        raise ValidationError(f"Product {position}: customFields must be an object")
    line["custom_fields"] = dict(custom_fields)

    return line


def normalize_product_lines(products: Any) -> List[Dict[str, Any]]:
    """
    Normalize the products list of a scheme payload.

    Raises:
        ValidationError: products missing, not a list, or containing
            a malformed line
    """
    if products is None:
        raise ValidationError("Please provide products for the scheme")
    if not isinstance(products, (list, tuple)):
        raise ValidationError("Products must be an array")
    return [normalize_product_line(raw, position) for position, raw in enumerate(products, start=1)]
