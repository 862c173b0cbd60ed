"""
Allow-listed query filters.

List endpoints accept query parameters of the form ``field=value`` or
``field[op]=value`` (op in eq, gt, gte, lt, lte, in, contains). Each
endpoint declares which fields it exposes and how their values are
parsed; anything else is rejected with a ValidationError.
"""
import uuid
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Tuple
import re

from sqlalchemy import ColumnElement

from schemehub.core.exceptions import ValidationError


COMPARISON_OPS = ("eq", "gt", "gte", "lt", "lte", "in")
STRING_OPS = ("eq", "in", "contains")
ALL_OPS = COMPARISON_OPS + ("contains",)

_PARAM_RE = re.compile(r"^(?P<field>[A-Za-z_][A-Za-z0-9_]*)(?:\[(?P<op>[a-z]+)\])?$")


def _parse_str(value: str) -> str:
    return value.strip()


def _parse_int(value: str) -> int:
    return int(value)


def _parse_date(value: str) -> date:
    return date.fromisoformat(value.strip()[:10])


def _parse_uuid(value: str) -> uuid.UUID:
    return uuid.UUID(value.strip())


@dataclass(frozen=True)
class FilterField:
    """One filterable column and the operators it accepts."""
    column: Any
    parse: Callable[[str], Any] = _parse_str
    operators: Tuple[str, ...] = STRING_OPS

    @classmethod
    def string(cls, column) -> "FilterField":
        return cls(column=column, parse=_parse_str, operators=STRING_OPS)

    @classmethod
    def integer(cls, column) -> "FilterField":
        return cls(column=column, parse=_parse_int, operators=COMPARISON_OPS)

    @classmethod
    def date(cls, column) -> "FilterField":
        return cls(column=column, parse=_parse_date, operators=COMPARISON_OPS)

    @classmethod
    def uuid(cls, column) -> "FilterField":
        return cls(column=column, parse=_parse_uuid, operators=("eq", "in"))


@dataclass
class FilterSet:
    """Allow-list of filter and sort fields for one resource."""
    fields: Dict[str, FilterField]
    sortable: Dict[str, Any] = field(default_factory=dict)
    reserved: Tuple[str, ...] = ("page", "limit", "sort", "select")

    def _parse_value(self, name: str, spec: FilterField, raw: str) -> Any:
        try:
            return spec.parse(raw)
        except (ValueError, TypeError):
            raise ValidationError(f"Invalid value '{raw}' for filter '{name}'")

    def _clause(self, name: str, op: str, spec: FilterField, raw: str) -> ColumnElement:
        column = spec.column
        if op == "in":
            values = [self._parse_value(name, spec, part) for part in raw.split(",") if part.strip()]
            if not values:
                raise ValidationError(f"Filter '{name}[in]' needs at least one value")
            return column.in_(values)
        if op == "contains":
            return column.icontains(self._parse_value(name, spec, raw), autoescape=True)

        value = self._parse_value(name, spec, raw)
        if op == "eq":
            return column == value
        if op == "gt":
            return column > value
        if op == "gte":
            return column >= value
        if op == "lt":
            return column < value
        return column <= value

    def build(self, params: Iterable[Tuple[str, str]]) -> List[ColumnElement]:
        """
        Translate (key, value) query pairs into SQLAlchemy predicates.

        Raises:
            ValidationError: unknown field, unsupported operator or bad value
        """
        clauses: List[ColumnElement] = []
        for key, raw in params:
            if key in self.reserved:
                continue
            match = _PARAM_RE.match(key)
            if not match:
                raise ValidationError(f"Invalid filter parameter '{key}'")

            name = match.group("field")
            op = match.group("op") or "eq"
            spec = self.fields.get(name)
            if spec is None:
                raise ValidationError(f"Filtering on '{name}' is not supported")
            if op not in ALL_OPS or op not in spec.operators:
                raise ValidationError(f"Operator '{op}' is not supported for '{name}'")

            clauses.append(self._clause(name, op, spec, raw))
        return clauses

    def order_by(self, sort: Optional[str], default: str) -> list:
        """
        Build ORDER BY clauses from a comma-separated sort spec.
        A leading '-' sorts descending.
        """
        clauses = []
        for part in (sort or default).split(","):
            part = part.strip()
            if not part:
                continue
            descending = part.startswith("-")
            name = part.lstrip("-")
            column = self.sortable.get(name)
            if column is None:
                raise ValidationError(f"Sorting by '{name}' is not supported")
            clauses.append(column.desc() if descending else column.asc())
        return clauses


def query_pairs(params: Mapping[str, str] | Iterable[Tuple[str, str]]) -> List[Tuple[str, str]]:
    """Normalize a mapping or multi-dict items() into a list of pairs."""
    if hasattr(params, "multi_items"):
        return list(params.multi_items())
    if isinstance(params, Mapping):
        return list(params.items())
    return list(params)
