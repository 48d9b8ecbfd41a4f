"""Column definitions for tabular reports.

A report column can be declared in two ways:

- a bare name, ``"city"``, which selects, orders and labels by that name;
- a mapping with ``key``, ``sql`` and optionally ``label``, ``sortable`` and
  ``order``, for computed or aliased expressions.

Both forms are normalized once, when the report is defined, into a tuple of
:class:`ColumnSpec` values. Nothing downstream inspects the raw definitions.
"""

from __future__ import annotations

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any, Union

from reportwriter.services.report_errors import ReportConfigurationError

_ALLOWED_MAPPING_KEYS = {"key", "sql", "label", "sortable", "order"}
_AS_KEYWORD_RE = re.compile(r"\s+AS\s+", re.IGNORECASE)
_ALIAS_NAME_RE = re.compile(r"^(?:`(\w+)`|\"(\w+)\"|([A-Za-z_]\w*))$")
_QUALIFIED_RE = re.compile(r"^[A-Za-z0-9_]+\.")


@dataclass(frozen=True)
class ColumnSpec:
    key: str
    query_fragment: str
    label: str
    sortable: bool = False
    order_fragment: str | None = None

    def __post_init__(self) -> None:
        if self.order_fragment is None:
            object.__setattr__(self, "order_fragment", default_order_fragment(self.query_fragment))

    @property
    def field_name(self) -> str:
        return display_field_name(self.query_fragment)


ColumnDefinition = Union[str, Mapping[str, Any], ColumnSpec]


def _is_top_level(text: str) -> bool:
    depth = 0
    quote = None
    for char in text:
        if quote:
            if char == quote:
                quote = None
        elif char in "'\"`":
            quote = char
        elif char == "(":
            depth += 1
        elif char == ")":
            depth -= 1
    return depth == 0 and quote is None


def column_alias(query_fragment: str) -> str | None:
    """Alias of ``expr AS alias``, or None when the fragment is not aliased.

    Only the last ``AS`` outside parentheses and quotes counts, and it must be
    followed by a bare (optionally quoted) identifier, so ``CAST(x AS CHAR)``
    has no alias.
    """
    fragment = query_fragment.strip()
    for keyword in reversed(list(_AS_KEYWORD_RE.finditer(fragment))):
        if not _is_top_level(fragment[: keyword.start()]):
            continue
        name = _ALIAS_NAME_RE.match(fragment[keyword.end():].strip())
        if name is None:
            return None
        return next(group for group in name.groups() if group)
    return None


def display_field_name(query_fragment: str) -> str:
    """Name under which the database returns a selected expression.

    ``"DATE_FORMAT(l.created, '%m/%e/%Y') AS date"`` -> ``"date"``,
    ``"p.name"`` -> ``"name"``, anything else is returned unchanged.
    """
    fragment = query_fragment.strip()
    alias = column_alias(fragment)
    if alias:
        return alias
    if _QUALIFIED_RE.match(fragment):
        return _QUALIFIED_RE.sub("", fragment, count=1)
    return fragment


def default_order_fragment(query_fragment: str) -> str:
    # An aliased expression cannot appear verbatim in ORDER BY; its alias can.
    fragment = query_fragment.strip()
    return column_alias(fragment) or fragment


def _label_from_name(name: str) -> str:
    return name[:1].upper() + name[1:]


def _column_from_mapping(definition: Mapping[str, Any], position: int) -> ColumnSpec:
    unknown = set(definition) - _ALLOWED_MAPPING_KEYS
    if unknown:
        raise ReportConfigurationError(
            f"Column {position} has unknown attributes: {', '.join(sorted(unknown))}"
        )
    key = definition.get("key")
    sql = definition.get("sql")
    if not isinstance(key, str) or not key.strip():
        raise ReportConfigurationError(f"Column {position} requires a non-empty 'key'")
    if not isinstance(sql, str) or not sql.strip():
        raise ReportConfigurationError(f"Column {key!r} requires a non-empty 'sql'")
    order = definition.get("order")
    if order is not None and (not isinstance(order, str) or not order.strip()):
        raise ReportConfigurationError(f"Column {key!r} has an empty 'order' expression")
    label = definition.get("label")
    return ColumnSpec(
        key=key.strip(),
        query_fragment=sql.strip(),
        label=str(label) if label is not None else _label_from_name(key.strip()),
        sortable=bool(definition.get("sortable", False)),
        order_fragment=order.strip() if order else None,
    )


def build_column_specs(
    definitions: Iterable[ColumnDefinition],
    *,
    sortable_default: bool = True,
) -> tuple[ColumnSpec, ...]:
    """Normalize mixed column definitions into ColumnSpecs.

    Args:
        definitions: Bare names, mappings or ColumnSpec instances, in display order
        sortable_default: Sortability applied to bare-name columns

    Returns:
        Tuple of ColumnSpec in declared order

    Raises:
        ReportConfigurationError: Empty set, duplicate keys or malformed entries
    """
    if definitions is None or isinstance(definitions, (str, bytes, Mapping)):
        raise ReportConfigurationError("columns must be a list of column definitions")

    columns: list[ColumnSpec] = []
    seen_keys: set[str] = set()
    for position, definition in enumerate(definitions):
        if isinstance(definition, ColumnSpec):
            column = definition
        elif isinstance(definition, str):
            name = definition.strip()
            if not name:
                raise ReportConfigurationError(f"Column {position} is an empty name")
            column = ColumnSpec(
                key=name,
                query_fragment=name,
                label=_label_from_name(name),
                sortable=sortable_default,
            )
        elif isinstance(definition, Mapping):
            column = _column_from_mapping(definition, position)
        else:
            raise ReportConfigurationError(
                f"Column {position} must be a name or a mapping, got {type(definition).__name__}"
            )

        if column.key in seen_keys:
            raise ReportConfigurationError(f"Duplicate column key: {column.key}")
        seen_keys.add(column.key)
        columns.append(column)

    if not columns:
        raise ReportConfigurationError("columns can not be empty")
    return tuple(columns)


def sortable_column(columns: Iterable[ColumnSpec], key: str | None) -> ColumnSpec | None:
    if not key:
        return None
    for column in columns:
        if column.key == key and column.sortable:
            return column
    return None
