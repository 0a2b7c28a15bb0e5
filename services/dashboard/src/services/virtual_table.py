"""Windowed rendering model for large record tables.

Only rows intersecting the scroll viewport, plus an overscan margin on each
side, are materialised. Rows share one estimated height, so a row's offset is
simply `index * row_height`.

Records come from a loosely typed upstream API: missing nested fields,
non-object intermediates and non-numeric quantities all degrade to the
placeholder instead of raising.
"""

from __future__ import annotations

import json
import math
import numbers
import re
from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import Any, Callable, Iterable, List, Optional, Union

from src.core.config import settings
from src.domain.models import Cell, ColumnSpec, ViewportWindow, VirtualRow

PLACEHOLDER = "-"
RELIQUAT_KEY = "Reliquat"

_NUMBER_RE = re.compile(r"[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")

RowClick = Callable[[Any], None]


def compute_visible_range(
    scroll_offset: float,
    container_height: float,
    row_height: float,
    record_count: int,
    overscan: int = 5,
) -> List[VirtualRow]:
    if record_count <= 0 or row_height <= 0:
        return []
    scroll = max(0.0, scroll_offset)
    height = max(0.0, container_height)
    overscan = max(0, overscan)

    last_index = record_count - 1
    first_visible = min(math.floor(scroll / row_height), last_index)
    last_visible = min(math.floor((scroll + height) / row_height), last_index)

    start = max(0, first_visible - overscan)
    end = min(last_index, last_visible + overscan)
    return [VirtualRow(index=i, offset_top=i * row_height) for i in range(start, end + 1)]


def resolve_path(record: Any, path: str) -> Optional[Any]:
    """Walk a dotted path; None when any segment is absent or not traversable."""
    if not isinstance(path, str) or not path:
        return None
    current = record
    for segment in path.split("."):
        if not segment or current is None:
            return None
        if isinstance(current, Mapping):
            current = current.get(segment)
        elif isinstance(current, Sequence) and not isinstance(current, (str, bytes)):
            if not segment.isdigit() or int(segment) >= len(current):
                return None
            current = current[int(segment)]
        else:
            return None
    return current


def to_number(value: Any) -> Optional[float]:
    """Browser-style numeric coercion that never yields NaN.

    Absent and blank values count as 0, booleans as 0/1, numeric strings are
    parsed; anything else (or a non-finite result) is None.
    """
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return float(value)
    if isinstance(value, numbers.Real):
        try:
            result = float(value)
        except OverflowError:
            return None
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        if not _NUMBER_RE.fullmatch(text):
            return None
        result = float(text)
    else:
        return None
    return result if math.isfinite(result) else None


def compute_reliquat(record: Any) -> str:
    """Remaining quantity: ordered minus in-progress minus completed."""
    ordered = resolve_path(record, "prestation.qteBc")
    if ordered is None:
        ordered = resolve_path(record, "qteBc")
    quantities = [
        to_number(ordered),
        to_number(resolve_path(record, "qteEncours")),
        to_number(resolve_path(record, "qteRealise")),
    ]
    if any(q is None for q in quantities):
        return PLACEHOLDER
    qte_bc, qte_encours, qte_realise = quantities
    remaining = qte_bc - qte_encours - qte_realise
    if not math.isfinite(remaining):
        return PLACEHOLDER
    # + 0.0 folds negative zero
    return f"{remaining + 0.0:.2f}"


def format_float(value: float) -> str:
    """Shortest round-trip digits, laid out the way a browser prints numbers.

    Fixed notation for magnitudes in [1e-6, 1e21), exponent notation with an
    explicit sign otherwise: 1e-05 -> "0.00001", 1e21 -> "1e+21".
    """
    if value == 0:
        return "0"
    sign, digits, exponent = Decimal(repr(value)).normalize().as_tuple()
    text = "".join(str(d) for d in digits)
    point = len(text) + exponent
    prefix = "-" if sign else ""
    if len(text) <= point <= 21:
        return prefix + text + "0" * (point - len(text))
    if 0 < point <= 21:
        return prefix + text[:point] + "." + text[point:]
    if -6 < point <= 0:
        return prefix + "0." + "0" * -point + text
    mantissa = text[0] + ("." + text[1:] if len(text) > 1 else "")
    power = point - 1
    return f"{prefix}{mantissa}e{'+' if power > 0 else '-'}{abs(power)}"


def format_value(value: Any) -> str:
    if value is None or value == "":
        return PLACEHOLDER
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float):
        if not math.isfinite(value):
            return PLACEHOLDER
        return format_float(value)
    if isinstance(value, (Mapping, list, tuple)):
        return json.dumps(value, ensure_ascii=False, default=str)
    return str(value)


def render_cell(record: Any, column: ColumnSpec) -> Cell:
    if column.key == RELIQUAT_KEY:
        value = compute_reliquat(record)
    else:
        value = format_value(resolve_path(record, column.key))
    return Cell(key=column.key, value=value, kind=column.kind)


class VirtualTable:
    def __init__(
        self,
        records: Sequence[Any],
        columns: Iterable[Union[ColumnSpec, Mapping[str, Any]]],
        row_height: Optional[float] = None,
        height: Optional[float] = None,
        overscan: Optional[int] = None,
        on_row_click: Optional[RowClick] = None,
    ):
        self.records = records
        self.columns = [
            c if isinstance(c, ColumnSpec) else ColumnSpec.model_validate(c)
            for c in columns
        ]
        self.row_height = row_height if row_height is not None else settings.table_row_height
        self.height = height if height is not None else settings.table_height
        self.overscan = overscan if overscan is not None else settings.table_overscan
        self.on_row_click = on_row_click

    @property
    def total_height(self) -> float:
        return len(self.records) * self.row_height

    def render_row(self, index: int) -> VirtualRow:
        record = self.records[index]
        return VirtualRow(
            index=index,
            offset_top=index * self.row_height,
            cells=[render_cell(record, col) for col in self.columns],
        )

    def viewport(
        self, scroll_top: float = 0.0, container_height: Optional[float] = None
    ) -> ViewportWindow:
        visible = compute_visible_range(
            scroll_top,
            container_height if container_height is not None else self.height,
            self.row_height,
            len(self.records),
            self.overscan,
        )
        if not visible:
            return ViewportWindow(total_height=self.total_height)
        return ViewportWindow(
            start_index=visible[0].index,
            end_index=visible[-1].index,
            total_height=self.total_height,
            rows=[self.render_row(v.index) for v in visible],
        )

    def click(self, index: int) -> Optional[Any]:
        if not 0 <= index < len(self.records):
            return None
        record = self.records[index]
        if self.on_row_click is not None:
            self.on_row_click(record)
        return record
