from datetime import date, datetime, timedelta
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base for payloads exchanged with the camelCase REST API."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MetricSnapshot(CamelModel):
    """One dashboard aggregation point for a back-office user and family.

    Only `calculation_date` is interpreted; the amounts are carried as an
    opaque payload. Unknown upstream fields are kept as-is.
    """

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )

    calculation_date: date
    famille_name: Optional[str] = None
    montant_total_bc: Optional[float] = None
    montant_cloture_terrain: Optional[float] = None
    taux_realisation: Optional[float] = None
    montant_receptionne_facture: Optional[float] = None
    montant_depose_sys: Optional[float] = None
    montant_a_deposer_sys: Optional[float] = None
    montant_en_cours_recep_tech: Optional[float] = None
    montant_en_cours_recep_tech_reserve: Optional[float] = None
    montant_restant_bc: Optional[float] = None
    montant_travaux_en_cours: Optional[float] = None


def default_date_range(today: date, days: int = 10) -> tuple[date, date]:
    """Rolling window of `days` calendar days ending today, both ends inclusive."""
    return today - timedelta(days=days - 1), today


class MetricsQuery(CamelModel):
    """Identity of a cached metrics window. Any differing field is a new identity."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, frozen=True
    )

    email: str = Field(min_length=1)
    famille: str = Field(min_length=1)
    start_date: date
    end_date: date

    @classmethod
    def build(
        cls,
        email: str,
        famille: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        today: Optional[date] = None,
        range_days: int = 10,
    ) -> "MetricsQuery":
        default_start, default_end = default_date_range(
            today or date.today(), range_days
        )
        return cls(
            email=email,
            famille=famille,
            start_date=start_date or default_start,
            end_date=end_date or default_end,
        )

    def as_params(self) -> dict[str, str]:
        return {
            "email": self.email,
            "famille": self.famille,
            "startDate": self.start_date.isoformat(),
            "endDate": self.end_date.isoformat(),
        }


class QueryState(CamelModel):
    """Observable state of one metrics query, as seen by chart consumers."""

    query: Optional[MetricsQuery] = None
    data: List[MetricSnapshot] = Field(default_factory=list)
    error: Optional[str] = None
    is_fetching: bool = False
    updated_at: Optional[datetime] = None
    failure_count: int = 0

    @computed_field(alias="isError")  # type: ignore[misc]
    @property
    def is_error(self) -> bool:
        return self.error is not None


class ChartMetric(CamelModel):
    key: str
    label: str
    color: str


class ChartPoint(CamelModel):
    x: date
    y: Optional[float] = None


class ChartSeries(ChartMetric):
    points: List[ChartPoint] = Field(default_factory=list)


class ColumnSpec(CamelModel):
    """Table column; `key` may be a dotted path into nested records."""

    key: str
    label: str
    kind: Optional[Literal["qty", "montant"]] = None


class Cell(CamelModel):
    key: str
    value: str
    kind: Optional[Literal["qty", "montant"]] = None


class VirtualRow(CamelModel):
    index: int
    offset_top: float
    cells: List[Cell] = Field(default_factory=list)


class ViewportWindow(CamelModel):
    start_index: Optional[int] = None
    end_index: Optional[int] = None
    total_height: float = 0.0
    rows: List[VirtualRow] = Field(default_factory=list)


class ViewportRequest(CamelModel):
    records: List[Any] = Field(default_factory=list)
    columns: List[ColumnSpec]
    scroll_top: float = 0.0
    container_height: Optional[float] = None
    row_height: Optional[float] = None
    overscan: Optional[int] = Field(default=None, ge=0)
