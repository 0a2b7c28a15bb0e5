import math
from typing import Any, Iterable, List, Optional, Sequence

from .models import ChartMetric, ChartPoint, ChartSeries, MetricSnapshot

DEFAULT_CHART_METRICS: List[ChartMetric] = [
    ChartMetric(key="montantTotalBc", label="Total BC", color="#2563eb"),
    ChartMetric(key="montantClotureTerrain", label="Clôture Terrain", color="#16a34a"),
    ChartMetric(key="tauxRealisation", label="Taux Réalisation", color="#9333ea"),
    ChartMetric(
        key="montantReceptionneFacture", label="Réception Facture", color="#ea580c"
    ),
    ChartMetric(key="montantDeposeSys", label="Déposé Système", color="#0891b2"),
    ChartMetric(key="montantADeposerSys", label="À Déposer Système", color="#dc2626"),
    ChartMetric(
        key="montantEnCoursRecepTech", label="En Cours Récep. Tech", color="#ca8a04"
    ),
    ChartMetric(
        key="montantEnCoursRecepTechReserve",
        label="Récep. Tech Réserve",
        color="#db2777",
    ),
    ChartMetric(key="montantRestantBc", label="Restant", color="#4b5563"),
    ChartMetric(key="montantTravauxEnCours", label="Travaux En Cours", color="#65a30d"),
]


def _as_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        value = float(value)
    except OverflowError:
        return None
    return value if math.isfinite(value) else None


def build_chart_series(
    points: Iterable[MetricSnapshot],
    metrics: Sequence[ChartMetric] = DEFAULT_CHART_METRICS,
    visible: Optional[Iterable[str]] = None,
) -> List[ChartSeries]:
    """Project window points to one line series per visible metric.

    Missing or non-numeric values become gaps (y=None) instead of zeros.
    """
    shown = set(visible) if visible is not None else None
    rows = [(p.calculation_date, p.model_dump(by_alias=True)) for p in points]
    series: List[ChartSeries] = []
    for metric in metrics:
        if shown is not None and metric.key not in shown:
            continue
        series.append(
            ChartSeries(
                key=metric.key,
                label=metric.label,
                color=metric.color,
                points=[ChartPoint(x=d, y=_as_float(row.get(metric.key))) for d, row in rows],
            )
        )
    return series
