from typing import Optional

from shared.config import BaseServiceConfig


class Settings(BaseServiceConfig):
    # Upstream API
    api_token: Optional[str] = None  # used when a caller forwards no token

    # Metrics window cache
    metrics_window_capacity: int = 10
    metrics_default_range_days: int = 10  # [today-9, today] inclusive
    metrics_refresh_interval_seconds: float = 60.0
    metrics_max_tracked_queries: int = 64

    # Virtual table
    table_row_height: float = 50.0
    table_height: float = 400.0
    table_overscan: int = 5

    otel_service_name: str = "dashboard"


settings = Settings()
