class ApiPaths:
    """Centralised upstream REST API path definitions"""

    DASHBOARD_METRICS = "/dashboard/metrics"

    @classmethod
    def url(cls, base_url: str, path: str) -> str:
        """Join a base URL and an API path without doubling slashes."""
        return f"{base_url.rstrip('/')}/{path.lstrip('/')}"
