from enum import Enum


class Environment(str, Enum):
    """Application environment types."""

    PRODUCTION = "production"
    STAGING = "staging"
    TESTING = "testing"
    DEVELOPMENT = "development"

    @classmethod
    def parse(cls, env: str) -> "Environment":
        """Map a free-form setting value to an environment, defaulting to production."""
        try:
            return cls(env.strip().lower())
        except ValueError:
            return cls.PRODUCTION

    @classmethod
    def uses_json_logs(cls, env: str) -> bool:
        """Structured JSON logs everywhere except local development."""
        return cls.parse(env) is not cls.DEVELOPMENT
