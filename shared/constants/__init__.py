from .api_paths import ApiPaths
from .environments import Environment

__all__ = ["ApiPaths", "Environment"]
