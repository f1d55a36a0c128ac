"""Route group exports."""

from . import health, routes, routing

__all__ = ["health", "routes", "routing"]
