"""Data Transfer Objects for the service's own endpoints.

Proxied traffic is passed through untouched; these Pydantic models only
describe responses the service itself produces.
"""

from .responses import HealthResponse

__all__ = [
    "HealthResponse",
]
