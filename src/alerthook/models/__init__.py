"""
Pydantic data models package.

Contains the validated webhook payload and the API response models.
"""

from .alert import AlertPayload, ErrorResponse, HealthResponse, IngestResponse, StatsResponse

__all__ = [
    "AlertPayload",
    "ErrorResponse",
    "HealthResponse",
    "IngestResponse",
    "StatsResponse",
]
