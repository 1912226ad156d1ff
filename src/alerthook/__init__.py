"""
AlertHook - Alert webhook receiver

A FastAPI-based endpoint for Grafana / Alertmanager notifications that
guards the ingestion route with an IP allow-list, a fixed-window rate
limiter, bearer token auth and payload validation, and plays a sound
when a firing alert arrives.
"""

__version__ = "0.1.0"

from .main import app

__all__ = ["app"]
