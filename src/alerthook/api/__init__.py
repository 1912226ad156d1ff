"""
API endpoints package.

Contains FastAPI routers for all service endpoints:
- POST /test - Alert ingestion endpoint
- /health, /stats - Liveness and request statistics
- /metrics - Prometheus metrics
"""
from .alerts import router as alerts_router
from .health import router as health_router
from .metrics import router as metrics_router

__all__ = ["alerts_router", "health_router", "metrics_router"]
