"""
Core request-processing components.

- Shared counters and the window reset service
- Admission guards and the guard chain
- HTTP middleware (request id, CORS, fallback)
- Sound dispatcher and metrics
"""
