"""
HTTP middleware: Prometheus request metrics with id segments collapsed to
route placeholders.
"""
from app.middleware.metrics import MetricsMiddleware

__all__ = ["MetricsMiddleware"]
