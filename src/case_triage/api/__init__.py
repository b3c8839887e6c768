"""FastAPI ingress for the triage pipeline."""

from .app import create_app, sanitize_event
from .middleware import RequestIdMiddleware

__all__ = ["RequestIdMiddleware", "create_app", "sanitize_event"]
