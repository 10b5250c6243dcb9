"""Observability: structured logging, in-process metrics and request context.

Everything here is dependency-free apart from FastAPI for the middleware
type hint, and safe to call from request handlers and worker threads.
"""

__all__ = [
    "middleware",
    "metrics",
    "logger",
    "context",
]
