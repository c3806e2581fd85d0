"""Middleware for the clearance portal API."""

from .request_log import RequestLoggingMiddleware

__all__ = ["RequestLoggingMiddleware"]
