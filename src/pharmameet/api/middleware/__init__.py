"""API middleware package."""

from src.pharmameet.api.middleware.logging import LoggingMiddleware

__all__ = ["LoggingMiddleware"]
