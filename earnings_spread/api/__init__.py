"""Shared HTTP client infrastructure."""

from .base_client import BaseAPIClient

__all__ = ["BaseAPIClient"]
