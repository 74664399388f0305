"""Configuration package."""

from .settings import DatasourceSettings

__all__ = ["DatasourceSettings"]
