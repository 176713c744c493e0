"""Configuration package: environment-driven :class:`Settings`."""

from docrag.config.settings import Settings

__all__ = ["Settings"]
