"""Routers package."""

from . import (
    health,
    analytics,
)
