"""Observers for monitoring migration events."""

from .base import BaseObserver, MigrationEvent, MigrationObserver
from .metrics import MetricsObserver

__all__ = ["MigrationObserver", "BaseObserver", "MigrationEvent", "MetricsObserver"]
