"""Periodic maintenance jobs for the cross-chain engine."""

from hopbridge.scheduler.runner import MaintenanceRunner

__all__ = ["MaintenanceRunner"]
