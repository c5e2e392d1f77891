"""Utility modules for openspec-sync."""

from .git import AHEAD_UNKNOWN, GitRepository, LineageRelation, Probe

__all__ = [
    "AHEAD_UNKNOWN",
    "GitRepository",
    "LineageRelation",
    "Probe",
]
