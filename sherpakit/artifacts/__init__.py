"""Resolved artifacts and the prebuilt archive cache."""

from sherpakit.artifacts.artifact import ResolvedArtifact
from sherpakit.artifacts.cache import ArtifactCache, CacheSlot

__all__ = ["ResolvedArtifact", "ArtifactCache", "CacheSlot"]
