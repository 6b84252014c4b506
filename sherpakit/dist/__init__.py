"""Prebuilt archive distribution manifest."""

from sherpakit.dist.manifest import DistributionEntry, DistributionManifest

__all__ = ["DistributionEntry", "DistributionManifest"]
