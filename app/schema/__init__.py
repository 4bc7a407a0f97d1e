"""Schema package exports."""

from .jobs import BriefingJob, ContentCacheEntry

__all__ = ["BriefingJob", "ContentCacheEntry"]
