"""Utility modules."""

from services.incentives.src.incentives.utils.timestamps import to_utc_datetime

__all__ = ["to_utc_datetime"]
