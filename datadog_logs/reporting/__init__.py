"""Reporting helpers derived from cached log pages."""

from .volume import VolumeSeries, build_volume, bucket_duration, empty_volume

__all__ = ["VolumeSeries", "build_volume", "bucket_duration", "empty_volume"]
