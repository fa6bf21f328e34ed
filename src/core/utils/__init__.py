"""Core utility functions."""

from core.utils.json_serializers import format_timespan, json_serializer

__all__ = ["json_serializer", "format_timespan"]
