"""Data models for decoded receiver output."""

from .navigation import MeasuredNavigationData
