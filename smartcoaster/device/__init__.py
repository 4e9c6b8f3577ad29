"""Coaster device link."""
from .link import TemperatureController

__all__ = ["TemperatureController"]
