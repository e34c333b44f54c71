"""Homefence: geofencing backend for family and employee location alerts."""

__version__ = "0.1.0"
