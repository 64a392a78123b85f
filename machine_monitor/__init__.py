"""Machine fault monitoring demo backend.

A periodic driver synthesizes vibration, temperature, current and sound
readings, scores them with a weighted threshold rule and keeps bounded
in-memory histories that feed both the REST API and the live push stream.
"""

__all__ = [
    "config",
    "core",
    "data",
    "web",
    "utils",
]
