"""Core primitives shared across all subsystems.

Enums, type aliases, time helpers and the error hierarchy live here so that the
storage, traders and api packages can import them without cycles.
"""

from . import enums, errors, time_utils, types

__all__ = ["enums", "errors", "time_utils", "types"]
