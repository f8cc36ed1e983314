"""Database layer: declarative base, engine/session management, immutability."""

from docflow_kernel.db.base import Base, TrackedBase, UTCDateTime, UUIDString

__all__ = ["Base", "TrackedBase", "UTCDateTime", "UUIDString"]
