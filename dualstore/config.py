"""
dualstore configuration: all environment variables in one place.

Read from environment at runtime. Never hardcode credentials.
"""

from __future__ import annotations

import os


def _flag(name: str) -> bool:
    return os.environ.get(name, "").lower() == "true"


class Settings:
    """Store settings from environment variables."""

    # Tree store (Realtime Database REST)
    FIREBASE_DATABASE_URL: str = os.environ.get("FIREBASE_DATABASE_URL", "")
    FIREBASE_AUTH_TOKEN: str = os.environ.get("FIREBASE_AUTH_TOKEN", "")
    RTDB_TIMEOUT_SECONDS: float = float(os.environ.get("RTDB_TIMEOUT_SECONDS", "10"))
    RTDB_ORDERED_FETCH_LIMIT: int = int(os.environ.get("RTDB_ORDERED_FETCH_LIMIT", "1000"))

    # Document store (Firestore)
    GOOGLE_CLOUD_PROJECT: str = os.environ.get("GOOGLE_CLOUD_PROJECT", "")
    FIRESTORE_DATABASE: str = os.environ.get("FIRESTORE_DATABASE", "")
    FIRESTORE_IN_LIMIT: int = 30  # values per native 'in' filter
    FIRESTORE_BATCH_LIMIT: int = 500  # writes per atomic batch

    # Routing during the gradual migration
    PRIMARY_DATABASE: str = os.environ.get("PRIMARY_DATABASE", "rtdb")  # rtdb | firestore
    DUAL_WRITE_ENABLED: bool = _flag("DUAL_WRITE_ENABLED")
    FIRESTORE_WRITE_ENABLED: bool = _flag("FIRESTORE_WRITE_ENABLED")

    @property
    def secondary_database(self) -> str:
        return "firestore" if self.PRIMARY_DATABASE == "rtdb" else "rtdb"

    @property
    def mirror_writes(self) -> bool:
        """Whether writes are copied to the secondary store."""
        if self.DUAL_WRITE_ENABLED:
            return True
        return self.secondary_database == "firestore" and self.FIRESTORE_WRITE_ENABLED

    def validate(self) -> None:
        """Raise if the configured routing cannot be built."""
        if self.PRIMARY_DATABASE not in ("rtdb", "firestore"):
            raise RuntimeError(f"PRIMARY_DATABASE must be 'rtdb' or 'firestore', got {self.PRIMARY_DATABASE!r}")
        uses_rtdb = self.PRIMARY_DATABASE == "rtdb" or (
            self.mirror_writes and self.secondary_database == "rtdb"
        )
        if uses_rtdb and not self.FIREBASE_DATABASE_URL:
            raise RuntimeError("FIREBASE_DATABASE_URL environment variable is required")


# Singleton instance
settings = Settings()
