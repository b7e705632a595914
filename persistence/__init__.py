"""Persistence collaborator: local storage of timers and their last state."""

from persistence.persistence_service import (
    STORAGE_PREFIX,
    PersistenceService,
    StoredTimer,
)

__all__ = ["STORAGE_PREFIX", "PersistenceService", "StoredTimer"]
