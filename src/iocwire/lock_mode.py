from __future__ import annotations

from enum import Enum


class LockMode(Enum):
    """Select locking behavior for cached singleton creation.

    Use these values for the container-level ``lock_mode`` default. Registry
    mutations are always serialized; this setting only controls whether the
    first creation of a singleton is guarded.
    """

    THREAD = "thread"
    """Guard first singleton creation with a per-binding ``threading.Lock``."""

    NONE = "none"
    """Disable locking around singleton creation for single-threaded programs."""
