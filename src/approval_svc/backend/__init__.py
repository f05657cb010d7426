"""Backend-as-a-service collaborators for persisting and watching submissions."""

from .base import (
    BackendAuthError,
    BackendConnectionError,
    BackendError,
    BackendNotFound,
    BackendTimeout,
    SubmissionBackend,
)
from .memory import InMemoryBackend
from .rest import RestBackend

__all__ = [
    "BackendAuthError",
    "BackendConnectionError",
    "BackendError",
    "BackendNotFound",
    "BackendTimeout",
    "SubmissionBackend",
    "InMemoryBackend",
    "RestBackend",
]
