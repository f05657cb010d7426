"""Base backend interface."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Callable

from ..submissions.types import Comment, Submission
from ..sync.events import ChangeNotification


class BackendError(Exception):
    """Base exception for backend call failures."""
    pass


class BackendConnectionError(BackendError):
    """Raised when the backend cannot be reached."""
    pass


class BackendAuthError(BackendError):
    """Raised when the backend refuses the caller's credentials."""
    pass


class BackendTimeout(BackendError):
    """Raised when a backend call does not complete in time."""
    pass


class BackendNotFound(BackendError):
    """Raised when the row being written does not exist."""
    pass


ChangeCallback = Callable[[ChangeNotification], None]


class SubmissionBackend(ABC):
    """
    Abstract persistence and change-feed interface.

    Implementations wrap a managed database service. Row-level security,
    schema and transport are the service's concern; this interface only
    covers what the approval workflow needs.
    """

    @abstractmethod
    async def fetch_submissions(self, producer_id: str | None = None) -> list[Submission]:
        """
        Fetch submissions with their comments.

        Args:
            producer_id: Restrict to one producer's submissions (producer view)
        """
        ...

    @abstractmethod
    async def update_submission(self, submission: Submission) -> None:
        """
        Persist the mutable fields of an existing submission.

        Raises:
            BackendNotFound: If no row has the submission's id
            BackendError: On any other failure
        """
        ...

    @abstractmethod
    async def insert_comment(self, comment: Comment) -> None:
        """Insert a comment row scoped to its submission."""
        ...

    @abstractmethod
    async def insert_submission(self, submission: Submission) -> None:
        """Insert a newly submitted asset or access request."""
        ...

    @abstractmethod
    async def subscribe(self, callback: ChangeCallback) -> None:
        """
        Register for change notifications.

        ``callback`` is invoked for every submission update and comment
        insert. It must not block.
        """
        ...

    async def close(self) -> None:
        """Release connections and stop change feeds."""
        return None
