"""Outcome reporting for catalog sessions.

The presentation layer decides how outcomes reach the user (toasts,
inline messages). The session only needs something implementing
``Notifier``.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol, final

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    """Receives the outcome of background persistence calls."""

    def success(self, message: str) -> None:
        """Report a completed operation."""

    def failure(self, message: str, error: Exception) -> None:
        """Report a failed operation."""


@final
class LoggingNotifier:
    """Notifier that only writes outcomes to the log."""

    def success(self, message: str) -> None:
        logger.info('%s', message)

    def failure(self, message: str, error: Exception) -> None:
        logger.warning('%s: %s', message, error)


@final
@dataclass(frozen=True)
class SessionContext:
    """Explicit dependencies of a catalog session.

    Replaces process-wide auth and toast state: whoever builds the session
    passes the signed-in user and the notifier in.
    """

    user: Any
    notifier: Notifier = field(default_factory=LoggingNotifier)
