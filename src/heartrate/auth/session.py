"""Single-slot cache for the active Whoop credential.

States are Empty and Holding(credential).  Expiry is evaluated lazily on
``get()``: a credential inside the safety margin is dropped and reported as
absent, so callers never receive a token that is about to expire.
"""

from __future__ import annotations

import logging
import time
from datetime import timedelta
from typing import Callable

from src.heartrate.base import Credential

logger = logging.getLogger("heartsync.auth.session")

SAFETY_MARGIN = timedelta(minutes=5)


def _wall_clock_ms() -> int:
    return int(time.time() * 1000)


class SessionCache:
    """Holds at most one Credential for the lifetime of the process.

    Usage::

        session = SessionCache()
        credential = session.get()
        if credential is None:
            credential = await login_provider.login()
            session.set(credential)
    """

    def __init__(
        self,
        clock: Callable[[], int] | None = None,
        safety_margin: timedelta = SAFETY_MARGIN,
    ) -> None:
        """Initialize an empty cache.

        Args:
            clock:         Returns the current time as epoch ms (wall clock by default).
            safety_margin: Treat credentials as expired this long before ``exp``.
        """
        self._clock = clock or _wall_clock_ms
        self._margin_ms = int(safety_margin.total_seconds() * 1000)
        self._credential: Credential | None = None

    @property
    def is_empty(self) -> bool:
        return self._credential is None

    def get(self) -> Credential | None:
        """Return the cached credential if it is still usable, else None."""
        credential = self._credential
        if credential is None:
            return None
        if not credential.is_usable(self._clock(), self._margin_ms):
            logger.info(
                "Cached credential for user %s expires at %s, dropping it",
                credential.user_id,
                credential.expires_at_datetime.isoformat(),
            )
            self._credential = None
            return None
        return credential

    def set(self, credential: Credential) -> None:
        """Replace the cached credential unconditionally."""
        self._credential = credential

    def clear(self) -> None:
        self._credential = None
