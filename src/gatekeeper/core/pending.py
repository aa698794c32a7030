from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Callable

from gatekeeper.core.submission import ApplicationSubmission

logger = logging.getLogger(__name__)


class PendingSubmissions:
    """Submissions parked in manual recovery, keyed by submission id.

    Entries parked for ``ttl_sec`` or longer are closed and dropped by
    ``evict_expired``, which runs on every ``park``.
    """

    def __init__(self, ttl_sec: float, *, clock: Callable[[], float] = time.monotonic):
        self.ttl_sec = ttl_sec
        self.clock = clock
        self._entries: OrderedDict[str, tuple[ApplicationSubmission, float]] = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, submission_id: object) -> bool:
        return submission_id in self._entries

    def get(self, submission_id: str) -> ApplicationSubmission | None:
        entry = self._entries.get(submission_id)
        return entry[0] if entry else None

    def pop(self, submission_id: str) -> ApplicationSubmission | None:
        entry = self._entries.pop(submission_id, None)
        return entry[0] if entry else None

    async def park(self, submission: ApplicationSubmission) -> None:
        await self.evict_expired()
        self._entries[submission.id] = (submission, self.clock())
        self._entries.move_to_end(submission.id)

    async def evict_expired(self) -> list[str]:
        now = self.clock()
        expired = [
            submission_id
            for submission_id, (submission, parked_at) in self._entries.items()
            if now - parked_at >= self.ttl_sec and not submission.state.is_submitting
        ]
        for submission_id in expired:
            submission, parked_at = self._entries.pop(submission_id)
            logger.info(
                "Evicting abandoned submission submission_id=%s idle_sec=%.0f",
                submission_id,
                now - parked_at,
            )
            await submission.close()
        return expired
