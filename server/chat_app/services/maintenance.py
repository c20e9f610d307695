import asyncio
import logging
from typing import Optional

from chat_app.repositories.session_repository import SessionRepository
from chat_app.utils.clock import utcnow


logger = logging.getLogger(__name__)


class SessionJanitor:
    """Periodically removes expired sessions, outside any request path."""

    def __init__(self, session_repo: SessionRepository, interval_seconds: int = 3600) -> None:
        self._session_repo = session_repo
        self._interval = interval_seconds
        self._task: Optional[asyncio.Task] = None

    async def run_once(self) -> int:
        removed = await self._session_repo.delete_expired(utcnow())
        logger.info("[Sessions] %d expired session(s) removed", removed)
        return removed

    async def _loop(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.run_once()
            except Exception:
                logger.exception("Expired session cleanup failed")

    def start(self) -> None:
        if self._interval <= 0 or self._task is not None:
            return
        self._task = asyncio.create_task(self._loop())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()
