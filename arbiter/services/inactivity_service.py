import asyncio
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from sqlalchemy.orm import Session

from arbiter.config import settings
from arbiter.logging_config import get_logger
from arbiter.services.conversation_registry import (
    RegistryUnavailable,
    ensure_utc,
    find_human_held,
    release_to_automated,
)

logger = get_logger("inactivity_service")


def is_takeover_expired(taken_over_at: Optional[datetime], now: datetime, timeout_minutes: int) -> bool:
    """Strictly greater than the threshold releases; equal keeps the human in control."""
    if taken_over_at is None:
        return False
    return now - ensure_utc(taken_over_at) > timedelta(minutes=timeout_minutes)


def sweep_stale_takeovers(
    db: Session,
    now: Optional[datetime] = None,
    default_timeout_minutes: Optional[int] = None,
) -> dict:
    """Release every HUMAN_HELD conversation idle past its threshold.

    Each release is a compare-and-set on the ``taken_over_at`` read here and is
    committed on its own, so one failing row does not undo the others.
    """
    now = now or datetime.now(timezone.utc)
    if default_timeout_minutes is None:
        default_timeout_minutes = settings.takeover_timeout_minutes

    summary = {"scanned": 0, "released": 0, "skipped": 0, "failed": 0, "items": []}

    try:
        held = find_human_held(db)
    except RegistryUnavailable as e:
        db.rollback()
        logger.error("Sweep aborted: registry unavailable", extra={"context": {"error": str(e.__cause__)}})
        summary["failed"] += 1
        return summary

    # Snapshot before any commit expires the ORM objects.
    snapshot = [
        (conversation.agent_id, conversation.phone_number, conversation.taken_over_at, timeout)
        for conversation, timeout in held
    ]
    summary["scanned"] = len(snapshot)

    for agent_id, phone_number, taken_over_at, agent_timeout in snapshot:
        timeout_minutes = agent_timeout or default_timeout_minutes
        if not is_takeover_expired(taken_over_at, now, timeout_minutes):
            continue

        try:
            released = release_to_automated(
                db, agent_id, phone_number, expected_taken_over_at=taken_over_at, now=now
            )
            db.commit()
        except RegistryUnavailable as e:
            db.rollback()
            summary["failed"] += 1
            logger.error(
                "Failed to release stale takeover",
                extra={
                    "context": {
                        "agent_id": str(agent_id),
                        "phone_number": phone_number,
                        "error": str(e.__cause__),
                    }
                },
            )
            continue

        if not released:
            # A manual send refreshed the takeover after our read.
            summary["skipped"] += 1
            continue

        idle_minutes = int((now - ensure_utc(taken_over_at)).total_seconds() / 60)
        summary["released"] += 1
        summary["items"].append(
            {"agent_id": str(agent_id), "phone_number": phone_number, "idle_minutes": idle_minutes}
        )

    if summary["released"] or summary["failed"]:
        logger.info("Inactivity sweep finished", extra={"context": {k: v for k, v in summary.items() if k != "items"}})

    return summary


class InactivitySweeper:
    """Periodic background task that runs ``sweep_stale_takeovers``.

    Owns its stop event; ``start`` and ``stop`` are safe to call repeatedly.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        interval_seconds: Optional[float] = None,
    ):
        self.session_factory = session_factory
        self.interval_seconds = max(interval_seconds or settings.sweeper_interval_seconds, 0.1)
        self._stop = asyncio.Event()
        self._task: Optional[asyncio.Task] = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    def run_once(self, now: Optional[datetime] = None) -> dict:
        db = self.session_factory()
        try:
            return sweep_stale_takeovers(db, now=now)
        finally:
            db.close()

    async def _loop(self) -> None:
        while not self._stop.is_set():
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=self.interval_seconds)
                break
            except asyncio.TimeoutError:
                pass

            try:
                self.run_once()
            except Exception as exc:
                logger.error(
                    "Inactivity sweeper tick failed",
                    extra={"context": {"error": str(exc)}},
                )

    def start(self) -> None:
        if self.running:
            return
        self._stop = asyncio.Event()
        self._task = asyncio.create_task(self._loop())
        logger.info("Inactivity sweeper started", extra={"context": {"interval_seconds": self.interval_seconds}})

    async def stop(self) -> None:
        if self._task is None:
            return
        self._stop.set()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("Inactivity sweeper stopped")
