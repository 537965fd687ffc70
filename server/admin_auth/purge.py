"""Remove expired challenges and session tokens.

Verification already deletes the records it rejects; this job only clears
what abandoned ceremonies and unused sessions leave behind.
"""
from __future__ import annotations

import argparse
import logging
import signal
import threading
from dataclasses import dataclass
from typing import Optional, Sequence

from .backend import Backend, build_backend
from .config import load_settings

__all__ = ["PurgeOutcome", "PurgeScheduler", "main", "purge_expired"]

LOGGER = logging.getLogger("admin_auth.purge")

DEFAULT_INTERVAL = 15 * 60


@dataclass(frozen=True)
class PurgeOutcome:
    challenges: int = 0
    sessions: int = 0

    @property
    def total(self) -> int:
        return self.challenges + self.sessions


def purge_expired(backend: Backend) -> PurgeOutcome:
    outcome = PurgeOutcome(
        challenges=backend.challenges.purge_expired(),
        sessions=backend.sessions.purge_expired(),
    )
    if outcome.total:
        LOGGER.info(
            "Purged %d expired challenges and %d expired sessions.",
            outcome.challenges,
            outcome.sessions,
        )
    return outcome


class PurgeScheduler:
    """Run :func:`purge_expired` every ``interval`` seconds on a daemon thread."""

    def __init__(self, backend: Backend, interval: float = DEFAULT_INTERVAL) -> None:
        self._backend = backend
        self._interval = max(float(interval), 1.0)
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def _loop(self) -> None:
        LOGGER.info("Starting expired-record purge scheduler (every %.0f s).", self._interval)
        while not self._stop_event.is_set():
            try:
                purge_expired(self._backend)
            except Exception:  # pylint: disable=broad-except
                LOGGER.exception("Expired-record purge failed; retrying next cycle.")
            self._stop_event.wait(self._interval)
        LOGGER.info("Stopping expired-record purge scheduler.")

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._loop, name="admin-auth-purge", daemon=True)
        self._thread.start()

    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def request_stop(self) -> None:
        self._stop_event.set()

    def join(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None:
            self._thread.join(timeout)


def main(argv: Optional[Sequence[str]] = None) -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    parser = argparse.ArgumentParser(description="Purge expired admin auth records.")
    parser.add_argument("--interval", type=float, help="keep running, purging every N seconds")
    args = parser.parse_args(argv)

    settings = load_settings()
    if not settings.storage_path:
        LOGGER.error("ADMIN_AUTH_STORAGE_PATH is not set; there is no shared store to purge.")
        raise SystemExit(1)

    backend = build_backend(settings)
    if not args.interval:
        outcome = purge_expired(backend)
        LOGGER.info("Purge finished (%d records removed).", outcome.total)
        return

    scheduler = PurgeScheduler(backend, args.interval)

    def _signal_handler(signum: int, _frame: Optional[object]) -> None:
        LOGGER.info("Received signal %s. Stopping purge scheduler…", signum)
        scheduler.request_stop()

    signal.signal(signal.SIGTERM, _signal_handler)
    signal.signal(signal.SIGINT, _signal_handler)

    scheduler.start()
    try:
        while scheduler.is_running():
            scheduler.join(timeout=1.0)
    except KeyboardInterrupt:
        scheduler.request_stop()
        scheduler.join(timeout=5)


if __name__ == "__main__":  # pragma: no cover - convenience entry point.
    main()
