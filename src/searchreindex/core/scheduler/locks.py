"""
Heartbeat locks that keep runs of one scheduled job from overlapping.

A lock expires when its holder stops making progress: the scheduled
executor refreshes it after every reindex step, so a crashed process
blocks the job for at most one TTL.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from searchreindex.persistence.models import RunLock


def lock_name_for(job_name: str) -> str:
    return f"schedule:{job_name}"


class LockManager:
    """RunLock rows keyed by lock name. Every mutating call commits."""

    def __init__(self, session: Session) -> None:
        self._session = session

    def _row(self, lock_name: str) -> RunLock | None:
        stmt = select(RunLock).where(RunLock.lock_name == lock_name)
        return self._session.execute(stmt).scalar_one_or_none()

    def active(self, lock_name: str) -> RunLock | None:
        """The unexpired lock row, if any."""
        lock = self._row(lock_name)
        if lock is None or lock.expires_at <= datetime.utcnow():
            return None
        return lock

    def is_locked(self, lock_name: str) -> bool:
        return self.active(lock_name) is not None

    def acquire(self, lock_name: str, holder_id: str, ttl_minutes: int = 120) -> bool:
        """Take the lock, or re-take one this holder already owns.

        Expired locks are taken over. Returns False while another holder's
        lock is still live.
        """
        now = datetime.utcnow()
        lock = self._row(lock_name)

        if lock is None:
            lock = RunLock(lock_name=lock_name)
            self._session.add(lock)
        elif lock.expires_at > now and lock.holder_id != holder_id:
            return False

        lock.holder_id = holder_id
        lock.acquired_at = now
        lock.expires_at = now + timedelta(minutes=ttl_minutes)
        lock.run_id = None
        self._session.commit()
        return True

    def refresh(
        self,
        lock_name: str,
        holder_id: str,
        ttl_minutes: int = 120,
        run_id: int | None = None,
    ) -> bool:
        """Push the expiry forward and record the run being driven.

        Returns False if the lock was lost to another holder.
        """
        lock = self._row(lock_name)
        if lock is None or lock.holder_id != holder_id:
            return False

        lock.expires_at = datetime.utcnow() + timedelta(minutes=ttl_minutes)
        if run_id is not None:
            lock.run_id = run_id
        self._session.commit()
        return True

    def release(self, lock_name: str, holder_id: str) -> bool:
        lock = self._row(lock_name)
        if lock is None or lock.holder_id != holder_id:
            return False

        self._session.delete(lock)
        self._session.commit()
        return True

    def cleanup_expired(self) -> int:
        """Delete expired locks. Returns how many were removed."""
        result = self._session.execute(
            delete(RunLock).where(RunLock.expires_at <= datetime.utcnow())
        )
        self._session.commit()
        return int(result.rowcount or 0)
