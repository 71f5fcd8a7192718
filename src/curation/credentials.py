"""
Credential pool with error-aware least-recently-used selection.

Selection order is ``(errors, last_used, use sequence, position)``: the
healthiest credential wins, and among equally healthy ones the one idle the
longest.  The use sequence breaks ties between identical clock readings so
that equal-health credentials are handed out round-robin.
"""

from __future__ import annotations

import threading
import time
from dataclasses import dataclass


def short_label(key: str) -> str:
    """Display form of a secret: first and last four characters."""
    if len(key) <= 8:
        return "****"
    return f"{key[:4]}...{key[-4:]}"


@dataclass
class Credential:
    """One model-service key and its usage counters."""

    key: str
    index: int
    calls: int = 0
    errors: int = 0
    last_used: float = 0.0
    sequence: int = 0

    @property
    def label(self) -> str:
        return short_label(self.key)

    def sort_key(self) -> tuple:
        return (self.errors, self.last_used, self.sequence, self.index)


class CredentialPool:
    """
    Holds N interchangeable credentials and picks one per request.

    Counter updates are serialized by a lock, so the pool can be shared by
    every task in the run (and by threads, should a caller use them).
    """

    def __init__(self, keys: list[str], clock=time.monotonic):
        unique: list[str] = []
        for key in keys:
            if key and key not in unique:
                unique.append(key)
        if not unique:
            raise ValueError("CredentialPool requires at least one credential.")

        self._credentials = [
            Credential(key=key, index=i) for i, key in enumerate(unique, start=1)
        ]
        self._clock = clock
        self._lock = threading.Lock()
        self._sequence = 0

    def __len__(self) -> int:
        return len(self._credentials)

    @property
    def credentials(self) -> list[Credential]:
        return list(self._credentials)

    def _mark_used(self, credential: Credential) -> Credential:
        self._sequence += 1
        credential.calls += 1
        credential.last_used = self._clock()
        credential.sequence = self._sequence
        return credential

    def acquire(self) -> Credential:
        """
        Select the best credential and account for its use.

        Returns:
            The credential with the fewest errors, least recently used
            among ties.  Never fails; with one credential it is returned
            every time.
        """
        with self._lock:
            best = min(self._credentials, key=Credential.sort_key)
            return self._mark_used(best)

    def acquire_alternate(self, exclude: set[str]) -> Credential:
        """
        Select a credential whose key is not in ``exclude``.

        Candidates are ranked like :meth:`acquire`.  When every credential
        has been excluded the first credential of the pool is used.

        Args:
            exclude: Keys already tried for the current work item.

        Returns:
            The selected credential, with usage accounted.
        """
        with self._lock:
            candidates = [c for c in self._credentials if c.key not in exclude]
            if candidates:
                chosen = min(candidates, key=Credential.sort_key)
            else:
                chosen = self._credentials[0]
            return self._mark_used(chosen)

    def record_error(self, credential: Credential) -> None:
        """Count one failed attempt against ``credential``."""
        with self._lock:
            credential.errors += 1

    def snapshot(self) -> list[dict]:
        """
        Per-credential usage counters for reporting.

        Returns:
            One dict per credential with ``index``, ``label``, ``calls``,
            ``errors`` and ``error_rate`` (percent).
        """
        with self._lock:
            rows = []
            for c in self._credentials:
                rate = (c.errors / c.calls * 100) if c.calls else 0.0
                rows.append({
                    "index": c.index,
                    "label": c.label,
                    "calls": c.calls,
                    "errors": c.errors,
                    "error_rate": round(rate, 1),
                })
            return rows
