"""Cooperative cancellation for batch jobs.

Each pipeline run owns one CancellationToken, created at start and passed to
every phase and every scheduled task. The process-local registry only maps
job ids to live tokens so cancel() can find them; the pipeline releases its
entry on exit so long-running processes do not accumulate dead entries.

Cancellation is checked, never enforced: work already dispatched runs to
completion.
"""
import logging

logger = logging.getLogger(__name__)


class CancellationToken:
    """Per-job flag checked at phase boundaries and before each dispatch."""

    __slots__ = ("job_id", "_cancelled")

    def __init__(self, job_id: str):
        self.job_id = job_id
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def __repr__(self) -> str:
        return f"CancellationToken({self.job_id!r}, cancelled={self._cancelled})"


class CancellationRegistry:
    """Maps job ids to the token of their running pipeline."""

    def __init__(self):
        self._tokens: dict[str, CancellationToken] = {}

    def register(self, job_id: str) -> CancellationToken:
        token = CancellationToken(job_id)
        self._tokens[job_id] = token
        return token

    def cancel(self, job_id: str) -> bool:
        """Signal the running pipeline, if any. Returns True if a token was found."""
        token = self._tokens.get(job_id)
        if token is None:
            return False
        token.cancel()
        logger.info(f"Cancellation signalled for job {job_id}")
        return True

    def release(self, job_id: str) -> None:
        self._tokens.pop(job_id, None)

    def __contains__(self, job_id: str) -> bool:
        return job_id in self._tokens

    def __len__(self) -> int:
        return len(self._tokens)
