"""Error taxonomy for the batch assessment engine."""


class BatchJobError(Exception):
    """Base class for batch engine errors."""
    pass


class NotFoundError(BatchJobError):
    """Job or framework absent, or owned by another account."""
    pass


class ValidationError(BatchJobError):
    """Submission rejected before a job is created."""
    pass


class ExternalCallFailure(BatchJobError):
    """A conversation-source or AI call failed.

    Carries the HTTP status (0 for connection errors), message and URL.
    """

    def __init__(self, message: str, *, status: int = 0, url: str = ""):
        self.status = status
        self.message = message
        self.url = url
        super().__init__(str(self))

    def __str__(self) -> str:
        if self.status:
            return f"HTTP {self.status} from {self.url}: {self.message}"
        if self.url:
            return f"Connection error for {self.url}: {self.message}"
        return self.message


class ParseFailure(BatchJobError):
    """AI output could not be parsed even after repair."""
    pass


class PersistenceFailure(BatchJobError):
    """A job store write failed."""
    pass


MAX_ERROR_LENGTH = 2000


def safe_error_message(e: BaseException, fallback: str = "Processing error") -> str:
    """Extract a meaningful error message from an exception.

    Some exceptions produce an empty str(e); fall back to the class name.
    """
    msg = str(e).strip()
    if not msg:
        msg = f"{type(e).__name__}: {fallback}"
    return msg[:MAX_ERROR_LENGTH]
