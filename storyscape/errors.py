"""Exception types raised across the story pipeline."""


class StoryscapeError(Exception):
    """Base class for storyscape errors."""


class RemoteCallError(StoryscapeError):
    """A call to a generative provider failed (network, auth, quota, empty reply)."""

    def __init__(self, provider: str, message: str, status_code: int | None = None) -> None:
        self.provider = provider
        self.status_code = status_code
        prefix = f"{provider} ({status_code})" if status_code is not None else provider
        super().__init__(f"{prefix}: {message}")


class ParseError(StoryscapeError):
    """A completion could not be turned into a story document."""


class PersistenceError(StoryscapeError):
    """A story store read or write failed."""


class NavigationNoop(StoryscapeError):
    """A choice points at a segment that does not exist in the document."""

    def __init__(self, next_segment: int) -> None:
        self.next_segment = next_segment
        super().__init__(f"Choice points to missing segment {next_segment}")


class QuotaExceededError(StoryscapeError):
    """The user has used up their daily story generations."""

    def __init__(self, tokens_used: int, next_reset: str) -> None:
        self.tokens_used = tokens_used
        self.next_reset = next_reset
        super().__init__(
            f"Daily story limit reached ({tokens_used} used). Try again after {next_reset}."
        )


class NotFoundError(StoryscapeError, ValueError):
    """A requested story does not exist."""
