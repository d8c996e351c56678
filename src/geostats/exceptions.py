"""Custom exception hierarchy for the ingestion pipeline.

Exception tree:
    GeoStatsError
    +-- IngestRejected          (terminal outcome for a single match)
    |   +-- MatchNotFinished    (match has not concluded yet)
    |   +-- MatchAlreadyExists  (primary-key conflict on the games table)
    +-- UpstreamFetchError      (transport/decoding error from the game service)
    |   +-- GameNotFound        (HTTP 404)
    +-- StorageError            (any other database error; rolled back)
"""

from typing import Optional


class GeoStatsError(Exception):
    """Base exception for all ingestion errors."""


class IngestRejected(GeoStatsError):
    """A match was rejected and will not be committed.

    Not retryable by the pipeline itself.
    """

    def __init__(self, message: str, *, game_id: Optional[str] = None):
        self.game_id = game_id
        super().__init__(message)


class MatchNotFinished(IngestRejected):
    """The match exists but has not reached the ``Finished`` state.

    The caller must wait for the match to end before ingesting it.
    """

    pass


class MatchAlreadyExists(IngestRejected):
    """The match is already stored.

    Idempotent no-op -- reported distinctly from real failures.
    """

    pass


class UpstreamFetchError(GeoStatsError):
    """Transport, status or deserialization error from the game service.

    Surfaced to the caller; nothing retries these inside the pipeline.
    """

    def __init__(
        self,
        message: str,
        *,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.url = url
        self.status_code = status_code
        super().__init__(message)


class GameNotFound(UpstreamFetchError):
    """HTTP 404 -- the requested match or profile does not exist."""

    pass


class StorageError(GeoStatsError):
    """Database failure while committing a write-set.

    The whole transaction has been rolled back when this is raised.
    """

    pass
