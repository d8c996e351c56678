"""Ingestion entry points for single matches and batches of match ids.

Per match the state machine is::

    Fetched -> Classified -> Assembled -> Committed | Rejected

Rejections (not finished, already stored, fetch/parse failure) are
terminal and reported as an ``IngestResult``; nothing is retried here.
The same pipeline ingests duels or single-player games depending on the
assembler it is given.  ``StorageError`` is not a rejection: the
transaction was rolled back and the error propagates to the caller.

After a successful commit the assembler is told which player and team
rows were stored, so their lookups are skipped for one cache TTL.

Also provides:

* **ProgressTracker** -- per-match progress logging with timing and an
  end-of-run summary.
"""

import asyncio
import logging
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Optional, Union

from geostats.assembler import GameAssembler, WriteSet
from geostats.config import IngestConfig
from geostats.exceptions import MatchAlreadyExists, MatchNotFinished, UpstreamFetchError
from geostats.repository import IngestRepository
from geostats.solo import SoloGameAssembler

logger = logging.getLogger(__name__)

Assembler = Union[GameAssembler, SoloGameAssembler]


class IngestStatus(str, Enum):
    COMMITTED = "committed"
    NOT_FINISHED = "not_finished"
    ALREADY_EXISTS = "already_exists"
    FETCH_FAILED = "fetch_failed"


@dataclass(frozen=True)
class IngestResult:
    """Outcome of ingesting one match."""

    game_id: str
    status: IngestStatus
    reason: Optional[str] = None

    @property
    def committed(self) -> bool:
        return self.status is IngestStatus.COMMITTED


@dataclass
class BatchResult:
    """Outcome of a batch ingestion, one ``IngestResult`` per unique id."""

    results: list[IngestResult] = field(default_factory=list)
    wall_time: float = 0.0

    @classmethod
    def combine(cls, batches: list["BatchResult"]) -> "BatchResult":
        """Merge the outcomes of several batches run one after another."""
        if len(batches) == 1:
            return batches[0]
        return cls(
            results=[r for batch in batches for r in batch.results],
            wall_time=sum(batch.wall_time for batch in batches),
        )

    @property
    def counts(self) -> dict[str, int]:
        counts = {status.value: 0 for status in IngestStatus}
        for result in self.results:
            counts[result.status.value] += 1
        return counts

    @property
    def committed(self) -> int:
        return self.counts[IngestStatus.COMMITTED.value]

    def format_summary(self) -> str:
        """Return a human-readable multiline summary string."""
        counts = self.counts
        minutes, seconds = divmod(self.wall_time, 60)
        lines = [
            "--- Ingest Summary ---",
            f"  Committed      : {counts[IngestStatus.COMMITTED.value]}",
            f"  Already stored : {counts[IngestStatus.ALREADY_EXISTS.value]}",
            f"  Not finished   : {counts[IngestStatus.NOT_FINISHED.value]}",
            f"  Fetch failed   : {counts[IngestStatus.FETCH_FAILED.value]}",
            f"  Wall time      : {int(minutes)}m {seconds:.1f}s",
        ]
        return "\n".join(lines)


# ---------------------------------------------------------------------------
# Progress tracking
# ---------------------------------------------------------------------------

class ProgressTracker:
    """Track and log per-match progress with timing."""

    def __init__(self, total: int = 0) -> None:
        self.total = total
        self.done: int = 0
        self._start_time: float = time.monotonic()

    def log_match(self, result: IngestResult, elapsed: float | None = None) -> None:
        self.done += 1
        if self.total > 0:
            progress = f"[{self.done}/{self.total}]"
        else:
            progress = f"[{self.done}]"

        if result.status is IngestStatus.FETCH_FAILED:
            logger.warning(
                "%s match %s FAIL: %s", progress, result.game_id, result.reason
            )
        elif elapsed is not None:
            logger.info(
                "%s match %s %s (%.1fs)",
                progress, result.game_id, result.status.value, elapsed,
            )
        else:
            logger.info("%s match %s %s", progress, result.game_id, result.status.value)

    @property
    def wall_time(self) -> float:
        return time.monotonic() - self._start_time


# ---------------------------------------------------------------------------
# Pipeline
# ---------------------------------------------------------------------------

class IngestPipeline:
    """Fetches, assembles and commits matches.

    Usage::

        pipeline = IngestPipeline(assembler, repository, config)
        result = await pipeline.ingest_match("5f3c...")
        batch = await pipeline.ingest_games(["5f3c...", "60aa..."])

        solo = IngestPipeline(solo_assembler, repository, config)
        batch = await solo.ingest_games(["Xk3pQ..."])
    """

    def __init__(
        self,
        assembler: Assembler,
        repository: IngestRepository,
        config: IngestConfig | None = None,
    ) -> None:
        self._assembler = assembler
        self._repository = repository
        self._config = config or IngestConfig()

    async def ingest_match(self, game_id: str) -> IngestResult:
        """Ingest a single match and report how it ended.

        Raises:
            StorageError: If the commit failed for a reason other than the
                match already being stored.
        """
        if self._repository.game_exists(game_id, self._assembler.game_table):
            return IngestResult(game_id, IngestStatus.ALREADY_EXISTS, "already stored")

        rejected, write_set = await self._assemble(game_id)
        if rejected is not None:
            return rejected

        try:
            self._repository.commit(write_set.deduplicated())
        except MatchAlreadyExists as exc:
            return IngestResult(game_id, IngestStatus.ALREADY_EXISTS, str(exc))
        await self._assembler.mark_committed(write_set)

        logger.info("Committed match %s", game_id)
        return IngestResult(game_id, IngestStatus.COMMITTED)

    async def ingest_games(self, game_ids: Iterable[str]) -> BatchResult:
        """Ingest many matches, committing them in one transaction.

        Ids already stored are reported without being fetched.  The rest
        are assembled concurrently in chunks of ``batch_chunk_size``.  If
        the batch commit hits a match stored concurrently, each match is
        committed on its own so the others still land.

        Raises:
            StorageError: If a commit failed for a reason other than a
                match already being stored.
        """
        unique_ids = list(dict.fromkeys(game_ids))
        tracker = ProgressTracker(total=len(unique_ids))
        results: dict[str, IngestResult] = {}

        existing = self._repository.existing_game_ids(
            unique_ids, self._assembler.game_table
        )
        for game_id in unique_ids:
            if game_id in existing:
                results[game_id] = IngestResult(
                    game_id, IngestStatus.ALREADY_EXISTS, "already stored"
                )
                tracker.log_match(results[game_id])

        pending = [gid for gid in unique_ids if gid not in existing]
        assembled: dict[str, WriteSet] = {}
        chunk_size = max(1, self._config.batch_chunk_size)

        for start in range(0, len(pending), chunk_size):
            chunk = pending[start:start + chunk_size]
            outcomes = await asyncio.gather(*(self._assemble(gid) for gid in chunk))
            for game_id, (rejected, write_set) in zip(chunk, outcomes):
                if rejected is not None:
                    results[game_id] = rejected
                    tracker.log_match(rejected)
                else:
                    assembled[game_id] = write_set
            logger.info(
                "Assembled chunk %d-%d of %d (%d ok)",
                start + 1, start + len(chunk), len(pending),
                sum(1 for gid in chunk if gid in assembled),
            )

        if assembled:
            results.update(await self._commit_batch(assembled, tracker))

        return BatchResult(
            results=[results[gid] for gid in unique_ids],
            wall_time=tracker.wall_time,
        )

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    async def _assemble(
        self, game_id: str
    ) -> tuple[Optional[IngestResult], Optional[WriteSet]]:
        """Assemble one match, mapping rejections to an ``IngestResult``."""
        try:
            return None, await self._assembler.assemble(game_id)
        except MatchNotFinished as exc:
            return IngestResult(game_id, IngestStatus.NOT_FINISHED, str(exc)), None
        except UpstreamFetchError as exc:
            logger.warning("Fetching match %s failed: %s", game_id, exc)
            return IngestResult(game_id, IngestStatus.FETCH_FAILED, str(exc)), None

    async def _commit_batch(
        self, assembled: dict[str, WriteSet], tracker: ProgressTracker
    ) -> dict[str, IngestResult]:
        merged = WriteSet()
        for write_set in assembled.values():
            merged.extend(write_set)

        merged = merged.deduplicated()

        results: dict[str, IngestResult] = {}
        try:
            self._repository.commit(merged)
        except MatchAlreadyExists as exc:
            logger.warning(
                "Batch commit conflicted on match %s, committing matches one by one",
                exc.game_id,
            )
            for game_id, write_set in assembled.items():
                try:
                    self._repository.commit(write_set.deduplicated())
                except MatchAlreadyExists as inner:
                    results[game_id] = IngestResult(
                        game_id, IngestStatus.ALREADY_EXISTS, str(inner)
                    )
                else:
                    await self._assembler.mark_committed(write_set)
                    results[game_id] = IngestResult(game_id, IngestStatus.COMMITTED)
                tracker.log_match(results[game_id])
            return results

        await self._assembler.mark_committed(merged)
        for game_id in assembled:
            results[game_id] = IngestResult(game_id, IngestStatus.COMMITTED)
            tracker.log_match(results[game_id])
        return results
