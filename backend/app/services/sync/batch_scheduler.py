"""Sequential and wave-parallel processing of a fetched record set."""

import asyncio
import logging
import time
from typing import (
    Any,
    AsyncContextManager,
    Callable,
    Dict,
    List,
    Optional,
    Sequence,
    Tuple,
)

from app.core.cancellation import CancellationToken
from app.models import SyncType

from .models import SyncOptions, SyncResult
from .progress import JobReporter, ProgressAggregator
from .reconciler import RecordReconciler

logger = logging.getLogger(__name__)

ReconcilerFactory = Callable[[], AsyncContextManager[RecordReconciler]]
Record = Dict[str, Any]


class BatchScheduler:
    """
    Drives the reconciler over a record set and reports progress.

    Small record sets, or any set when parallel mode is off, are processed
    one record at a time. Otherwise records are split into contiguous batches
    that run ``max_concurrent`` at a time; a wave starts only after the
    previous one finished. Cancellation is checked before every record.
    """

    def __init__(
        self,
        reporter: JobReporter,
        options: Optional[SyncOptions] = None,
        cancellation_token: Optional[CancellationToken] = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        """
        Initialize batch scheduler.

        Args:
            reporter: Writes progress for the running job
            options: Batch sizing, pacing and run time limit
            cancellation_token: Token checked before every record
            clock: Monotonic clock used for the run time limit
        """
        self.reporter = reporter
        self.options = options or SyncOptions()
        self.cancellation_token = cancellation_token or CancellationToken()
        self._clock = clock
        self._deadline: Optional[float] = None

    def uses_parallel(self, record_count: int) -> bool:
        return self.options.parallel and record_count > self.options.batch_size

    def create_batches(
        self, records: Sequence[Record], offset: int = 0
    ) -> List[Tuple[int, Sequence[Record]]]:
        """Split records from ``offset`` on into (start index, batch) pairs."""
        size = self.options.batch_size
        return [
            (start, records[start : start + size])
            for start in range(offset, len(records), size)
        ]

    async def run(
        self,
        sync_type: SyncType,
        records: Sequence[Record],
        open_reconciler: ReconcilerFactory,
        offset: int = 0,
    ) -> SyncResult:
        """
        Process ``records[offset:]``.

        Args:
            sync_type: Entity type of the records
            records: Complete fetched record set
            open_reconciler: Opens a reconciler bound to its own session
            offset: Index of the first record to process

        Returns:
            Counts for this run, with the cancelled flag or the hand-off index
            set when the run stopped early
        """
        result = SyncResult(
            job_id=self.reporter.job_id,
            sync_type=sync_type.value,
            total_records=len(records),
        )
        if self.options.max_run_seconds:
            self._deadline = self._clock() + self.options.max_run_seconds

        remaining = len(records) - offset
        async with ProgressAggregator(self.reporter, initial=offset) as progress:
            runner = (
                self._run_parallel
                if self.uses_parallel(remaining)
                else self._run_sequential
            )
            await runner(sync_type, records, open_reconciler, offset, progress, result)

        result.cancelled = result.cancelled or self.cancellation_token.is_cancelled
        result.complete()
        logger.info(
            f"{sync_type.value} run processed {result.processed_records} records "
            f"({result.succeeded} ok, {result.failed} failed)"
            + (", cancelled" if result.cancelled else "")
            + (f", continuing at {result.continue_from}" if result.continued else "")
        )
        return result

    async def _run_sequential(
        self,
        sync_type: SyncType,
        records: Sequence[Record],
        open_reconciler: ReconcilerFactory,
        offset: int,
        progress: ProgressAggregator,
        result: SyncResult,
    ) -> None:
        total = len(records)
        interval = self.options.progress_interval
        unreported = 0

        async with open_reconciler() as reconciler:
            for index in range(offset, total):
                if self.cancellation_token.is_cancelled:
                    break
                if self._time_exhausted():
                    result.continue_from = index
                    break

                if await reconciler.reconcile(sync_type, records[index]):
                    result.record_success()
                else:
                    result.record_failure(index, reconciler.last_error or "unknown error")

                unreported += 1
                if unreported >= interval:
                    progress.add(unreported)
                    unreported = 0
                    await self.reporter.set_message(
                        f"Processing record {index + 1} of {total}"
                    )
                    await self._poll_cancellation()

        progress.add(unreported)

    async def _run_parallel(
        self,
        sync_type: SyncType,
        records: Sequence[Record],
        open_reconciler: ReconcilerFactory,
        offset: int,
        progress: ProgressAggregator,
        result: SyncResult,
    ) -> None:
        batches = self.create_batches(records, offset)
        total_batches = len(batches)
        wave_size = self.options.max_concurrent

        await self.reporter.set_batch(
            0,
            total_batches,
            f"Processing {len(records) - offset} records in {total_batches} batches",
        )

        for wave_start in range(0, total_batches, wave_size):
            if wave_start > 0 and self.options.batch_delay > 0:
                await asyncio.sleep(self.options.batch_delay)
            if await self._poll_cancellation():
                break
            if self._time_exhausted():
                result.continue_from = batches[wave_start][0]
                break

            wave = batches[wave_start : wave_start + wave_size]
            outcomes = await asyncio.gather(
                *[
                    self._run_batch(
                        sync_type,
                        wave_start + position + 1,
                        total_batches,
                        start,
                        batch,
                        open_reconciler,
                        progress,
                    )
                    for position, (start, batch) in enumerate(wave)
                ],
                return_exceptions=True,
            )

            for (start, batch), outcome in zip(wave, outcomes):
                if isinstance(outcome, SyncResult):
                    result.merge(outcome)
                elif isinstance(outcome, Exception):
                    logger.error(f"Batch starting at record {start} failed: {outcome}")
                    for index in range(start, start + len(batch)):
                        result.record_failure(index, str(outcome))
                    progress.add(len(batch))
                else:
                    raise outcome  # type: ignore[misc]

    async def _run_batch(
        self,
        sync_type: SyncType,
        batch_number: int,
        total_batches: int,
        start: int,
        batch: Sequence[Record],
        open_reconciler: ReconcilerFactory,
        progress: ProgressAggregator,
    ) -> SyncResult:
        """Process one batch; its failures never escape as exceptions."""
        batch_result = SyncResult(job_id=self.reporter.job_id, sync_type=sync_type.value)
        interval = self.options.progress_interval
        unreported = 0

        await self.reporter.set_batch(
            batch_number,
            total_batches,
            f"Processing batch {batch_number} of {total_batches} ({len(batch)} records)",
        )

        try:
            async with open_reconciler() as reconciler:
                for position, record in enumerate(batch):
                    if self.cancellation_token.is_cancelled:
                        break
                    index = start + position
                    if await reconciler.reconcile(sync_type, record):
                        batch_result.record_success()
                    else:
                        batch_result.record_failure(
                            index, reconciler.last_error or "unknown error"
                        )
                    unreported += 1
                    if unreported >= interval:
                        progress.add(unreported)
                        unreported = 0
        except Exception as e:
            logger.error(f"Batch {batch_number} of {total_batches} crashed: {e}")
            for position in range(batch_result.processed_records, len(batch)):
                batch_result.record_failure(start + position, str(e))
                unreported += 1
        finally:
            progress.add(unreported)

        if not self.cancellation_token.is_cancelled:
            await self.reporter.set_message(
                f"Batch {batch_number} of {total_batches} finished"
            )
        return batch_result

    async def _poll_cancellation(self) -> bool:
        """Check the token and the persisted status; cancel the token if needed."""
        if self.cancellation_token.is_cancelled:
            return True
        if await self.reporter.is_cancelled():
            logger.info(f"Sync job {self.reporter.job_id} was cancelled in the store")
            self.cancellation_token.cancel()
            return True
        return False

    def _time_exhausted(self) -> bool:
        return self._deadline is not None and self._clock() >= self._deadline
