"""
Batch orchestration: one session's image collection, compressed item by item.

The orchestrator owns the item collection, the registry of running progress
managers and the background tasks that feed results back into the
estimation service. Items are never mutated; every update replaces the
collection tuple with a copy holding the new record.
"""

import asyncio
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Set, Tuple

from plume.config import DEFAULT_DURATION_MS, TICK_INTERVAL_MS
from plume.database import format_bytes
from plume.exceptions import CompressionFailure, UnsupportedImageFormatError
from plume.utils.adaptive_progress import AdaptiveProgressManager, CallbackObserver, ProgressConfig
from plume.utils.compression_settings import CompressionSettings
from plume.utils.compressor import CompressionStage, Compressor
from plume.utils.enhanced_logger import log_with_context, setup_enhanced_logging
from plume.utils.enums import ItemStatus
from plume.utils.enums.image_format import detect_image_format
from plume.utils.item_status import ImageItem, ReductionEstimate
from plume.utils.size_estimator import EstimationService

logger = setup_enhanced_logging()


@dataclass(frozen=True)
class BatchReport:
    processed: int
    completed: int
    failed: int
    items: Tuple[ImageItem, ...]


@dataclass(frozen=True)
class CollectionStats:
    total: int
    pending: int
    processing: int
    completed: int
    failed: int
    total_original_size: int
    total_compressed_size: int
    average_savings_percent: float


class BatchOrchestrator:
    def __init__(
        self,
        estimator: EstimationService,
        compressor: Compressor,
        settings: Optional[CompressionSettings] = None,
        tick_interval_ms: float = TICK_INTERVAL_MS,
        default_duration_ms: float = DEFAULT_DURATION_MS,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.estimator = estimator
        self.compressor = compressor
        self.settings = settings or CompressionSettings()
        self.tick_interval_ms = tick_interval_ms
        self.default_duration_ms = default_duration_ms
        self.clock = clock

        self._items: Tuple[ImageItem, ...] = ()
        self._managers: Dict[str, AdaptiveProgressManager] = {}
        self._pending_records: Set[asyncio.Task] = set()

    @property
    def items(self) -> Tuple[ImageItem, ...]:
        return self._items

    @property
    def active_managers(self) -> Dict[str, AdaptiveProgressManager]:
        return dict(self._managers)

    def get(self, item_id) -> Optional[ImageItem]:
        for item in self._items:
            if item.id == item_id:
                return item
        return None

    def _replace(self, updated: ImageItem):
        self._items = tuple(updated if item.id == updated.id else item for item in self._items)

    def _update(self, item_id, transition) -> Optional[ImageItem]:
        """Apply a transition to the current record; no-op for removed items"""
        item = self.get(item_id)
        if item is None:
            return None
        updated = transition(item)
        self._replace(updated)
        return updated

    # Collection management

    def _new_entries(self, entries):
        """(path, size, format) for entries not yet in the collection and in a supported format"""
        known_paths = {item.path for item in self._items}
        accepted = []

        for path, size in entries:
            if path in known_paths:
                continue
            try:
                input_format = detect_image_format(path)
            except UnsupportedImageFormatError as e:
                log_with_context(logger, 'warning', f'[BatchOrchestrator] Skipping file: {e.message}', path=path)
                continue
            accepted.append((path, size, input_format))
            known_paths.add(path)

        return accepted

    def _estimate_reduction(self, input_format, size) -> ReductionEstimate:
        result = self.estimator.estimate(
            input_format,
            self.settings.output_format_for(input_format),
            size,
            self.settings.quality,
            self.settings.lossy,
        )
        return ReductionEstimate.from_result(result)

    def _append_items(self, estimated) -> List[ImageItem]:
        # Paths may have been added while estimates were running
        known_paths = {item.path for item in self._items}
        added = [
            ImageItem.create(path, size, estimate)
            for path, size, estimate in estimated
            if path not in known_paths
        ]

        self._items = self._items + tuple(added)
        if added:
            log_with_context(
                logger, 'info', '[BatchOrchestrator] Images added',
                added=len(added), total=len(self._items)
            )
        return added

    def add_images(self, entries: Iterable[Tuple[str, int]]) -> List[ImageItem]:
        """
        Add (path, size) entries as pending items, skipping duplicates and unsupported files.

        Estimates are read from the store on the calling thread. From a coroutine
        use add_images_async so the event loop is not blocked.
        """
        estimated = [
            (path, size, self._estimate_reduction(input_format, size))
            for path, size, input_format in self._new_entries(entries)
        ]
        return self._append_items(estimated)

    async def add_images_async(self, entries: Iterable[Tuple[str, int]]) -> List[ImageItem]:
        """add_images with the store reads moved off the event loop"""
        estimated = []
        for path, size, input_format in self._new_entries(entries):
            estimate = await asyncio.to_thread(self._estimate_reduction, input_format, size)
            estimated.append((path, size, estimate))
        return self._append_items(estimated)

    def remove_image(self, item_id) -> bool:
        manager = self._managers.pop(item_id, None)
        if manager:
            manager.stop()

        remaining = tuple(item for item in self._items if item.id != item_id)
        removed = len(remaining) != len(self._items)
        self._items = remaining
        return removed

    def clear(self):
        """Drop every item and stop every running animation"""
        for manager in self._managers.values():
            manager.stop()
        self._managers.clear()
        self._items = ()
        logger.info("[BatchOrchestrator] Collection cleared")

    def stats(self) -> CollectionStats:
        completed = [item for item in self._items if item.status is ItemStatus.COMPLETED]
        savings = [item.payload.savings_percent for item in completed]
        return CollectionStats(
            total=len(self._items),
            pending=sum(1 for item in self._items if item.status is ItemStatus.PENDING),
            processing=sum(1 for item in self._items if item.status is ItemStatus.PROCESSING),
            completed=len(completed),
            failed=sum(1 for item in self._items if item.status is ItemStatus.ERROR),
            total_original_size=sum(item.original_size for item in completed),
            total_compressed_size=sum(item.payload.compressed_size for item in completed),
            average_savings_percent=sum(savings) / len(savings) if savings else 0.0,
        )

    # Progress wiring

    def _apply_progress(self, item_id, progress):
        item = self.get(item_id)
        # Animations may outlive the processing state; late values are dropped
        if item is None or item.status is not ItemStatus.PROCESSING:
            return
        self._replace(item.with_progress(progress))

    def _release(self, item_id, *args):
        self._managers.pop(item_id, None)

    def handle_stage_event(self, item_id, stage):
        """Advisory compressor stage events; unknown items and stages are ignored"""
        try:
            stage = CompressionStage(getattr(stage, 'value', stage))
        except ValueError:
            log_with_context(logger, 'debug', f'[BatchOrchestrator] Unknown stage event: {stage}', item_id=item_id)
            return

        manager = self._managers.get(item_id)
        if manager is None:
            return

        if stage is CompressionStage.COMPRESSING:
            manager.on_compression_started()
        elif stage is CompressionStage.COMPLETE:
            manager.on_compression_completed()

    # Batch processing

    async def run_batch(self) -> BatchReport:
        """Compress every pending item in order, then wait for animations and recordings"""
        pending_ids = [item.id for item in self._items if item.status is ItemStatus.PENDING]
        started = []
        completed = 0
        failed = 0

        log_with_context(logger, 'info', '[BatchOrchestrator] Batch started', items=len(pending_ids))

        for item_id in pending_ids:
            item = self.get(item_id)
            if item is None or item.status is not ItemStatus.PENDING:
                continue

            manager, succeeded = await self._process_item(item)
            if manager is None:
                continue
            started.append(manager)
            if succeeded:
                completed += 1
            else:
                failed += 1

        for manager in started:
            await manager.wait()
        await self.wait_for_recordings()

        log_with_context(
            logger, 'info', '[BatchOrchestrator] Batch finished',
            completed=completed, failed=failed
        )
        return BatchReport(
            processed=completed + failed,
            completed=completed,
            failed=failed,
            items=self._items,
        )

    async def _estimate_duration(self, item, output_format):
        try:
            estimate = await asyncio.to_thread(
                self.estimator.estimate_duration,
                item.format,
                output_format,
                item.original_size,
                self.settings.quality,
                self.settings.lossy,
            )
            return estimate.estimated_duration_ms
        except Exception as e:
            log_with_context(
                logger, 'warning', f'[BatchOrchestrator] Duration estimate failed, using default: {e}',
                item_id=item.id
            )
            return self.default_duration_ms

    async def _process_item(self, item: ImageItem):
        settings = self.settings
        output_format = settings.output_format_for(item.format)

        item = self._update(item.id, ImageItem.to_processing)
        duration_ms = await self._estimate_duration(item, output_format)
        if self.get(item.id) is None:
            # Removed while the estimate was running
            return None, False

        manager = AdaptiveProgressManager(
            item.id,
            ProgressConfig(estimated_duration_ms=duration_ms, tick_interval_ms=self.tick_interval_ms),
            clock=self.clock,
        )
        self._managers[item.id] = manager
        manager.start(CallbackObserver(
            on_progress=self._apply_progress,
            on_complete=self._release,
            on_error=self._release,
        ))

        log_with_context(
            logger, 'info', '[BatchOrchestrator] Compressing image',
            item_id=item.id, name=item.name, output_format=output_format.value,
            estimated_duration_ms=duration_ms
        )

        manager.on_compression_started()
        started_at = time.monotonic()
        try:
            outcome = await self.compressor.compress(
                item.path,
                settings.quality,
                output_format,
                item.id,
                on_stage=self.handle_stage_event,
            )
        except CompressionFailure as e:
            self._fail_item(item, manager, e.message)
            return manager, False
        except Exception as e:
            self._fail_item(item, manager, str(e) or e.__class__.__name__)
            return manager, False

        duration_ms = int((time.monotonic() - started_at) * 1000)
        manager.on_compression_completed()
        self._update(item.id, lambda current: current.to_completed(outcome.compressed_size, outcome.output_path))

        log_with_context(
            logger, 'info', '[BatchOrchestrator] Image compressed',
            item_id=item.id, original_size=format_bytes(item.original_size),
            compressed_size=format_bytes(outcome.compressed_size), duration_ms=duration_ms
        )

        self._schedule_record(item, output_format, outcome.compressed_size, duration_ms)
        return manager, True

    def _fail_item(self, item, manager, reason):
        manager.on_error(reason)
        self._update(item.id, lambda current: current.to_error(reason))
        log_with_context(
            logger, 'error', f'[BatchOrchestrator] Compression failed: {reason}',
            item_id=item.id, name=item.name
        )

    def _schedule_record(self, item, output_format, compressed_size, duration_ms):
        task = asyncio.create_task(asyncio.to_thread(
            self.estimator.record,
            item.format.value,
            output_format.value,
            item.original_size,
            compressed_size,
            self.settings.quality,
            self.settings.lossy,
            duration_ms,
        ))
        self._pending_records.add(task)
        task.add_done_callback(self._record_done)

    def _record_done(self, task):
        self._pending_records.discard(task)
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            log_with_context(logger, 'warning', f'[BatchOrchestrator] Recording outcome failed: {error}')

    async def wait_for_recordings(self):
        if self._pending_records:
            await asyncio.gather(*list(self._pending_records), return_exceptions=True)
