"""
Adaptive progress animation for compressions that report no progress.

A manager turns an estimated duration into a monotonic 0-100 stream. The
curve is split into phases with their own speed: a smooth run that follows
the estimate, a slowed-down waiting band while the real result is
outstanding, and a fast final run once completion is known. Real start and
completion signals from the orchestrator correct the curve.

Every tick advances the value by at least min_step, so the bar never stalls
even when the estimate is badly off. After a completion signal the step
grows so that 100 is reached within convergence_ticks ticks.
"""

import asyncio
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional

from plume.config import DEFAULT_DURATION_MS, TICK_INTERVAL_MS
from plume.utils.enhanced_logger import log_with_context, setup_enhanced_logging
from plume.utils.enums import ProgressPhase

logger = setup_enhanced_logging()

MIN_DURATION_MS = 1  # Below this the estimate is treated as instant


def monotonic_ms():
    return time.monotonic() * 1000


@dataclass(frozen=True)
class PhaseBand:
    start: float
    end: float
    speed: float


DEFAULT_PHASES = {
    ProgressPhase.SMOOTH: PhaseBand(0.0, 70.0, 1.0),
    ProgressPhase.WAITING: PhaseBand(70.0, 90.0, 0.3),
    ProgressPhase.FINAL: PhaseBand(90.0, 100.0, 3.0),
    ProgressPhase.COMPLETED: PhaseBand(100.0, 100.0, 0.0),
}


@dataclass(frozen=True)
class ProgressConfig:
    estimated_duration_ms: float = DEFAULT_DURATION_MS
    tick_interval_ms: float = TICK_INTERVAL_MS
    phases: Dict[ProgressPhase, PhaseBand] = field(default_factory=lambda: dict(DEFAULT_PHASES))
    min_step: float = 0.5
    convergence_ticks: int = 3
    resume_smooth_below: float = 85.0  # on_compression_started only leaves waiting below this

    def phase_for(self, progress, completion_signaled=False) -> ProgressPhase:
        if progress < self.phases[ProgressPhase.SMOOTH].end:
            return ProgressPhase.SMOOTH
        if progress < self.phases[ProgressPhase.WAITING].end and not completion_signaled:
            return ProgressPhase.WAITING
        return ProgressPhase.FINAL


class ProgressObserver(ABC):
    """Receives the output of one progress manager."""

    @abstractmethod
    def on_progress(self, item_id: str, progress: float) -> None:
        pass

    @abstractmethod
    def on_complete(self, item_id: str) -> None:
        pass

    @abstractmethod
    def on_error(self, item_id: str, message: str) -> None:
        pass


class CallbackObserver(ProgressObserver):
    """Adapts plain callables to the observer interface; missing ones are no-ops."""

    def __init__(
        self,
        on_progress: Optional[Callable[[str, float], None]] = None,
        on_complete: Optional[Callable[[str], None]] = None,
        on_error: Optional[Callable[[str, str], None]] = None,
    ):
        self._on_progress = on_progress
        self._on_complete = on_complete
        self._on_error = on_error

    def on_progress(self, item_id, progress):
        if self._on_progress:
            self._on_progress(item_id, progress)

    def on_complete(self, item_id):
        if self._on_complete:
            self._on_complete(item_id)

    def on_error(self, item_id, message):
        if self._on_error:
            self._on_error(item_id, message)


@dataclass(frozen=True)
class ProgressState:
    item_id: str
    progress: float
    phase: ProgressPhase
    elapsed_ms: float
    completion_signaled: bool
    completed: bool
    errored: bool
    stopped: bool


class AdaptiveProgressManager:
    """
    Drives the progress bar of a single item.

    start() emits 0 and schedules the tick loop on the running event loop.
    Tests can pass autorun=False and call tick() directly with a fake clock.
    """

    def __init__(
        self,
        item_id: str,
        config: Optional[ProgressConfig] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self.item_id = item_id
        self.config = config or ProgressConfig()
        self.clock = clock or monotonic_ms

        self._observer: Optional[ProgressObserver] = None
        self._task: Optional[asyncio.Task] = None
        self._start_time = None
        self._progress = 0.0
        self._phase = ProgressPhase.SMOOTH
        self._completion_signaled = False
        self._progress_at_signal = None
        self._completed = False
        self._errored = False
        self._stopped = False

    @property
    def started(self):
        return self._start_time is not None

    @property
    def finished(self):
        return self._completed or self._errored

    @property
    def active(self):
        return self.started and not (self.finished or self._stopped)

    @property
    def progress(self):
        return self._progress

    @property
    def phase(self):
        return self._phase

    def start(self, observer: ProgressObserver, autorun: bool = True):
        if self.started:
            log_with_context(
                logger, 'warning', '[AdaptiveProgressManager] Already started',
                item_id=self.item_id
            )
            return

        self._observer = observer
        self._start_time = self.clock()

        log_with_context(
            logger, 'debug', '[AdaptiveProgressManager] Progress started',
            item_id=self.item_id, estimated_duration_ms=self.config.estimated_duration_ms
        )

        self._observer.on_progress(self.item_id, self._progress)

        if autorun:
            self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self):
        interval = self.config.tick_interval_ms / 1000
        while self.active:
            await asyncio.sleep(interval)
            if not self.active:
                break
            self.tick()

    def _step(self):
        step = self.config.min_step
        if self._completion_signaled:
            remaining = 100.0 - self._progress_at_signal
            step = max(step, remaining / max(1, self.config.convergence_ticks))
        return step

    def tick(self) -> Optional[float]:
        """Advance one animation step; returns the emitted value, None when inactive"""
        if not self.active:
            return None

        elapsed = self.clock() - self._start_time
        band = self.config.phases[self._phase]
        duration = self.config.estimated_duration_ms

        if duration < MIN_DURATION_MS:
            candidate = 100.0
        else:
            raw = elapsed / duration * band.speed * 100
            candidate = min(max(raw, band.start), band.end)

        if candidate <= self._progress:
            candidate = self._progress + self._step()
        candidate = min(candidate, 100.0)

        self._phase = self.config.phase_for(candidate, self._completion_signaled)
        if self._completion_signaled and self._phase is not ProgressPhase.FINAL:
            self._phase = ProgressPhase.FINAL

        self._progress = candidate
        self._observer.on_progress(self.item_id, candidate)

        if candidate >= 100.0:
            self._phase = ProgressPhase.COMPLETED
            self._completed = True
            log_with_context(
                logger, 'debug', '[AdaptiveProgressManager] Progress completed',
                item_id=self.item_id, elapsed_ms=float(elapsed)
            )
            self._observer.on_complete(self.item_id)

        return candidate

    def on_compression_started(self):
        """The real work began; leave an early waiting phase"""
        if not self.active:
            return
        if self._phase is ProgressPhase.WAITING and self._progress < self.config.resume_smooth_below:
            self._phase = ProgressPhase.SMOOTH

    def on_compression_completed(self):
        """The real work is done; run to 100 as fast as the config allows"""
        if self.finished or self._stopped or self._completion_signaled:
            return
        self._completion_signaled = True
        self._progress_at_signal = self._progress
        self._phase = ProgressPhase.FINAL

    def on_error(self, message: str):
        if self.finished or self._stopped:
            return
        self._errored = True
        self._cancel_task()

        log_with_context(
            logger, 'debug', f'[AdaptiveProgressManager] Progress aborted: {message}',
            item_id=self.item_id, progress=self._progress
        )

        if self._observer:
            self._observer.on_error(self.item_id, message)

    def stop(self):
        """Cancel ticking without completion or error callbacks. Safe to call repeatedly."""
        if self._stopped:
            return
        self._stopped = True
        self._cancel_task()

    def _cancel_task(self):
        if self._task is not None and not self._task.done():
            self._task.cancel()

    def snapshot(self) -> ProgressState:
        elapsed = self.clock() - self._start_time if self.started else 0.0
        return ProgressState(
            item_id=self.item_id,
            progress=self._progress,
            phase=self._phase,
            elapsed_ms=elapsed,
            completion_signaled=self._completion_signaled,
            completed=self._completed,
            errored=self._errored,
            stopped=self._stopped,
        )

    async def wait(self):
        """Wait for the tick loop to finish; cancellation is not an error here"""
        if self._task is None:
            return
        result, = await asyncio.gather(self._task, return_exceptions=True)
        if isinstance(result, Exception):
            raise result
