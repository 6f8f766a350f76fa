"""
Streaming landmark batching for posture scoring.

A producer emits skeletons at the video's native frame rate. The aggregator:
1. Samples the stream (a frame is accepted only if sample_interval_ms has
   passed since the last accepted one, ~10 Hz by default)
2. Accumulates accepted frames into a pending batch
3. Flushes the batch to the posture scorer when it reaches batch_size, or
   when the stream ends
4. Replaces the running posture score with each batch result

Engineering decisions:
- Sampling gate + batch size are the only backpressure; push() never blocks
- At most one flush in flight and one pending batch: a flush-in-progress flag
  guards the drain, frames arriving meanwhile go to the next batch
- The pending list is swapped out under the lock (drained, never copied)
- Flushes are serialized, so a later batch's result always supersedes
- Teardown triggers one last best-effort flush whose failure is only logged
- Before any frame arrives, a fixed demo score tagged source='fallback' is
  reported so dependent views have something to render
"""

import logging
import threading
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from scoring.posture_geometry import (
    FALLBACK_REPORT,
    PostureReport,
    score_posture_frames,
)
from utils.config_loader import get_nested_config
from utils.video_io import VideoReader

from .pose_analyzer import LandmarkDetector

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_INTERVAL_MS = 100
DEFAULT_BATCH_SIZE = 12

BatchScorer = Callable[[List['LandmarkFrame']], Optional[PostureReport]]


@dataclass(frozen=True)
class LandmarkFrame:
    """One sampled skeleton: timestamp in milliseconds plus its joints."""
    ts: float
    points: Sequence[Any] = field(default_factory=list)


class LandmarkBatchAggregator:
    """
    Rate-limit a skeleton stream into batches and keep a running posture score.

    Usage:
        aggregator = LandmarkBatchAggregator.from_config(config)
        for ts_ms, points in stream:
            aggregator.push(ts_ms, points)
        aggregator.close()
        report = aggregator.current()
    """

    def __init__(
        self,
        scorer: Optional[BatchScorer] = None,
        sample_interval_ms: float = DEFAULT_SAMPLE_INTERVAL_MS,
        batch_size: int = DEFAULT_BATCH_SIZE,
        on_scored: Optional[Callable[[PostureReport], None]] = None,
        background: bool = True
    ):
        """
        Initialize the aggregator.

        Args:
            scorer: Batch scorer (defaults to score_posture_frames)
            sample_interval_ms: Minimum gap between accepted frames
            batch_size: Pending frames that trigger a flush
            on_scored: Called with every new PostureReport
            background: Run flushes on a worker thread (fire-and-forget);
                        if False, flushes run inline in the caller
        """
        if batch_size < 1:
            raise ValueError(f"batch_size must be >= 1, got {batch_size}")

        self.scorer = scorer or score_posture_frames
        self.sample_interval_ms = float(sample_interval_ms)
        self.batch_size = int(batch_size)
        self.on_scored = on_scored
        self.background = background

        self._lock = threading.Lock()
        self._pending: List[LandmarkFrame] = []
        self._flushing = False
        self._idle = threading.Condition(self._lock)
        self._flush_owner: Optional[threading.Thread] = None
        self._last_accepted_ts: Optional[float] = None
        self._received_any = False
        self._closed = False
        self._report: Optional[PostureReport] = None

    @classmethod
    def from_config(
        cls,
        config: Optional[Dict] = None,
        scorer: Optional[BatchScorer] = None,
        on_scored: Optional[Callable[[PostureReport], None]] = None,
        background: bool = True
    ) -> 'LandmarkBatchAggregator':
        if scorer is None:
            scorer = partial(
                score_posture_frames,
                weights=get_nested_config(config, 'scoring.posture.overall_weights')
            )

        return cls(
            scorer=scorer,
            sample_interval_ms=get_nested_config(config, 'streaming.sample_interval_ms', DEFAULT_SAMPLE_INTERVAL_MS),
            batch_size=get_nested_config(config, 'streaming.batch_size', DEFAULT_BATCH_SIZE),
            on_scored=on_scored,
            background=background
        )

    @property
    def pending_count(self) -> int:
        with self._lock:
            return len(self._pending)

    @property
    def flushing(self) -> bool:
        with self._lock:
            return self._flushing

    def push(self, ts_ms: float, points: Sequence[Any]) -> bool:
        """
        Offer one skeleton from the stream.

        Args:
            ts_ms: Frame timestamp in milliseconds
            points: Skeleton joints

        Returns:
            True if the frame passed the sampling gate and was batched
        """
        inline_frames = None

        with self._lock:
            if self._closed:
                return False

            self._received_any = True

            last = self._last_accepted_ts
            if last is not None and ts_ms - last < self.sample_interval_ms:
                return False

            self._last_accepted_ts = ts_ms
            self._pending.append(LandmarkFrame(ts=ts_ms, points=list(points)))

            # Started under the lock: close() never sees a half-started flush
            if len(self._pending) >= self.batch_size:
                _, inline_frames = self._begin_flush_locked()

        if inline_frames is not None:
            self._run_flush(inline_frames)

        return True

    def flush(self) -> bool:
        """
        Send the pending batch to the scorer.

        Non-reentrant: returns False without touching the pending batch while
        another flush is in flight (frames keep accumulating for the next one).

        Returns:
            True if a flush was started
        """
        with self._lock:
            started, inline_frames = self._begin_flush_locked()

        if inline_frames is not None:
            self._run_flush(inline_frames)

        return started

    def _begin_flush_locked(self) -> Tuple[bool, Optional[List[LandmarkFrame]]]:
        """
        Drain the pending batch into a new flush. Caller holds the lock.

        Returns:
            (started, frames the caller must score inline, or None)
        """
        if self._flushing or not self._pending:
            return False, None

        frames, self._pending = self._pending, []
        self._flushing = True
        logger.debug(f"Flushing landmark batch of {len(frames)} frames")

        if self.background:
            thread = threading.Thread(
                target=self._run_flush,
                args=(frames,),
                name='landmark-flush',
                daemon=True
            )
            self._flush_owner = thread
            thread.start()
            return True, None

        self._flush_owner = threading.current_thread()
        return True, frames

    def _run_flush(self, frames: List[LandmarkFrame]) -> None:
        try:
            report = self.scorer(frames)
            if report is None:
                logger.info(f"Batch of {len(frames)} frames had no complete skeleton, keeping previous score")
                return

            with self._lock:
                self._report = report

            logger.info(
                f"Posture score updated: overall={report.overall} "
                f"({report.valid_frames}/{len(frames)} valid frames)"
            )

            if self.on_scored is not None:
                self.on_scored(report)

        except Exception as e:
            logger.warning(f"Posture batch scoring failed: {e}")

        finally:
            with self._idle:
                self._flushing = False
                self._flush_owner = None
                self._idle.notify_all()

    def _idle_or_own_flush(self) -> bool:
        return not self._flushing or self._flush_owner is threading.current_thread()

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until no flush is in flight (background or inline).

        Returns:
            False if the timeout expired first
        """
        with self._idle:
            return self._idle.wait_for(self._idle_or_own_flush, timeout)

    def close(self) -> None:
        """
        Tear down the stream: one final best-effort flush of the pending batch.

        Waits for an in-flight flush first so the remainder is not dropped.
        Scoring failures are logged, never raised.
        """
        with self._idle:
            if self._closed:
                return
            self._closed = True

            self._idle.wait_for(self._idle_or_own_flush)

            if self._flushing or not self._pending:
                return
            frames, self._pending = self._pending, []
            self._flushing = True
            self._flush_owner = threading.current_thread()

        logger.debug(f"Final flush of {len(frames)} frames")
        self._run_flush(frames)

    def current(self) -> Optional[PostureReport]:
        """
        Latest posture score.

        Returns:
            The last computed PostureReport; FALLBACK_REPORT if no frame ever
            arrived; None if frames arrived but none has been scored yet
        """
        with self._lock:
            if self._report is not None:
                return self._report
            if not self._received_any:
                return FALLBACK_REPORT
            return None


def stream_video_landmarks(
    video_path: str,
    detector: LandmarkDetector,
    aggregator: LandmarkBatchAggregator
) -> Optional[PostureReport]:
    """
    Run a video through the landmark detector into the aggregator.

    Frames are read at the native frame rate; the aggregator's sampling gate
    decides which ones are batched. The aggregator is closed at the end of
    the stream, also when reading fails.

    Returns:
        The aggregator's final posture score (see LandmarkBatchAggregator.current)
    """
    detected = 0
    total = 0

    try:
        with VideoReader(video_path) as reader:
            for ts_ms, frame in reader.iter_frames():
                total += 1
                points = detector.detect_skeleton(frame)
                if points is None:
                    continue
                detected += 1
                aggregator.push(ts_ms, points)
    finally:
        aggregator.close()

    if total:
        logger.info(
            f"Streamed {total} frames, skeleton detected in {detected} "
            f"({detected / total * 100:.1f}%)"
        )

    return aggregator.current()
