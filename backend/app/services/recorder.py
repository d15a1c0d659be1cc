"""Playback-side progress bookkeeping and the resume protocol.

States::

    idle -> loading -> (resume_prompt | playing) -> playing -> closing -> idle

The recorder is an async context manager: entering loads any stored position,
leaving always flushes one final save. While playing, an asyncio task saves
every ``save_interval`` seconds, so at most one interval of play is lost.

The streaming surface is a third-party iframe that cannot be asked for its
position, so playback time is estimated by ``PlaybackClock`` unless the host
reports positions itself via ``update_position``.
"""
from __future__ import annotations
import asyncio
import enum
import logging
import time
from dataclasses import dataclass
from typing import Callable

from app.config import get_settings
from app.exceptions import RecorderStateError, StorageError
from app.models.progress import MediaType
from app.schemas.progress import WatchProgressRecord
from app.services.identity import Identity
from app.services.progress_store import ProgressStore, compute_percentage, normalize_episode

logger = logging.getLogger(__name__)


class RecorderState(str, enum.Enum):
    idle = "idle"
    loading = "loading"
    resume_prompt = "resume_prompt"
    playing = "playing"
    closing = "closing"


@dataclass(frozen=True)
class ContentKey:
    media_type: MediaType
    content_id: int
    season: int | None = None
    episode: int | None = None

    def __post_init__(self):
        season, episode = normalize_episode(self.season, self.episode)
        object.__setattr__(self, "season", season)
        object.__setattr__(self, "episode", episode)

    def __str__(self) -> str:
        if self.season is not None:
            return f"{self.media_type.value}/{self.content_id} S{self.season}E{self.episode}"
        return f"{self.media_type.value}/{self.content_id}"


def format_position(seconds: float) -> str:
    """1200 -> '20:00', 4000 -> '1:06:40'"""
    total = max(0, int(seconds))
    hours, rest = divmod(total, 3600)
    minutes, secs = divmod(rest, 60)
    if hours:
        return f"{hours}:{minutes:02d}:{secs:02d}"
    return f"{minutes}:{secs:02d}"


@dataclass(frozen=True)
class ResumeOffer:
    timestamp: float
    duration: float
    progress: float

    def describe(self) -> str:
        return f"{format_position(self.timestamp)} of {format_position(self.duration)}"


class PlaybackClock:
    """Estimates the playback position from wall time while playing."""

    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._offset = 0.0
        self._started_at: float | None = None

    @property
    def playing(self) -> bool:
        return self._started_at is not None

    @property
    def position(self) -> float:
        if self._started_at is None:
            return self._offset
        return self._offset + (self._clock() - self._started_at)

    def play(self):
        if self._started_at is None:
            self._started_at = self._clock()

    def pause(self):
        if self._started_at is not None:
            self._offset = self.position
            self._started_at = None

    def seek(self, position: float):
        running = self.playing
        self._offset = max(0.0, position)
        self._started_at = self._clock() if running else None


class ProgressRecorder:
    def __init__(
        self,
        store: ProgressStore,
        identity: Identity,
        content: ContentKey,
        duration: float | None = None,
        *,
        save_interval: float | None = None,
        resume_threshold: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        settings = get_settings()
        self.store = store
        self.identity = identity
        self.content = content
        self.duration = duration or settings.default_duration_seconds
        self.save_interval = save_interval if save_interval is not None else settings.progress_save_interval_seconds
        self.resume_threshold = resume_threshold if resume_threshold is not None else settings.resume_threshold_pct
        self.clock = PlaybackClock(clock)
        self.state = RecorderState.idle
        self.resume_offer: ResumeOffer | None = None
        self._autosave_task: asyncio.Task | None = None
        self._inflight_save: asyncio.Future | None = None

    async def __aenter__(self) -> "ProgressRecorder":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    @property
    def timestamp(self) -> float:
        return self.clock.position

    @property
    def progress(self) -> float:
        return compute_percentage(self.timestamp, self.duration)

    def _require(self, *states: RecorderState):
        if self.state not in states:
            allowed = ", ".join(s.value for s in states)
            raise RecorderStateError(f"Recorder is {self.state.value}, expected {allowed}")

    async def open(self) -> RecorderState:
        """Load the stored position and decide between prompting and playing."""
        self._require(RecorderState.idle)
        self.state = RecorderState.loading
        try:
            record = await self.store.get(
                self.identity, self.content.content_id, self.content.media_type,
                self.content.season, self.content.episode,
            )
        except StorageError as e:
            logger.warning(f"[{self.content}] Could not load saved progress, starting fresh: {e}")
            record = None

        if record is not None and record.progress > self.resume_threshold:
            if record.duration > 0:
                self.duration = record.duration
            self.resume_offer = ResumeOffer(record.timestamp, record.duration, record.progress)
            self.clock.seek(record.timestamp)
            self.state = RecorderState.resume_prompt
            logger.info(f"[{self.content}] Offering resume at {self.resume_offer.describe()}")
        else:
            self._start_playing(0.0)
        return self.state

    async def resume(self):
        """Keep the stored position and start playing from it."""
        self._require(RecorderState.resume_prompt)
        self._start_playing(self.resume_offer.timestamp)

    async def start_over(self):
        self._require(RecorderState.resume_prompt)
        self._start_playing(0.0)

    def _start_playing(self, position: float):
        self.clock.seek(position)
        self.clock.play()
        self.state = RecorderState.playing
        self._autosave_task = asyncio.create_task(self._autosave_loop())
        self._autosave_task.add_done_callback(self._log_task_result)

    def update_position(self, timestamp: float, duration: float | None = None):
        """Position reported by the host page (seek, player event, ...)."""
        if duration:
            self.duration = duration
        self.clock.seek(timestamp)

    def pause(self):
        self.clock.pause()

    def play(self):
        self.clock.play()

    def _record(self) -> WatchProgressRecord:
        timestamp = self.timestamp
        return WatchProgressRecord(
            user_id=self.identity.user_id,
            session_id=self.identity.session_id,
            movie_id=self.content.content_id,
            media_type=self.content.media_type,
            season=self.content.season,
            episode=self.content.episode,
            timestamp=timestamp,
            duration=self.duration,
            progress=compute_percentage(timestamp, self.duration),
        )

    async def save(self) -> bool:
        """Push the current position; a storage failure is logged, never raised."""
        record = self._record()
        try:
            await self.store.upsert(record)
        except StorageError as e:
            logger.warning(f"[{self.content}] Progress save failed at {record.timestamp:.0f}s: {e}")
            return False
        logger.debug(f"[{self.content}] Saved {record.progress:.1f}%")
        return True

    async def _autosave_loop(self):
        while True:
            await asyncio.sleep(self.save_interval)
            # cancelling the loop must not interrupt a save mid-statement
            self._inflight_save = asyncio.ensure_future(self.save())
            await asyncio.shield(self._inflight_save)

    def _log_task_result(self, task: asyncio.Task):
        if task.cancelled():
            return
        if task.exception() is not None:
            logger.error(f"[{self.content}] Autosave task raised unhandled exception", exc_info=task.exception())

    async def close(self):
        """Stop autosaving and flush one last save; safe to call in any state."""
        if self.state in (RecorderState.idle, RecorderState.closing):
            return
        flush = self.state in (RecorderState.playing, RecorderState.resume_prompt)
        self.state = RecorderState.closing
        if self._autosave_task is not None:
            self._autosave_task.cancel()
            try:
                await self._autosave_task
            except asyncio.CancelledError:
                pass
            except Exception:
                # already logged by the done callback
                pass
            self._autosave_task = None
        if self._inflight_save is not None:
            if not self._inflight_save.done():
                await asyncio.wait([self._inflight_save])
            self._inflight_save = None
        try:
            if flush:
                self.clock.pause()
                await self.save()
        finally:
            self.state = RecorderState.idle
