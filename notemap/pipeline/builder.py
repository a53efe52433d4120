"""Map builder - Runs the audio-to-note-map pipeline for one clip at a time.

States:
    IDLE --start--> GENERATING --success--> COMPLETE
                    GENERATING --failure--> IDLE

Generation is a cooperative task: `iter_generate` yields a progress record
every `yield_every` analysis windows so a host can interleave other work.
Only one generation can be in flight per builder; the in-flight slot is
claimed under a lock, so one builder may be shared between threads.
"""

import asyncio
import logging
import threading
import warnings
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Iterator, List, Optional

import numpy as np

from ..analysis import EnergyEnvelope, OnsetDetector, TempoEstimator, TempoInfo
from ..core import (
    GeneratorConfig,
    LaneStrategy,
    NoteMap,
    NoteType,
    PersistenceError,
    SampleBuffer,
    SampleReadError,
    UnsupportedInputError,
)
from ..input import AudioClip
from ..output import MapStore
from ..processing import GridQuantizer, create_lane_assigner

logger = logging.getLogger(__name__)


class GenerationState(Enum):
    IDLE = "idle"
    GENERATING = "generating"
    COMPLETE = "complete"


@dataclass
class GenerationProgress:
    """Snapshot handed to the host at each suspension point."""

    source_id: str
    windows_done: int
    windows_total: int
    raw_hits: int

    @property
    def fraction(self) -> float:
        if self.windows_total <= 0:
            return 1.0
        return min(1.0, self.windows_done / self.windows_total)


class MapBuilder:
    """Generates, loads and persists note maps for audio clips."""

    def __init__(
        self,
        config: Optional[GeneratorConfig] = None,
        store: Optional[MapStore] = None,
        rng: Optional[np.random.Generator] = None,
        downmix: bool = False,
    ):
        """
        Initialize MapBuilder.

        Args:
            config: Generator configuration (default: GeneratorConfig())
            store: Persistence for generated maps; None disables saving
            rng: Random generator for the random-walk lane strategy
            downmix: Average channels instead of reading the first one
        """
        self.config = (config or GeneratorConfig()).validate()
        self.store = store
        self.rng = rng
        self.downmix = downmix

        self.state = GenerationState.IDLE
        self.note_map: Optional[NoteMap] = None
        self.detected_bpm = self.config.default_bpm
        self.tempo_info: Optional[TempoInfo] = None

        self._in_flight = False
        self._guard = threading.Lock()
        self._start_callbacks: List[Callable[[], None]] = []
        self._complete_callbacks: List[Callable[[NoteMap], None]] = []

    @property
    def is_generating(self) -> bool:
        return self._in_flight

    def _try_begin(self) -> bool:
        """Claim the in-flight slot. False if another run holds it."""
        with self._guard:
            if self._in_flight:
                return False
            self._in_flight = True
            return True

    def on_generation_start(self, callback: Callable[[], None]) -> None:
        """Register callback fired when a generation or load starts."""
        self._start_callbacks.append(callback)

    def on_generation_complete(self, callback: Callable[[NoteMap], None]) -> None:
        """Register callback fired with the finished map."""
        self._complete_callbacks.append(callback)

    def _emit_start(self) -> None:
        for cb in list(self._start_callbacks):
            cb()

    def _emit_complete(self, note_map: NoteMap) -> None:
        for cb in list(self._complete_callbacks):
            cb(note_map)

    # --- Load or generate ---

    def check_and_load(self, clip: AudioClip, force: bool = False) -> Optional[NoteMap]:
        """
        Load the stored map for a clip, or generate a new one.

        Args:
            clip: Audio clip
            force: Regenerate even if a stored map exists

        Returns:
            The map, or None if a generation is already in flight
        """
        if self._in_flight:
            logger.debug("Generation in progress, ignoring request for '%s'", clip.name)
            return None

        if not force and self.store is not None and self.store.exists(clip.name):
            return self._load(clip)
        return self.generate(clip)

    def force_regenerate(self, clip: AudioClip) -> Optional[NoteMap]:
        """Replace any stored map with a freshly generated one."""
        return self.check_and_load(clip, force=True)

    def _load(self, clip: AudioClip) -> Optional[NoteMap]:
        self._emit_start()
        try:
            note_map = self.store.load(clip.name)
        except PersistenceError as e:
            logger.error("Load failed, regenerating: %s", e)
            return self.generate(clip)

        lanes = self.config.lanes
        out_of_range = sorted({n.lane for n in note_map if not 0 <= n.lane < lanes})
        if out_of_range:
            logger.error(
                "Stored map for '%s' uses lanes %s outside [0, %d), regenerating",
                clip.name,
                out_of_range,
                lanes,
            )
            return self.generate(clip)

        self.note_map = note_map
        if note_map.bpm is not None:
            self.detected_bpm = note_map.bpm
        self.state = GenerationState.COMPLETE
        self._emit_complete(note_map)
        return note_map

    # --- Generation ---

    def generate(self, clip: AudioClip) -> Optional[NoteMap]:
        """
        Run a whole generation without suspending.

        Returns:
            The new map, or None if a generation is already in flight

        Raises:
            UnsupportedInputError: If the clip is streaming-only
            SampleReadError: If samples cannot be read
        """
        task = self.iter_generate(clip)
        while True:
            try:
                next(task)
            except StopIteration as stop:
                return stop.value

    async def generate_async(self, clip: AudioClip) -> Optional[NoteMap]:
        """Run a generation, handing control back to the event loop at each suspension point."""
        task = self.iter_generate(clip)
        while True:
            try:
                next(task)
            except StopIteration as stop:
                return stop.value
            await asyncio.sleep(0)

    def iter_generate(self, clip: AudioClip) -> Iterator[GenerationProgress]:
        """
        Generate a map as a resumable task.

        Closing the iterator early cancels the run: the builder returns to
        IDLE and nothing is persisted.

        Args:
            clip: Audio clip to analyse

        Yields:
            GenerationProgress every `config.yield_every` analysis windows

        Returns:
            The finished NoteMap as the generator return value, or None if
            another run already holds the builder
        """
        if not self._try_begin():
            logger.debug("Generation in progress, ignoring request for '%s'", clip.name)
            return

        completed = False
        try:
            self.state = GenerationState.GENERATING
            self._emit_start()
            self.note_map = NoteMap(source_id=clip.name)

            buffer = self._read_samples(clip)
            note_map = yield from self._run_pipeline(clip.name, buffer)

            self.note_map = note_map
            self._persist(note_map)
            self.state = GenerationState.COMPLETE
            completed = True
        finally:
            if not completed:
                self.state = GenerationState.IDLE
                self.note_map = None
            with self._guard:
                self._in_flight = False

        self._emit_complete(note_map)
        return note_map

    def _read_samples(self, clip: AudioClip) -> SampleBuffer:
        if clip.streaming:
            logger.error("Clip '%s' is streaming-only, decode it before generating", clip.name)
            raise UnsupportedInputError(
                f"Clip '{clip.name}' is streaming-only; load it fully decoded"
            )
        try:
            return clip.read_mono(downmix=self.downmix)
        except Exception as e:
            logger.error("Data read error for '%s': %s", clip.name, e)
            raise SampleReadError(f"Failed to read samples of '{clip.name}': {e}") from e

    def _resolve_tempo(self, buffer: SampleBuffer) -> TempoInfo:
        cfg = self.config
        if cfg.bpm is not None:
            return TempoInfo(bpm=cfg.bpm)
        estimator = TempoEstimator(
            default_bpm=cfg.default_bpm,
            window_seconds=cfg.tempo_window_seconds,
            max_seconds=cfg.tempo_max_seconds,
            min_seconds=cfg.tempo_min_seconds,
            min_bpm=cfg.min_bpm,
            max_bpm=cfg.max_bpm,
        )
        return estimator.analyze(buffer.samples, buffer.sample_rate)

    def _run_pipeline(self, source_id: str, buffer: SampleBuffer):
        cfg = self.config

        self.tempo_info = self._resolve_tempo(buffer)
        self.detected_bpm = self.tempo_info.bpm
        quantizer = GridQuantizer(
            bpm=self.detected_bpm,
            subdivisions_per_beat=cfg.subdivisions_per_beat,
            beat_offset=cfg.beat_offset,
        )
        logger.info(
            "Detected BPM: %.2f | Song: %.1fs | Grid: %.3fs intervals",
            self.detected_bpm,
            buffer.duration,
            quantizer.subdivision_interval,
        )

        needs_bands = cfg.effective_strategy == LaneStrategy.FREQUENCY
        envelope = EnergyEnvelope(
            sample_size=cfg.sample_size,
            hop_size=cfg.effective_hop_size,
            bands=cfg.lanes if needs_bands else 0,
        )
        detector = OnsetDetector(
            minimum_energy=cfg.minimum_energy,
            peak_sensitivity=cfg.peak_sensitivity,
            smoothing_factor=cfg.smoothing_factor,
        )

        total = envelope.block_count(len(buffer))
        raw_hits = []
        for block, hit in detector.scan(envelope.blocks(buffer)):
            if hit is not None:
                raw_hits.append(hit)
            if block.index % cfg.yield_every == 0:
                yield GenerationProgress(source_id, block.index + 1, total, len(raw_hits))
        logger.info("Found %d raw hits in %d windows", len(raw_hits), total)

        quantized = quantizer.quantize(raw_hits)
        logger.info("Quantized to %d grid-aligned hits", len(quantized))

        assigner = create_lane_assigner(cfg, rng=self.rng)
        note_map = self.note_map if self.note_map is not None else NoteMap(source_id)
        note_map.notes.extend(assigner.assign_all(quantized))
        note_map.sort()
        note_map.bpm = self.detected_bpm

        self._log_distribution(note_map)
        return note_map

    def _persist(self, note_map: NoteMap) -> None:
        if self.store is None:
            return
        try:
            self.store.save(note_map)
        except PersistenceError as e:
            logger.warning("%s", e)
            warnings.warn(f"Failed to save map: {e}")

    def _log_distribution(self, note_map: NoteMap) -> None:
        logger.info("Final map: %d notes", len(note_map))
        for lane, count in note_map.lane_counts().items():
            logger.info("  Lane %d: %d notes", lane, count)
        types = note_map.type_counts()
        logger.info(
            "  Heavy: %d, Standard: %d",
            types[NoteType.HEAVY],
            types[NoteType.STANDARD],
        )
