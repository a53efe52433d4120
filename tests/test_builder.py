"""Tests for the map builder lifecycle and end-to-end generation."""

import asyncio
import threading

import numpy as np
import pytest

from notemap.core import (
    GeneratorConfig,
    Note,
    NoteMap,
    NoteType,
    PersistenceError,
    SampleReadError,
    UnsupportedInputError,
)
from notemap.input import AudioClip
from notemap.output import MapStore
from notemap.pipeline import GenerationState, MapBuilder

from generate_test_audio import generate_click_track, generate_sine_wave, to_stereo_interleaved

SR = 22050


@pytest.fixture
def click_clip():
    return AudioClip(name="click", sample_rate=SR, samples=generate_click_track(120.0, 10.0, SR))


@pytest.fixture
def config():
    return GeneratorConfig(bpm=120.0)


class _FailingStore(MapStore):
    def save(self, note_map):
        raise PersistenceError("disk full")


class TestLifecycle:
    """Tests for states, callbacks and the in-flight guard."""

    def test_initial_state(self):
        builder = MapBuilder()
        assert builder.state == GenerationState.IDLE
        assert builder.note_map is None
        assert builder.detected_bpm == 120.0
        assert not builder.is_generating

    def test_generate_completes(self, click_clip, config):
        builder = MapBuilder(config=config)
        events = []
        builder.on_generation_start(lambda: events.append(("start", builder.state)))
        builder.on_generation_complete(lambda m: events.append(("complete", m)))

        note_map = builder.generate(click_clip)

        assert builder.state == GenerationState.COMPLETE
        assert note_map is builder.note_map
        assert note_map.source_id == "click"
        assert events[0] == ("start", GenerationState.GENERATING)
        assert events[1] == ("complete", note_map)
        assert len(events) == 2
        assert not builder.is_generating

    def test_streaming_clip_is_rejected(self):
        builder = MapBuilder()
        clip = AudioClip(name="stream", sample_rate=SR, streaming=True)
        completed = []
        builder.on_generation_complete(completed.append)

        with pytest.raises(UnsupportedInputError):
            builder.generate(clip)

        assert builder.state == GenerationState.IDLE
        assert completed == []

    def test_read_failure_returns_to_idle(self):
        def broken_reader():
            raise OSError("decoder crashed")

        builder = MapBuilder()
        completed = []
        builder.on_generation_complete(completed.append)
        clip = AudioClip(name="broken", sample_rate=SR, reader=broken_reader)

        with pytest.raises(SampleReadError) as exc_info:
            builder.generate(clip)

        assert isinstance(exc_info.value.__cause__, OSError)
        assert builder.state == GenerationState.IDLE
        assert builder.note_map is None
        assert not builder.is_generating
        assert completed == []

    def test_clip_without_data_is_read_error(self):
        with pytest.raises(SampleReadError):
            MapBuilder().generate(AudioClip(name="empty", sample_rate=SR))

    def test_reader_is_used_on_demand(self, config):
        calls = []

        def reader():
            calls.append(1)
            return generate_click_track(120.0, 2.0, SR)

        clip = AudioClip(name="lazy", sample_rate=SR, reader=reader)
        MapBuilder(config=config).generate(clip)
        assert calls == [1]
        assert clip.is_loaded

    def test_second_request_ignored_while_generating(self, click_clip, config):
        builder = MapBuilder(config=config)
        nested = []
        builder.on_generation_start(lambda: nested.append(builder.check_and_load(click_clip)))

        builder.generate(click_clip)

        assert nested == [None]
        assert builder.state == GenerationState.COMPLETE

    def test_suspended_task_blocks_new_runs(self, click_clip):
        builder = MapBuilder(config=GeneratorConfig(bpm=120.0, yield_every=5))
        task = builder.iter_generate(click_clip)
        next(task)

        assert builder.is_generating
        assert builder.state == GenerationState.GENERATING
        assert builder.generate(click_clip) is None
        assert list(builder.iter_generate(click_clip)) == []

        for _ in task:
            pass
        assert builder.state == GenerationState.COMPLETE

    def test_only_one_thread_claims_the_builder(self, click_clip):
        builder = MapBuilder(config=GeneratorConfig(bpm=120.0, yield_every=1))
        workers = 8
        barrier = threading.Barrier(workers)
        tasks = []
        started = []
        lock = threading.Lock()

        def worker():
            task = builder.iter_generate(click_clip)
            barrier.wait()
            step = next(task, None)
            with lock:
                tasks.append(task)
                started.append(step is not None)

        threads = [threading.Thread(target=worker) for _ in range(workers)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert started.count(True) == 1
        assert builder.is_generating

        for task in tasks:
            task.close()
        assert not builder.is_generating
        assert builder.state == GenerationState.IDLE

    def test_losing_run_does_not_return_other_map(self, click_clip, config):
        builder = MapBuilder(config=config)
        results = []

        def from_other_thread():
            results.append(builder.generate(click_clip))

        def on_start():
            t = threading.Thread(target=from_other_thread)
            t.start()
            t.join()

        builder.on_generation_start(on_start)
        note_map = builder.generate(click_clip)

        assert results == [None]
        assert len(note_map) > 0


class TestCooperativeGeneration:
    """Tests for suspension points and cancellation."""

    def test_progress_every_n_windows(self):
        clip = AudioClip(name="quiet", sample_rate=SR, samples=np.zeros(SR * 3, dtype=np.float32))
        builder = MapBuilder(config=GeneratorConfig(bpm=120.0, yield_every=10))

        steps = list(builder.iter_generate(clip))

        # 66150 samples -> 63 windows, suspended at windows 0, 10, ..., 60
        assert len(steps) == 7
        assert all(s.windows_total == 63 for s in steps)
        assert [s.windows_done for s in steps] == [1, 11, 21, 31, 41, 51, 61]
        assert all(0.0 < s.fraction <= 1.0 for s in steps)

    def test_close_cancels_run(self, click_clip, tmp_path):
        store = MapStore(tmp_path)
        builder = MapBuilder(config=GeneratorConfig(bpm=120.0, yield_every=5), store=store)
        completed = []
        builder.on_generation_complete(completed.append)

        task = builder.iter_generate(click_clip)
        next(task)
        task.close()

        assert builder.state == GenerationState.IDLE
        assert builder.note_map is None
        assert not builder.is_generating
        assert not store.exists("click")
        assert completed == []

    def test_generate_async(self, click_clip, config):
        builder = MapBuilder(config=config)
        note_map = asyncio.run(builder.generate_async(click_clip))
        assert builder.state == GenerationState.COMPLETE
        assert len(note_map) > 0

    def test_async_matches_sync(self, click_clip, config):
        sync_map = MapBuilder(config=config).generate(click_clip)
        async_map = asyncio.run(MapBuilder(config=config).generate_async(click_clip))
        assert sync_map.to_dict() == async_map.to_dict()


class TestGeneration:
    """End-to-end tests on synthetic audio."""

    def test_deterministic(self, click_clip):
        config = GeneratorConfig()
        first = MapBuilder(config=config).generate(click_clip)
        second = MapBuilder(config=config).generate(click_clip)
        assert first.to_dict() == second.to_dict()

    def test_sine_with_fixed_tempo(self):
        """Steady tone, one subdivision per beat: few notes, all on the beat grid."""
        sr = 44100
        clip = AudioClip(name="sine", sample_rate=sr, samples=generate_sine_wave(440.0, 2.0, sr))
        config = GeneratorConfig(bpm=120.0, subdivisions_per_beat=1)
        builder = MapBuilder(config=config)

        note_map = builder.generate(clip)

        block_count = (len(clip.samples) - 2048 - 1) // 1024 + 1
        assert 1 <= len(note_map) <= block_count
        for note in note_map:
            assert note.time / 0.5 == pytest.approx(round(note.time / 0.5))
            assert 0 <= note.lane < 5
        assert builder.detected_bpm == 120.0

    def test_silence_gives_empty_map(self):
        clip = AudioClip(name="silence", sample_rate=SR, samples=np.zeros(SR * 2, dtype=np.float32))
        builder = MapBuilder()
        note_map = builder.generate(clip)
        assert len(note_map) == 0
        assert builder.state == GenerationState.COMPLETE
        assert builder.detected_bpm == 120.0

    def test_click_track_invariants(self, click_clip):
        config = GeneratorConfig(beat_offset=0.0)
        builder = MapBuilder(config=config)
        note_map = builder.generate(click_clip)

        assert len(note_map) > 0
        assert builder.detected_bpm == pytest.approx(120.0, abs=2.0)
        interval = 60.0 / builder.detected_bpm / config.subdivisions_per_beat

        times = [n.time for n in note_map]
        assert times == sorted(times)
        assert len(set(round(t / interval) for t in times)) == len(times)
        for note in note_map:
            assert note.time / interval == pytest.approx(round(note.time / interval), abs=1e-6)
            assert 0 <= note.lane < config.lanes
            assert 0.0 <= note.power <= 1.0
            assert note.type in (NoteType.STANDARD, NoteType.HEAVY)

    def test_heavy_notes_on_long_click_track(self):
        clip = AudioClip(name="long", sample_rate=SR, samples=generate_click_track(120.0, 20.0, SR))
        config = GeneratorConfig(bpm=120.0, subdivisions_per_beat=1, heavy_note_interval=4)
        note_map = MapBuilder(config=config).generate(clip)
        heavy = [n for n in note_map if n.is_heavy]
        assert heavy
        assert all(n.lane == 0 for n in heavy)

    def test_bpm_override(self, click_clip):
        builder = MapBuilder(config=GeneratorConfig(bpm=100.0))
        note_map = builder.generate(click_clip)
        assert builder.detected_bpm == 100.0
        assert note_map.bpm == 100.0
        assert not builder.tempo_info.is_fallback

    def test_short_clip_uses_default_tempo(self):
        clip = AudioClip(name="short", sample_rate=SR, samples=generate_click_track(150.0, 3.0, SR))
        builder = MapBuilder(config=GeneratorConfig(default_bpm=110.0))
        builder.generate(clip)
        assert builder.detected_bpm == 110.0
        assert builder.tempo_info.is_fallback

    def test_frequency_strategy(self, click_clip):
        config = GeneratorConfig(bpm=120.0, use_frequency_mapping=True)
        note_map = MapBuilder(config=config).generate(click_clip)
        assert len(note_map) > 0
        assert all(0 <= n.lane < 5 for n in note_map)

    def test_random_walk_with_seed(self, click_clip):
        config = GeneratorConfig(bpm=120.0, lane_strategy="random-walk", seed=9)
        first = MapBuilder(config=config).generate(click_clip)
        second = MapBuilder(config=config).generate(click_clip)
        assert [n.lane for n in first] == [n.lane for n in second]


class TestChannels:
    """Tests for multi-channel clips."""

    def test_first_channel_only(self, config):
        clicks = generate_click_track(120.0, 6.0, SR)
        silence = np.zeros_like(clicks)

        loud_left = AudioClip(
            name="left", sample_rate=SR, channels=2, samples=to_stereo_interleaved(clicks, silence)
        )
        loud_right = AudioClip(
            name="right", sample_rate=SR, channels=2, samples=to_stereo_interleaved(silence, clicks)
        )

        assert len(MapBuilder(config=config).generate(loud_left)) > 0
        assert len(MapBuilder(config=config).generate(loud_right)) == 0

    def test_downmix_reads_all_channels(self, config):
        clicks = generate_click_track(120.0, 6.0, SR)
        clip = AudioClip(
            name="right",
            sample_rate=SR,
            channels=2,
            samples=to_stereo_interleaved(np.zeros_like(clicks), clicks),
        )
        assert len(MapBuilder(config=config, downmix=True).generate(clip)) > 0


class TestPersistence:
    """Tests for loading and saving through a MapStore."""

    def test_generated_map_is_saved(self, click_clip, config, tmp_path):
        store = MapStore(tmp_path)
        note_map = MapBuilder(config=config, store=store).generate(click_clip)
        assert store.exists("click")
        assert store.load("click").to_dict() == note_map.to_dict()

    def test_stored_map_is_loaded(self, click_clip, config, tmp_path):
        store = MapStore(tmp_path)
        original = MapBuilder(config=config, store=store).generate(click_clip)

        builder = MapBuilder(config=config, store=store)
        events = []
        builder.on_generation_start(lambda: events.append("start"))
        builder.on_generation_complete(lambda m: events.append("complete"))

        loaded = builder.check_and_load(click_clip)

        assert loaded.to_dict() == original.to_dict()
        assert builder.state == GenerationState.COMPLETE
        assert builder.detected_bpm == 120.0
        assert events == ["start", "complete"]

    def test_load_does_not_read_samples(self, config, tmp_path):
        store = MapStore(tmp_path)
        clip = AudioClip(name="click", sample_rate=SR, samples=generate_click_track(120.0, 4.0, SR))
        MapBuilder(config=config, store=store).generate(clip)

        unreadable = AudioClip(name="click", sample_rate=SR, streaming=True)
        loaded = MapBuilder(config=config, store=store).check_and_load(unreadable)
        assert loaded is not None

    def test_force_regenerate(self, click_clip, tmp_path):
        store = MapStore(tmp_path)
        MapBuilder(config=GeneratorConfig(bpm=120.0), store=store).generate(click_clip)

        builder = MapBuilder(config=GeneratorConfig(bpm=100.0), store=store)
        note_map = builder.force_regenerate(click_clip)

        assert note_map.bpm == 100.0
        assert store.load("click").bpm == 100.0

    def test_corrupt_file_regenerates(self, click_clip, config, tmp_path):
        store = MapStore(tmp_path)
        store.path_for("click").write_text("{ not json", encoding="utf-8")

        builder = MapBuilder(config=config, store=store)
        starts = []
        builder.on_generation_start(lambda: starts.append(1))

        note_map = builder.check_and_load(click_clip)

        assert len(starts) == 2
        assert len(note_map) > 0
        assert store.load("click").to_dict() == note_map.to_dict()

    def test_map_with_too_many_lanes_regenerates(self, click_clip, tmp_path):
        """A map stored under a wider lane layout is not handed out as-is."""
        store = MapStore(tmp_path)
        store.save(NoteMap("click", [Note(time=0.0, lane=0), Note(time=0.125, lane=6)], bpm=120.0))

        builder = MapBuilder(config=GeneratorConfig(bpm=120.0, lanes=3), store=store)
        starts = []
        builder.on_generation_start(lambda: starts.append(1))

        note_map = builder.check_and_load(click_clip)

        assert len(starts) == 2
        assert len(note_map) > 0
        assert all(0 <= n.lane < 3 for n in note_map)
        assert builder.state == GenerationState.COMPLETE
        assert all(0 <= n.lane < 3 for n in store.load("click"))

    def test_map_with_fewer_lanes_is_loaded(self, click_clip, tmp_path):
        store = MapStore(tmp_path)
        narrow = NoteMap("click", [Note(time=0.0, lane=0), Note(time=0.125, lane=2)], bpm=120.0)
        store.save(narrow)

        builder = MapBuilder(config=GeneratorConfig(bpm=120.0, lanes=5), store=store)
        starts = []
        builder.on_generation_start(lambda: starts.append(1))

        assert builder.check_and_load(click_clip).to_dict() == narrow.to_dict()
        assert len(starts) == 1

    def test_save_failure_keeps_map(self, click_clip, config, tmp_path):
        builder = MapBuilder(config=config, store=_FailingStore(tmp_path))
        completed = []
        builder.on_generation_complete(completed.append)

        with pytest.warns(UserWarning, match="disk full"):
            note_map = builder.generate(click_clip)

        assert len(note_map) > 0
        assert builder.state == GenerationState.COMPLETE
        assert completed == [note_map]
