"""Tests for map persistence and MIDI export."""

import gc
import json

import pretty_midi
import pytest

from notemap.core import Note, NoteMap, NoteType, PersistenceError
from notemap.output import MapStore, MIDIExporter, sanitize_source_id


@pytest.fixture
def sample_map():
    return NoteMap(
        source_id="song",
        notes=[
            Note(time=0.0, lane=0, power=0.8, type=NoteType.STANDARD),
            Note(time=0.125, lane=3, power=0.4),
            Note(time=0.5, lane=0, power=1.0, type=NoteType.HEAVY),
        ],
        bpm=120.0,
    )


class TestSanitizeSourceId:
    """Tests for file-name sanitizing."""

    def test_plain_name_unchanged(self):
        assert sanitize_source_id("my_song-01") == "my_song-01"

    def test_invalid_characters_replaced(self):
        assert sanitize_source_id('a/b:c*d?"e') == "a_b_c_d__e"

    def test_control_characters(self):
        assert sanitize_source_id("tab\there") == "tab_here"


class TestMapStore:
    """Tests for JSON map files."""

    def test_file_name(self, tmp_path):
        store = MapStore(tmp_path)
        assert store.path_for("Track 1").name == "Track 1_BeatMap.json"
        assert store.path_for("a/b").name == "a_b_BeatMap.json"

    def test_save_and_load(self, tmp_path, sample_map):
        store = MapStore(tmp_path)
        path = store.save(sample_map)

        assert path.exists()
        loaded = store.load("song")
        assert loaded == sample_map

    def test_file_format(self, tmp_path, sample_map):
        path = MapStore(tmp_path).save(sample_map)
        data = json.loads(path.read_text(encoding="utf-8"))

        assert data["clipName"] == "song"
        assert data["bpm"] == 120.0
        assert data["notes"][2] == {"time": 0.5, "lane": 0, "power": 1.0, "type": "Heavy"}

    def test_creates_directory(self, tmp_path, sample_map):
        store = MapStore(tmp_path / "maps" / "nested")
        store.save(sample_map)
        assert store.exists("song")

    def test_overwrite_leaves_no_temp_files(self, tmp_path, sample_map):
        store = MapStore(tmp_path)
        store.save(sample_map)
        sample_map.notes.append(Note(time=1.0, lane=1))
        store.save(sample_map)

        assert len(store.load("song")) == 4
        assert [p.name for p in tmp_path.iterdir()] == ["song_BeatMap.json"]

    def test_load_integer_note_types(self, tmp_path):
        store = MapStore(tmp_path)
        store.path_for("legacy").write_text(
            json.dumps(
                {
                    "clipName": "legacy",
                    "notes": [
                        {"time": 0.5, "lane": 2, "power": 0.3, "type": 1},
                        {"time": 0.25, "lane": 1, "power": 0.2, "type": 0},
                    ],
                }
            ),
            encoding="utf-8",
        )

        loaded = store.load("legacy")

        assert [n.time for n in loaded] == [0.25, 0.5]
        assert [n.type for n in loaded] == [NoteType.STANDARD, NoteType.HEAVY]
        assert loaded.bpm is None

    def test_missing_file(self, tmp_path):
        with pytest.raises(PersistenceError):
            MapStore(tmp_path).load("nothing")

    def test_malformed_file(self, tmp_path):
        store = MapStore(tmp_path)
        store.path_for("bad").write_text("[1, 2, 3]", encoding="utf-8")
        with pytest.raises(PersistenceError):
            store.load("bad")

    def test_unknown_note_type(self, tmp_path):
        store = MapStore(tmp_path)
        store.path_for("bad").write_text(
            json.dumps({"clipName": "bad", "notes": [{"time": 0, "lane": 0, "type": "Boss"}]}),
            encoding="utf-8",
        )
        with pytest.raises(PersistenceError):
            store.load("bad")

    def test_lock_is_shared_while_held(self, tmp_path):
        store = MapStore(tmp_path)
        lock = store._lock_for("a/b")
        assert store._lock_for("a_b") is lock
        assert store._lock_for("other") is not lock

    def test_locks_are_released_after_use(self, tmp_path, sample_map):
        store = MapStore(tmp_path)
        for i in range(20):
            sample_map.source_id = f"song_{i}"
            store.save(sample_map)
            store.load(sample_map.source_id)
        gc.collect()
        assert len(store._locks) == 0

    def test_delete(self, tmp_path, sample_map):
        store = MapStore(tmp_path)
        store.save(sample_map)
        assert store.delete("song")
        assert not store.exists("song")
        assert not store.delete("song")


class TestMIDIExporter:
    """Tests for the MIDI drum-track preview."""

    def test_export_creates_file(self, tmp_path, sample_map):
        path = tmp_path / "song.mid"
        MIDIExporter().export(sample_map, str(path))

        midi = pretty_midi.PrettyMIDI(str(path))
        assert len(midi.instruments) == 1
        assert midi.instruments[0].is_drum
        assert len(midi.instruments[0].notes) == 3

    def test_lane_pitches_and_velocity(self, sample_map):
        midi = MIDIExporter().to_pretty_midi(sample_map)
        notes = midi.instruments[0].notes

        assert [n.pitch for n in notes] == [36, 45, 36]
        assert notes[2].velocity == 127
        assert notes[1].velocity < notes[0].velocity
        assert notes[1].start == pytest.approx(0.125)

    def test_pitches_cycle(self):
        exporter = MIDIExporter(lane_pitches=(40, 41))
        assert exporter.pitch_for_lane(3) == 41

    def test_velocity_floor(self):
        assert MIDIExporter().velocity_for(0.0, NoteType.STANDARD) == 1

    def test_empty_map(self, tmp_path):
        path = tmp_path / "empty.mid"
        MIDIExporter().export(NoteMap(source_id="empty"), str(path))
        assert path.exists()
