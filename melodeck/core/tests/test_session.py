"""Tests for the session request surface and its signals."""

import logging
import subprocess
from pathlib import Path

import pytest

from melodeck.core.defaults import P4G, P5
from melodeck.core.file_io import read_document, write_document
from melodeck.core.log_history import LogHistoryHandler
from melodeck.core.save_queue import SaveQueue
from melodeck.core.session import MusicSession

MANIFEST = {
    "games": [
        {"name": P4G, "encodedFormat": ".raw", "supportedFiletypes": [".wav", ".raw"], "flag": "p4g"},
        {"name": P5, "encodedFormat": ".adx", "supportedFiletypes": [".wav"], "flag": "p5"},
    ]
}


class RecordingRunner:
    """Stands in for ``subprocess.run`` and snapshots the music data it was given."""

    def __init__(self, returncode: int = 0) -> None:
        self.returncode = returncode
        self.calls: list[list[str]] = []
        self.music_data_at_run: list[dict] = []

    def __call__(self, argv, **kwargs):
        self.calls.append(list(argv))
        if "-i" in argv:
            self.music_data_at_run.append(read_document(argv[argv.index("-i") + 1]))
        return subprocess.CompletedProcess(argv, self.returncode, "", "")


@pytest.fixture
def history(paths) -> LogHistoryHandler:
    handler = LogHistoryHandler(paths.log_path)
    logger = logging.getLogger("melodeck")
    logger.addHandler(handler)
    yield handler
    logger.removeHandler(handler)


@pytest.fixture
def runner() -> RecordingRunner:
    return RecordingRunner()


@pytest.fixture
def session(qt_app, paths, timers, history, runner, default_music_data) -> MusicSession:
    write_document(
        paths.dependencies_dir / "phos-music-converter" / "release-build" / "game-support.json",
        MANIFEST,
    )
    queue = SaveQueue(timer_factory=timers, log_writer=history.write)
    session = MusicSession(paths, save_queue=queue, log_history=history, runner=runner)
    assert session.start() is True
    return session


@pytest.fixture
def p4g_session(session) -> MusicSession:
    session.change_config(None, "current_game", P4G)
    return session


class TestStart:
    def test_start_writes_both_configs(self, session, paths) -> None:
        assert read_document(paths.app_config_path)["settings"]["showDebugMessages"] is False
        assert read_document(paths.games_config_path)["selectedGame"] is None
        assert session.music_data() is None
        assert paths.loop_data_dir.is_dir()

    def test_reads(self, session) -> None:
        assert session.game_theme() == "defaultDark"
        assert "Royal Red" in session.app_themes()
        assert session.app_config()["settings"]["showDebugMessages"] is False
        assert session.replacement_filetypes() is None


class TestChangeConfig:
    def test_selecting_game_notifies(self, session) -> None:
        received = []
        session.config_changed.connect(lambda payload: received.append(payload))

        configs = session.change_config(None, "current_game", P4G)

        assert configs["gamesConfig"]["selectedGame"] == P4G
        settings = received[0]["updatedSettings"]
        assert settings["theme"] == "defaultDark"
        assert len(settings["musicData"]["songs"]) == 3

    def test_reselecting_same_game_is_silent(self, p4g_session) -> None:
        received = []
        p4g_session.config_changed.connect(lambda payload: received.append(payload))

        p4g_session.change_config(None, "current_game", P4G)

        assert received == []

    def test_theme_change_sends_css(self, p4g_session) -> None:
        received = []
        p4g_session.config_changed.connect(lambda payload: received.append(payload))

        configs = p4g_session.change_config(0, "game_theme", "Royal Red")

        assert received == [{"updatedSettings": {"theme": "royal"}}]
        assert configs["gamesConfig"]["games"][0]["theme"] == "Royal Red"

    def test_invalid_values_leave_config_alone(self, p4g_session) -> None:
        before = p4g_session.games_config()

        assert p4g_session.change_config(0, "game_theme", "Hot Pink")["gamesConfig"] == before
        assert p4g_session.change_config(0, "volume", 11)["gamesConfig"] == before
        assert p4g_session.change_config(99, "game_directory", "/x")["gamesConfig"] == before
        assert p4g_session.change_config(None, "current_game", "Persona 6")["gamesConfig"] == before

    def test_missing_value_is_a_no_op(self, p4g_session) -> None:
        before = p4g_session.games_config()
        assert p4g_session.change_config(0, "output_directory")["gamesConfig"] == before

    def test_show_debug_changes_history_level(self, session, history) -> None:
        configs = session.change_config(None, "show_debug", True)

        assert configs["appConfig"]["settings"]["showDebugMessages"] is True
        assert history.level == logging.DEBUG

        session.change_config(None, "show_debug", False)
        assert history.level == logging.INFO

    def test_music_data_path_change_notifies(self, p4g_session, tmp_path: Path) -> None:
        other = write_document(tmp_path / "other.json", {"game": P4G, "songs": []})
        received = []
        p4g_session.config_changed.connect(lambda payload: received.append(payload))

        p4g_session.change_config(None, "music_data", str(other))

        assert received == [{"updatedSettings": {"musicData": {"game": P4G, "songs": []}}}]


class TestSongRequests:
    def test_replacement_emits_music_data(self, p4g_session, tmp_path: Path) -> None:
        received = []
        p4g_session.music_data_changed.connect(lambda payload: received.append(payload))
        song_file = tmp_path / "reach.wav"

        song = p4g_session.set_song_replacement("1", song_file)

        assert song["replacementFilePath"] == str(song_file)
        assert song["isEnabled"] is True
        assert received[0]["updatedMusicData"]["songs"][1]["replacementFilePath"] == str(song_file)

    def test_unsupported_extension_is_refused(self, p4g_session, tmp_path: Path) -> None:
        assert p4g_session.set_song_replacement("1", tmp_path / "song.mp3") is None
        assert p4g_session.music_data()["songs"][1]["replacementFilePath"] is None

    def test_unknown_song(self, p4g_session, tmp_path: Path) -> None:
        assert p4g_session.set_song_replacement("42", tmp_path / "a.wav") is None
        assert p4g_session.remove_song_replacement("42") is False

    def test_requests_without_music_data(self, session, tmp_path: Path) -> None:
        assert session.set_song_replacement("0", tmp_path / "a.wav") is None
        assert session.set_song_loop("0", 1, 2) is False
        assert session.save_preset(tmp_path / "p.songs") is False

    def test_remove_replacement(self, p4g_session, tmp_path: Path) -> None:
        p4g_session.set_song_replacement("0", tmp_path / "a.wav")

        assert p4g_session.remove_song_replacement("0") is True

        song = p4g_session.music_data()["songs"][0]
        assert song["replacementFilePath"] is None
        assert song["isEnabled"] is False

    def test_edits_are_saved_after_the_delay(self, p4g_session, paths, timers, tmp_path: Path) -> None:
        p4g_session.set_song_replacement("0", tmp_path / "a.wav")
        p4g_session.set_song_replacement("1", tmp_path / "b.wav")

        timers.fire_all()

        saved = read_document(paths.current_music_data_path(P4G))
        assert [s["isEnabled"] for s in saved["songs"]] == [True, True, False]

    def test_loop_change_queues_loop_record(self, p4g_session, paths, timers, tmp_path: Path) -> None:
        song_file = tmp_path / "a.wav"
        p4g_session.set_song_replacement("0", song_file)

        assert p4g_session.set_song_loop("0", 1000, 2000) is True

        assert p4g_session.music_data()["songs"][0]["loopEndSample"] == 2000
        assert paths.loop_data_path(song_file) in p4g_session.save_queue.pending_paths()
        timers.fire_all()
        assert read_document(paths.loop_data_path(song_file)) == {
            "settings": {"loopstart": 1000, "loopend": 2000},
        }

    def test_invalid_loop_is_refused(self, p4g_session, tmp_path: Path) -> None:
        p4g_session.set_song_replacement("0", tmp_path / "a.wav")

        assert p4g_session.set_song_loop("0", -1, 2000) is False
        assert p4g_session.set_song_loop("1", 1, 2) is False

    def test_batch_loop_writes_beside_song(self, session, tmp_path: Path) -> None:
        song_file = tmp_path / "batch" / "track.raw"

        assert session.set_song_loop(str(song_file), 5, 6, is_batch=True) is True
        assert read_document(tmp_path / "batch" / "track.raw.p4g") == {
            "settings": {"loopstart": 5, "loopend": 6},
        }


class TestPresetRequests:
    def test_preset_for_other_game_is_refused(self, p4g_session) -> None:
        received = []
        p4g_session.music_data_changed.connect(lambda payload: received.append(payload))

        loaded = p4g_session.load_preset({"game": P5, "type": "song-pack", "songs": []})

        assert loaded is False
        assert received == []

    def test_invalid_preset_is_refused(self, p4g_session) -> None:
        assert p4g_session.load_preset("nonsense") is False

    def test_load_preset_file_with_clear_first(self, p4g_session, tmp_path: Path) -> None:
        p4g_session.set_song_replacement("0", tmp_path / "a.wav")
        preset_path = write_document(tmp_path / "pack" / "Pack.songs", {
            "game": P4G, "name": "Pack", "type": "song-pack",
            "songs": [{"name": "New", "replacementFilePath": "new.raw", "outputFilePath": "bgm/02.raw"}],
        })

        assert p4g_session.load_preset_file(preset_path, clear_first=True) is True

        songs = p4g_session.music_data()["songs"]
        assert songs[0]["isEnabled"] is False
        assert songs[1]["replacementFilePath"] == str(tmp_path / "pack" / "songs" / "new.raw")
        assert songs[1]["name"] == "New"

    def test_unreadable_preset_file(self, p4g_session, tmp_path: Path) -> None:
        broken = tmp_path / "broken.songs"
        broken.write_text("{", encoding="utf-8")
        assert p4g_session.load_preset_file(broken) is False
        assert p4g_session.load_preset_file(tmp_path / "missing.songs") is False

    def test_default_preset_resets(self, p4g_session, tmp_path: Path) -> None:
        p4g_session.set_song_replacement("0", tmp_path / "a.wav")

        assert p4g_session.load_preset("default") is True
        assert p4g_session.music_data()["songs"][0]["replacementFilePath"] is None

    def test_save_preset(self, p4g_session, tmp_path: Path) -> None:
        assert p4g_session.save_preset(tmp_path / "Mine.songs") is True
        document = read_document(tmp_path / "Mine.songs")
        assert document["name"] == "Mine"
        assert len(document["songs"]) == 3

    def test_export_song_pack_runs_converter_first(
        self, p4g_session, runner, timers, tmp_path: Path
    ) -> None:
        p4g_session.set_song_replacement("0", tmp_path / "a.wav")
        target = tmp_path / "export" / "Pack.songs"

        assert p4g_session.export_song_pack(target) is True

        argv = runner.calls[0]
        assert argv[1:4] == ["export", "-g", "p4g"]
        assert argv[argv.index("-o") + 1] == str(tmp_path / "export" / "songs")
        assert runner.music_data_at_run[0]["songs"][0]["isEnabled"] is True
        assert read_document(target)["songs"][0]["replacementFilePath"] == "a.raw"

    def test_batch_convert(self, p4g_session, runner, tmp_path: Path) -> None:
        assert p4g_session.batch_convert(tmp_path / "batch") is True
        assert runner.calls[0][1:] == ["batch", "-g", "p4g", "-f", str(tmp_path / "batch")]


class TestBuild:
    def test_build_flushes_then_runs_converter(self, p4g_session, paths, runner, tmp_path: Path) -> None:
        p4g_session.set_song_replacement("1", tmp_path / "b.wav")

        assert p4g_session.build() is True

        argv = runner.calls[0]
        assert argv[1:] == [
            "build", "-g", "p4g",
            "-i", str(paths.current_music_data_path(P4G)),
            "-o", str(paths.game_build_dir(P4G)),
        ]
        assert runner.music_data_at_run[0]["songs"][1]["isEnabled"] is True
        assert paths.game_build_dir(P4G).is_dir()
        assert len(p4g_session.save_queue) == 0

    def test_build_uses_output_directory_and_flags(self, p4g_session, runner, tmp_path: Path) -> None:
        p4g_session.change_config(None, "output_directory", str(tmp_path / "out"))
        p4g_session.change_config(None, "performance_mode", True)

        assert p4g_session.build() is True

        argv = runner.calls[0]
        assert argv[argv.index("-o") + 1] == str(tmp_path / "out")
        assert argv[-1] == "-l"

    def test_build_without_game_fails(self, session, runner) -> None:
        assert session.build() is False
        assert runner.calls == []

    def test_converter_failure_is_reported(self, p4g_session, runner) -> None:
        runner.returncode = 1
        assert p4g_session.build() is False


class TestShutdown:
    def test_shutdown_writes_pending_files_and_log(self, p4g_session, paths, tmp_path: Path) -> None:
        p4g_session.set_song_replacement("2", tmp_path / "c.wav")

        p4g_session.shutdown()

        saved = read_document(paths.current_music_data_path(P4G))
        assert saved["songs"][2]["isEnabled"] is True
        assert paths.log_path.is_file()
        assert "Replacing" in paths.log_path.read_text(encoding="utf-8")
