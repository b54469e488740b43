import asyncio
import io
import logging

import pytest
from rich.console import Console

from conftest import FakePlayer, FakeSpeaker
from spelling_bee.audio import AudioManager, CommandPlayer, ConsoleSpeaker, PlaybackError, uri_to_path


def test_play_stored_clip(audio, player, speaker):
    asyncio.run(audio.play("mem://word_cat", "The word is: cat."))
    assert player.played == ["mem://word_cat"]
    assert speaker.spoken == []


def test_missing_uri_is_spoken(audio, player, speaker):
    asyncio.run(audio.play(None, "The word is: cat.", rate=0.9))
    assert player.played == []
    assert speaker.spoken == [("The word is: cat.", 0.9)]


def test_failed_playback_falls_back_to_speech(speaker):
    manager = AudioManager(FakePlayer(fail_uris={"mem://word_cat"}), speaker)
    asyncio.run(manager.play("mem://word_cat", "The word is: cat."))
    assert speaker.spoken == [("The word is: cat.", 1.0)]


def test_stopped_playback_does_not_fall_back(speaker):
    player = FakePlayer(fail_uris={"mem://word_cat"}, on_play=lambda uri: manager.stop())
    manager = AudioManager(player, speaker)
    asyncio.run(manager.play("mem://word_cat", "The word is: cat."))
    assert speaker.spoken == []


def test_each_play_stops_the_previous_one(audio, player):
    asyncio.run(audio.play("mem://a", "a"))
    asyncio.run(audio.play("mem://b", "b"))
    assert player.stops == 2


def test_speech_failure_is_logged_not_raised(player, caplog):
    manager = AudioManager(player, FakeSpeaker(error=RuntimeError("no voice")))
    with caplog.at_level(logging.WARNING):
        asyncio.run(manager.play(None, "hello"))
    assert "Speech fallback failed" in caplog.text


def test_uri_to_path():
    assert uri_to_path("file:///tmp/audio/word%20cat.mp3") == "/tmp/audio/word cat.mp3"
    assert uri_to_path("/tmp/a.mp3") == "/tmp/a.mp3"
    assert uri_to_path("https://example.com/a.mp3") == "https://example.com/a.mp3"


def test_command_player_success(tmp_path):
    asyncio.run(CommandPlayer(("true",)).play((tmp_path / "a.mp3").as_uri()))


def test_command_player_failure(tmp_path):
    with pytest.raises(PlaybackError):
        asyncio.run(CommandPlayer(("false",)).play((tmp_path / "a.mp3").as_uri()))


def test_console_speaker_prints_text():
    out = io.StringIO()
    speaker = ConsoleSpeaker(Console(file=out), words_per_second=1000)
    asyncio.run(speaker.speak("The word is: [bold]cat[/bold]."))
    assert "The word is: [bold]cat[/bold]." in out.getvalue()


def test_console_speaker_stops_early():
    speaker = ConsoleSpeaker(Console(file=io.StringIO()), words_per_second=0.01)

    async def speak_then_stop():
        task = asyncio.create_task(speaker.speak("a long utterance"))
        await asyncio.sleep(0)
        speaker.stop()
        await asyncio.wait_for(task, timeout=1)

    asyncio.run(speak_then_stop())
