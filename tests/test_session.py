import asyncio
import logging

import pytest

from conftest import FakePlayer, FakeSleep, make_spelling_list
from spelling_bee.audio import AudioManager
from spelling_bee.config import ConfigError
from spelling_bee.scoring import PERFECT_MESSAGE
from spelling_bee.session import (
    CLIP_GAP_SECONDS, TICK_SECONDS, Event, InvalidTransition, Phase, TestSession, next_phase,
)

WORDS = ["cat", "dog", "hen"]


def make_session(audio, words=WORDS, pause_seconds=5, sleep=None, with_audio=True, **kwargs):
    return TestSession(
        make_spelling_list(words, with_audio=with_audio),
        audio,
        pause_seconds=pause_seconds,
        sleep=sleep or FakeSleep(),
        **kwargs,
    )


def to_checking(session):
    assert asyncio.run(session.run_dictation()) is True
    assert session.phase is Phase.CHECKING


def to_message(session, score):
    to_checking(session)
    session.finish_checking()
    session.set_score(score)
    return session.submit_score()


def test_dictation_plays_every_word_in_order(audio, player):
    sleep = FakeSleep()
    session = make_session(audio, sleep=sleep)
    to_checking(session)
    assert player.played == [
        f"mem://{kind}_{w}" for w in WORDS for kind in ("word", "sentence", "repeat")
    ]
    per_word = [CLIP_GAP_SECONDS, CLIP_GAP_SECONDS] + [TICK_SECONDS] * 5
    assert sleep.calls == per_word * len(WORDS)
    assert session.current_index == 2
    assert session.time_left == 0


def test_countdown_ticks_down_to_zero(audio):
    seen = []
    session = make_session(audio, words=["cat"], on_change=lambda s: seen.append((s.phase, s.time_left)))
    to_checking(session)
    writing = [t for phase, t in seen if phase is Phase.WRITING]
    assert writing[-6:] == [5, 4, 3, 2, 1, 0]


def test_cancel_while_writing_stops_everything(audio, player):
    def hook(seconds, n):
        # second countdown tick of the first word
        if n == 4:
            session.cancel()

    sleep = FakeSleep(hook)
    session = make_session(audio, sleep=sleep)
    assert asyncio.run(session.run_dictation()) is False
    assert session.cancelled is True
    assert session.phase is Phase.WRITING
    assert session.time_left == 4
    assert len(sleep.calls) == 4
    assert player.played == ["mem://word_cat", "mem://sentence_cat", "mem://repeat_cat"]
    assert player.stops >= 1


def test_cancelled_session_plays_nothing_more(audio, player):
    session = make_session(audio)
    to_checking(session)
    session.cancel()
    played = list(player.played)
    asyncio.run(session.reveal(0))
    assert player.played == played


def test_skip_during_announcing_goes_to_checking(speaker):
    player = FakePlayer(on_play=lambda uri: session.skip_to_checking() if uri == "mem://sentence_cat" else None)
    audio = AudioManager(player, speaker)
    sleep = FakeSleep()
    session = make_session(audio, sleep=sleep)
    assert asyncio.run(session.run_dictation()) is False
    assert session.phase is Phase.CHECKING
    assert session.time_left == 0
    assert player.played == ["mem://word_cat", "mem://sentence_cat"]
    assert sleep.calls == [CLIP_GAP_SECONDS]
    assert speaker.spoken == []


def test_skip_during_writing(audio):
    def hook(seconds, n):
        if n == 3:
            session.skip_to_checking()

    session = make_session(audio, sleep=FakeSleep(hook))
    assert asyncio.run(session.run_dictation()) is False
    assert session.phase is Phase.CHECKING
    assert session.time_left == 0
    assert session.current_index == 0


def test_skip_not_allowed_when_checking(audio):
    session = make_session(audio)
    to_checking(session)
    with pytest.raises(InvalidTransition):
        session.skip_to_checking()


def test_reveal_all_plays_in_list_order(audio, player):
    session = make_session(audio)
    to_checking(session)
    asyncio.run(session.reveal(2))
    asyncio.run(session.reveal(0))
    player.played.clear()
    assert asyncio.run(session.reveal_all()) is True
    assert session.revealed == {0, 1, 2}
    assert player.played == ["mem://spelling_cat", "mem://spelling_dog", "mem://spelling_hen"]


def test_reveal_is_idempotent(audio, player):
    session = make_session(audio)
    to_checking(session)
    asyncio.run(session.reveal(1))
    asyncio.run(session.reveal(1))
    assert session.revealed == {1}
    assert player.played[-2:] == ["mem://spelling_dog", "mem://spelling_dog"]


def test_reveal_out_of_range(audio):
    session = make_session(audio)
    to_checking(session)
    with pytest.raises(IndexError):
        asyncio.run(session.reveal(3))


def test_reveal_before_checking_rejected(audio):
    session = make_session(audio)
    with pytest.raises(InvalidTransition):
        asyncio.run(session.reveal(0))


def test_missing_audio_is_spoken(player, speaker):
    session = make_session(AudioManager(player, speaker), words=["cat"], with_audio=False)
    to_checking(session)
    assert player.played == []
    assert [text for text, _ in speaker.spoken] == [
        "The word is: cat.", "A silly cat.", "cat.",
    ]


def test_failed_clip_falls_back_to_speech(speaker):
    player = FakePlayer(fail_uris={"mem://sentence_cat"})
    session = make_session(AudioManager(player, speaker), words=["cat"])
    to_checking(session)
    assert speaker.spoken == [("A silly cat.", 1.0)]
    assert player.played == ["mem://word_cat", "mem://sentence_cat", "mem://repeat_cat"]


def test_score_is_clamped(audio):
    session = make_session(audio)
    to_checking(session)
    session.finish_checking()
    assert session.set_score(10) == 3
    assert session.adjust_score(-1) == 2
    assert session.set_score(-4) == 0
    assert session.adjust_score(-1) == 0


def test_set_score_outside_scoring_rejected(audio):
    session = make_session(audio)
    with pytest.raises(InvalidTransition):
        session.set_score(1)


def test_perfect_score_celebrates(audio):
    celebrations = []
    session = make_session(audio, on_celebrate=celebrations.append)
    result = to_message(session, 3)
    assert session.phase is Phase.MESSAGE
    assert result.message == PERFECT_MESSAGE
    assert session.celebrate is True
    assert celebrations == [4.0]


def test_low_score_does_not_celebrate(audio):
    celebrations = []
    session = make_session(audio, on_celebrate=celebrations.append)
    result = to_message(session, 1)
    assert result.celebrate is False
    assert celebrations == []


def test_story_plays_stored_clip(audio, player):
    session = make_session(audio)
    to_message(session, 2)
    asyncio.run(session.play_story())
    assert session.phase is Phase.STORY
    assert session.story_playing is False
    assert player.played[-1] == "mem://story"
    session.continue_to_naming()
    assert session.phase is Phase.NAMING


def test_story_without_audio_is_spoken_slower(player, speaker):
    session = make_session(AudioManager(player, speaker), words=["cat"], with_audio=False)
    to_message(session, 1)
    asyncio.run(session.play_story())
    assert speaker.spoken[-1] == ("The cat sat on the mat.", 0.9)


def test_story_can_be_replayed(audio, player):
    session = make_session(audio)
    to_message(session, 2)
    asyncio.run(session.play_story())
    asyncio.run(session.play_story())
    assert player.played[-2:] == ["mem://story", "mem://story"]


def test_skip_story(audio):
    session = make_session(audio)
    to_message(session, 2)
    session.continue_to_naming()
    assert session.phase is Phase.NAMING


def test_naming_records_practice(audio):
    calls = []
    session = make_session(audio, record_practice=lambda *args: calls.append(args))
    to_message(session, 2)
    session.continue_to_naming()
    session.submit_name("  Ada ")
    assert calls == [("Ada", 2, 3)]
    assert session.child_name == "Ada"
    assert session.phase is Phase.DONE


def test_naming_completes_when_recording_fails(audio, caplog):
    def broken(*args):
        raise RuntimeError("database is locked")

    session = make_session(audio, record_practice=broken)
    to_message(session, 2)
    session.continue_to_naming()
    with caplog.at_level(logging.ERROR):
        session.submit_name("Ada")
    assert session.phase is Phase.DONE
    assert "Failed to log practice" in caplog.text


def test_blank_name_rejected(audio):
    session = make_session(audio)
    to_message(session, 2)
    session.continue_to_naming()
    with pytest.raises(ValueError):
        session.submit_name("   ")
    assert session.phase is Phase.NAMING


def test_events_out_of_order_are_rejected(audio):
    session = make_session(audio)
    with pytest.raises(InvalidTransition):
        session.submit_score()
    with pytest.raises(InvalidTransition):
        session.finish_checking()
    with pytest.raises(InvalidTransition):
        session.submit_name("Ada")
    assert session.phase is Phase.READY


def test_transition_table():
    assert next_phase(Phase.READY, Event.START) is Phase.ANNOUNCING
    assert next_phase(Phase.WRITING, Event.NEXT_WORD) is Phase.ANNOUNCING
    with pytest.raises(InvalidTransition):
        next_phase(Phase.DONE, Event.START)


@pytest.mark.parametrize("seconds", [4, 31])
def test_pause_must_be_in_range(audio, seconds):
    with pytest.raises(ConfigError):
        make_session(audio, pause_seconds=seconds)


def test_empty_list_rejected(audio):
    with pytest.raises(ValueError):
        make_session(audio, words=[])


def test_reveal_all_stops_when_playback_stopped(speaker):
    player = FakePlayer(on_play=lambda uri: session.stop_playback() if uri == "mem://spelling_dog" else None)
    session = make_session(AudioManager(player, speaker), words=["cat", "dog", "hen", "pig"])
    to_checking(session)
    player.played.clear()
    assert asyncio.run(session.reveal_all()) is False
    assert player.played == ["mem://spelling_cat", "mem://spelling_dog"]
    assert session.revealed == {0, 1, 2, 3}
    assert session.phase is Phase.CHECKING


def test_pause_can_be_changed_before_start(audio):
    sleep = FakeSleep()
    session = make_session(audio, words=["cat"], sleep=sleep)
    assert session.set_pause_seconds(8) == 8
    to_checking(session)
    assert sleep.calls.count(TICK_SECONDS) == 8


def test_pause_fixed_once_started(audio):
    session = make_session(audio)
    to_checking(session)
    with pytest.raises(InvalidTransition):
        session.set_pause_seconds(8)


def test_pause_change_is_validated(audio):
    session = make_session(audio)
    with pytest.raises(ConfigError):
        session.set_pause_seconds(45)
    assert session.pause_seconds == 5
