"""Spelling test sessions.

A session dictates every word of a SpellingList (announce, sentence, repeat,
then a timed writing pause), lets the child check their answers, takes a
self-marked score, offers the story and finally records who practised.

Phases follow an explicit transition table. Long-running steps take a
CancellationToken and check it after every await; skipping ahead or
disposing of the session cancels the token and stops the audio.
"""
import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from spelling_bee.audio import AudioManager
from spelling_bee.config import SessionSettings
from spelling_bee.models import STORY_KEY, SpellingList, asset_key, clip_text
from spelling_bee.scoring import Encouragement, clamp_score, evaluate

logger = logging.getLogger(__name__)

CLIP_GAP_SECONDS = 0.5
REVEAL_GAP_SECONDS = 0.3
TICK_SECONDS = 1.0
CELEBRATION_SECONDS = 4.0
STORY_SPEECH_RATE = 0.9


class Phase(Enum):
    READY = "ready"
    ANNOUNCING = "announcing"
    WRITING = "writing"
    CHECKING = "checking"
    SCORING = "scoring"
    MESSAGE = "message"
    STORY = "story"
    NAMING = "naming"
    DONE = "done"


class Event(Enum):
    START = "start"
    ANNOUNCED = "announced"
    NEXT_WORD = "next_word"
    WORDS_DONE = "words_done"
    SKIP = "skip"
    CHECKED = "checked"
    SCORE_SUBMITTED = "score_submitted"
    PLAY_STORY = "play_story"
    SKIP_STORY = "skip_story"
    STORY_FINISHED = "story_finished"
    NAME_SUBMITTED = "name_submitted"


TRANSITIONS = {
    (Phase.READY, Event.START): Phase.ANNOUNCING,
    (Phase.ANNOUNCING, Event.ANNOUNCED): Phase.WRITING,
    (Phase.ANNOUNCING, Event.SKIP): Phase.CHECKING,
    (Phase.WRITING, Event.NEXT_WORD): Phase.ANNOUNCING,
    (Phase.WRITING, Event.WORDS_DONE): Phase.CHECKING,
    (Phase.WRITING, Event.SKIP): Phase.CHECKING,
    (Phase.CHECKING, Event.CHECKED): Phase.SCORING,
    (Phase.SCORING, Event.SCORE_SUBMITTED): Phase.MESSAGE,
    (Phase.MESSAGE, Event.PLAY_STORY): Phase.STORY,
    (Phase.MESSAGE, Event.SKIP_STORY): Phase.NAMING,
    (Phase.STORY, Event.STORY_FINISHED): Phase.NAMING,
    (Phase.NAMING, Event.NAME_SUBMITTED): Phase.DONE,
}


class InvalidTransition(RuntimeError):
    pass


class SessionCancelled(Exception):
    pass


def next_phase(phase: Phase, event: Event) -> Phase:
    try:
        return TRANSITIONS[(phase, event)]
    except KeyError:
        raise InvalidTransition(f"Cannot {event.value} while {phase.value}") from None


class CancellationToken:
    def __init__(self):
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def checkpoint(self) -> None:
        if self._cancelled:
            raise SessionCancelled()


class TestSession:
    """One run through a spelling list for one child.

    Args:
        spelling_list: the week's words, sentences, story and audio URIs.
        audio: AudioManager used for every clip.
        pause_seconds: writing time per word (5-30).
        record_practice: ``(child_name, score, total)`` callable, run once on
            naming. Its failures are logged, never raised.
        on_change: called with the session after every visible state change.
        on_celebrate: called with a duration when the score earns confetti.
        sleep: awaitable sleep, replaceable in tests.
    """

    __test__ = False

    def __init__(
        self,
        spelling_list: SpellingList,
        audio: AudioManager,
        pause_seconds: int = 10,
        record_practice: Optional[Callable[[str, int, int], None]] = None,
        on_change: Optional[Callable[["TestSession"], None]] = None,
        on_celebrate: Optional[Callable[[float], None]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        if not spelling_list.words:
            raise ValueError("A spelling test needs at least one word")
        self.spelling_list = spelling_list
        self.audio = audio
        self.pause_seconds = SessionSettings(pause_seconds).pause_seconds
        self.record_practice = record_practice
        self.on_change = on_change
        self.on_celebrate = on_celebrate
        self.sleep = sleep

        self.phase = Phase.READY
        self.current_index = 0
        self.time_left = 0
        self.score = 0
        self.revealed: set[int] = set()
        self.message = ""
        self.celebrate = False
        self.story_playing = False
        self.child_name: Optional[str] = None
        self._token = CancellationToken()
        self._disposed = False

    @property
    def words(self) -> list[str]:
        return self.spelling_list.words

    @property
    def total_words(self) -> int:
        return len(self.spelling_list.words)

    @property
    def current_word(self) -> str:
        return self.words[self.current_index]

    @property
    def cancelled(self) -> bool:
        return self._disposed

    def _notify(self) -> None:
        if self.on_change:
            self.on_change(self)

    def _fire(self, event: Event) -> None:
        new_phase = next_phase(self.phase, event)
        logger.debug("Session %s -> %s (%s)", self.phase.value, new_phase.value, event.value)
        self.phase = new_phase
        self._notify()

    def _require(self, *phases: Phase) -> None:
        if self.phase not in phases:
            raise InvalidTransition(
                f"Not allowed while {self.phase.value}; needs {', '.join(p.value for p in phases)}"
            )

    def _interrupt(self) -> None:
        """Cancel whatever is running and stop the audio, keeping the phase."""
        self._token.cancel()
        self.audio.stop()
        if not self._disposed:
            self._token = CancellationToken()

    async def _play_clip(self, kind: str, word: str, token: CancellationToken) -> None:
        token.checkpoint()
        uri = self.spelling_list.audio_uri(asset_key(kind, word))
        await self.audio.play(uri, clip_text(kind, word, self.spelling_list.sentences))
        token.checkpoint()

    async def _pause(self, seconds: float, token: CancellationToken) -> None:
        token.checkpoint()
        await self.sleep(seconds)
        token.checkpoint()

    def set_pause_seconds(self, seconds: int) -> int:
        """Change the writing time before the test starts."""
        self._require(Phase.READY)
        self.pause_seconds = SessionSettings(seconds).pause_seconds
        self._notify()
        return self.pause_seconds

    # -- dictation --

    async def announce(self, index: int, token: CancellationToken) -> None:
        word = self.words[index]
        await self._play_clip("word", word, token)
        await self._pause(CLIP_GAP_SECONDS, token)
        await self._play_clip("sentence", word, token)
        await self._pause(CLIP_GAP_SECONDS, token)
        await self._play_clip("repeat", word, token)

    async def count_down(self, token: CancellationToken) -> None:
        self.time_left = self.pause_seconds
        self._notify()
        while self.time_left > 0:
            await self._pause(TICK_SECONDS, token)
            self.time_left -= 1
            self._notify()

    async def run_dictation(self) -> bool:
        """Dictate every word. Returns False if stopped early."""
        token = self._token
        self._fire(Event.START)
        try:
            while True:
                await self.announce(self.current_index, token)
                self._fire(Event.ANNOUNCED)
                await self.count_down(token)
                if self.current_index + 1 >= self.total_words:
                    self._fire(Event.WORDS_DONE)
                    return True
                self.current_index += 1
                self._fire(Event.NEXT_WORD)
        except SessionCancelled:
            logger.debug("Dictation stopped at word %d of %d", self.current_index + 1, self.total_words)
            return False

    def skip_to_checking(self) -> None:
        next_phase(self.phase, Event.SKIP)
        self._interrupt()
        self.time_left = 0
        self._fire(Event.SKIP)

    def cancel(self) -> None:
        """Dispose of the session: nothing plays or ticks after this."""
        self._disposed = True
        self._interrupt()
        self._notify()

    # -- checking --

    async def reveal(self, index: int) -> None:
        self._require(Phase.CHECKING)
        if not 0 <= index < self.total_words:
            raise IndexError(f"No word at position {index}")
        self.revealed.add(index)
        self._notify()
        try:
            await self._play_clip("spelling", self.words[index], self._token)
        except SessionCancelled:
            pass

    async def reveal_all(self) -> bool:
        """Reveal every word and spell them out in list order."""
        self._require(Phase.CHECKING)
        self.revealed.update(range(self.total_words))
        self._notify()
        token = self._token
        try:
            for word in self.words:
                await self._play_clip("spelling", word, token)
                await self._pause(REVEAL_GAP_SECONDS, token)
        except SessionCancelled:
            return False
        return True

    def stop_playback(self) -> None:
        self._interrupt()

    def finish_checking(self) -> None:
        next_phase(self.phase, Event.CHECKED)
        self._interrupt()
        self._fire(Event.CHECKED)

    # -- scoring --

    def set_score(self, score: int) -> int:
        self._require(Phase.SCORING)
        self.score = clamp_score(score, self.total_words)
        self._notify()
        return self.score

    def adjust_score(self, delta: int) -> int:
        return self.set_score(self.score + delta)

    def submit_score(self) -> Encouragement:
        self._fire(Event.SCORE_SUBMITTED)
        result = evaluate(self.score, self.total_words)
        self.message = result.message
        self.celebrate = result.celebrate
        if result.celebrate and self.on_celebrate:
            self.on_celebrate(CELEBRATION_SECONDS)
        self._notify()
        return result

    # -- story --

    async def play_story(self) -> None:
        if self.phase is not Phase.STORY:
            self._fire(Event.PLAY_STORY)
        self.story_playing = True
        self._notify()
        try:
            await self.audio.play(
                self.spelling_list.audio_uri(STORY_KEY), self.spelling_list.story, rate=STORY_SPEECH_RATE,
            )
        finally:
            self.story_playing = False
            self._notify()

    def continue_to_naming(self) -> None:
        if self.phase is Phase.STORY:
            self._interrupt()
            self.story_playing = False
            self._fire(Event.STORY_FINISHED)
        else:
            self._fire(Event.SKIP_STORY)

    # -- naming --

    def submit_name(self, name: str) -> None:
        self._require(Phase.NAMING)
        name = name.strip()
        if not name:
            raise ValueError("A name is needed to log practice")
        self.child_name = name
        if self.record_practice:
            try:
                self.record_practice(name, self.score, self.total_words)
            except Exception:
                logger.exception("Failed to log practice for %s", name)
        self._fire(Event.NAME_SUBMITTED)
