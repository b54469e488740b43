import asyncio
from datetime import datetime, timezone

import pytest

from spelling_bee.audio import AudioManager, PlaybackError
from spelling_bee.models import GeneratedText, SpellingList


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_spelling.db")
    return db_path


# Friday 6 June 2025, inside the week opened on Thursday 5 June
FIXED_NOW = datetime(2025, 6, 6, 9, 0, tzinfo=timezone.utc)
FIXED_WEEK = "2025-06-05"


class FakeTextGenerator:
    def __init__(self, sentences=None, story="Once upon a time.", error=None):
        self.sentences = sentences
        self.story = story
        self.error = error
        self.calls = []

    def generate(self, words):
        self.calls.append(list(words))
        if self.error:
            raise self.error
        sentences = self.sentences if self.sentences is not None else {w: f"A silly {w}." for w in words}
        return GeneratedText(sentences=sentences, story=self.story)


class FakeSynthesizer:
    def __init__(self, fail_texts=()):
        self.fail_texts = set(fail_texts)
        self.texts = []

    def synthesize(self, text):
        self.texts.append(text)
        if text in self.fail_texts:
            raise RuntimeError(f"tts failed for {text!r}")
        return text.encode()


class FakeBlobStore:
    def __init__(self, fail_paths=()):
        self.fail_paths = set(fail_paths)
        self.blobs = {}

    def put(self, path, data):
        if path in self.fail_paths:
            raise OSError(f"upload failed for {path}")
        self.blobs[path] = data
        return f"mem://{path}"


class FakePlayer:
    def __init__(self, fail_uris=(), on_play=None):
        self.fail_uris = set(fail_uris)
        self.on_play = on_play
        self.played = []
        self.stops = 0

    async def play(self, uri):
        self.played.append(uri)
        if self.on_play:
            self.on_play(uri)
        await asyncio.sleep(0)
        if uri in self.fail_uris:
            raise PlaybackError(f"cannot play {uri}")

    def stop(self):
        self.stops += 1


class FakeSpeaker:
    def __init__(self, error=None):
        self.error = error
        self.spoken = []

    async def speak(self, text, rate=1.0):
        self.spoken.append((text, rate))
        await asyncio.sleep(0)
        if self.error:
            raise self.error

    def stop(self):
        pass


class FakeSleep:
    """Records requested pauses; ``hook(seconds, call_number)`` runs before each resumes."""

    def __init__(self, hook=None):
        self.hook = hook
        self.calls = []

    async def __call__(self, seconds):
        self.calls.append(seconds)
        if self.hook:
            self.hook(seconds, len(self.calls))
        await asyncio.sleep(0)


def make_spelling_list(words, with_audio=True, story="The cat sat on the mat."):
    audio = {}
    if with_audio:
        for w in words:
            for kind in ("word", "sentence", "repeat", "spelling"):
                audio[f"{kind}_{w}"] = f"mem://{kind}_{w}"
        audio["story"] = "mem://story"
    return SpellingList(
        group="PENS", week_id=FIXED_WEEK, words=list(words),
        sentences={w: f"A silly {w}." for w in words}, story=story, audio_assets=audio,
        created_at=FIXED_NOW.isoformat(),
    )


@pytest.fixture
def player():
    return FakePlayer()


@pytest.fixture
def speaker():
    return FakeSpeaker()


@pytest.fixture
def audio(player, speaker):
    return AudioManager(player, speaker)
