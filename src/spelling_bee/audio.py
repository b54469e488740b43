"""Audio playback with a single output channel and spoken fallback."""
import asyncio
import logging
from urllib.parse import urlparse
from urllib.request import url2pathname

from rich.console import Console
from rich.text import Text

logger = logging.getLogger(__name__)

DEFAULT_PLAYER_COMMAND = ("ffplay", "-nodisp", "-autoexit", "-loglevel", "quiet")


class PlaybackError(RuntimeError):
    pass


class AudioManager:
    """Owns the one "currently playing" slot.

    Collaborators:
        player: ``async play(uri)`` and ``stop()`` for stored clips
        speaker: ``async speak(text, rate)`` and ``stop()`` for on-device speech

    Every ``play`` stops whatever is active first. A stored clip that is
    missing or fails is spoken instead, unless playback was stopped in the
    meantime. Nothing raised by the player or speaker escapes.
    """

    def __init__(self, player, speaker):
        self.player = player
        self.speaker = speaker
        self._current = None

    def stop(self) -> None:
        self._current = None
        for channel in (self.player, self.speaker):
            try:
                channel.stop()
            except Exception:
                logger.exception("Failed to stop %s", type(channel).__name__)

    async def play(self, uri: str | None, fallback_text: str, rate: float = 1.0) -> None:
        self.stop()
        slot = object()
        self._current = slot
        try:
            if uri:
                try:
                    await self.player.play(uri)
                    return
                except Exception as e:
                    if self._current is not slot:
                        return
                    logger.info("Stored audio failed (%s), using speech instead", e)
            await self._speak(fallback_text, rate)
        finally:
            if self._current is slot:
                self._current = None

    async def _speak(self, text: str, rate: float) -> None:
        try:
            await self.speaker.speak(text, rate)
        except Exception as e:
            logger.warning("Speech fallback failed: %s", e)


def uri_to_path(uri: str) -> str:
    parsed = urlparse(uri)
    if parsed.scheme in ("", "file"):
        return url2pathname(parsed.path)
    return uri


class CommandPlayer:
    """Plays clips through an external command-line player."""

    def __init__(self, command: tuple[str, ...] = DEFAULT_PLAYER_COMMAND):
        self.command = command
        self._process = None

    async def play(self, uri: str) -> None:
        self._process = await asyncio.create_subprocess_exec(
            *self.command, uri_to_path(uri),
            stdout=asyncio.subprocess.DEVNULL, stderr=asyncio.subprocess.DEVNULL,
        )
        code = await self._process.wait()
        self._process = None
        if code != 0:
            raise PlaybackError(f"{self.command[0]} exited with {code}")

    def stop(self) -> None:
        if self._process and self._process.returncode is None:
            self._process.terminate()


class ConsoleSpeaker:
    """Stands in for on-device speech by printing the utterance."""

    def __init__(self, console: Console | None = None, words_per_second: float = 2.5):
        self.console = console or Console()
        self.words_per_second = words_per_second
        self._stopped = None

    async def speak(self, text: str, rate: float = 1.0) -> None:
        self._stopped = asyncio.Event()
        self.console.print(Text(f"🗣  {text}", style="magenta"))
        duration = len(text.split()) / (self.words_per_second * rate)
        try:
            await asyncio.wait_for(self._stopped.wait(), timeout=duration)
        except asyncio.TimeoutError:
            pass

    def stop(self) -> None:
        if self._stopped is not None:
            self._stopped.set()
