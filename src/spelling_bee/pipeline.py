"""Weekly content generation: sentences, story and recorded audio for a word list."""
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from spelling_bee.blobs import audio_path
from spelling_bee.db import delete_record, get_record, list_keys, put_record
from spelling_bee.models import (
    ASSET_KINDS, STORY_KEY, AssetFailed, AssetOk, AssetResult, SpellingList,
    asset_key, clip_text,
)
from spelling_bee.week import week_id

logger = logging.getLogger(__name__)

WEEKS = "weeks"

TEXT_DONE = 30
AUDIO_START = 30
AUDIO_SPAN = 60
SAVE_START = 95

ProgressCallback = Callable[[float, str], None]


class PipelineError(RuntimeError):
    """A generation run failed and nothing was saved."""

    def __init__(self, stage: str, message: str):
        super().__init__(f"Generation failed during {stage}: {message}")
        self.stage = stage


def week_key(group: str, week: str) -> str:
    return f"{week}_{group}"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def load_spelling_list(db_path: str, group: str, now: datetime | None = None) -> SpellingList | None:
    """This week's list for ``group``; lists from earlier weeks count as missing."""
    current = week_id(now or _utcnow())
    record = get_record(db_path, WEEKS, week_key(group, current))
    if not record or record.get("week_id") != current:
        return None
    return SpellingList.from_record(record)


def save_spelling_list(db_path: str, spelling_list: SpellingList) -> None:
    put_record(db_path, WEEKS, week_key(spelling_list.group, spelling_list.week_id),
               spelling_list.to_record())


def list_ready_groups(db_path: str, groups: list[str], now: datetime | None = None) -> dict[str, SpellingList]:
    ready = {}
    for group in groups:
        found = load_spelling_list(db_path, group, now)
        if found:
            ready[group] = found
    return ready


def cleanup_old_lists(db_path: str, current_week: str) -> list[str]:
    """Delete stored lists from every week but the current one. Returns the deleted keys."""
    keep = set(list_keys(db_path, WEEKS, f"{current_week}_"))
    removed = [key for key in list_keys(db_path, WEEKS) if key not in keep]
    for key in removed:
        delete_record(db_path, WEEKS, key)
    if removed:
        logger.info("Removed %d old spelling lists", len(removed))
    return removed


class ContentPipeline:
    """Turns a word list into a persisted SpellingList.

    Collaborators:
        text_generator: ``generate(words) -> GeneratedText``
        synthesizer: ``synthesize(text) -> bytes``
        blob_store: ``put(path, data) -> uri``

    A failed clip is recorded and skipped. Only text generation and the final
    save abort the run.
    """

    def __init__(
        self,
        db_path: str,
        blob_store,
        text_generator,
        synthesizer,
        on_progress: Optional[ProgressCallback] = None,
        clock: Callable[[], datetime] = _utcnow,
    ):
        self.db_path = db_path
        self.blob_store = blob_store
        self.text_generator = text_generator
        self.synthesizer = synthesizer
        self.on_progress = on_progress
        self.clock = clock
        self._percent = 0.0

    def _report(self, percent: float, label: str) -> None:
        self._percent = max(self._percent, min(percent, 100.0))
        if self.on_progress:
            self.on_progress(self._percent, label)

    def _record_clip(self, week: str, group: str, key: str, text: str) -> AssetResult:
        try:
            audio = self.synthesizer.synthesize(text)
            uri = self.blob_store.put(audio_path(week, group, key), audio)
        except Exception as e:
            logger.warning("Audio failed for %s: %s", key, e)
            return AssetFailed(str(e) or type(e).__name__)
        return AssetOk(uri)

    def generate(self, group: str, words: list[str]) -> SpellingList:
        if not words:
            raise ValueError("Cannot generate content for an empty word list")
        self._percent = 0.0
        week = week_id(self.clock())
        logger.info("Generating %d words for %s, week %s", len(words), group, week)

        self._report(10, "Creating funny sentences and a silly story...")
        try:
            text = self.text_generator.generate(words)
        except Exception as e:
            raise PipelineError("text generation", str(e)) from e
        self._report(TEXT_DONE, "Recording all the audio...")

        results: dict[str, AssetResult] = {}
        total_steps = len(words) * len(ASSET_KINDS) + 1
        done = 0
        for word in words:
            for kind in ASSET_KINDS:
                key = asset_key(kind, word)
                results[key] = self._record_clip(week, group, key, clip_text(kind, word, text.sentences))
                done += 1
                self._report(AUDIO_START + done / total_steps * AUDIO_SPAN, f'Recording: "{word}"...')

        self._report(AUDIO_START + done / total_steps * AUDIO_SPAN, "Recording the silly story...")
        results[STORY_KEY] = self._record_clip(week, group, STORY_KEY, text.story)
        done += 1
        self._report(AUDIO_START + done / total_steps * AUDIO_SPAN, "Recording the silly story...")

        spelling_list = SpellingList.from_results(
            group, week, words, text, results, created_at=self.clock().isoformat(),
        )
        if spelling_list.failed_assets:
            logger.warning("%d of %d clips failed for %s", len(spelling_list.failed_assets),
                           total_steps, group)

        self._report(SAVE_START, "Saving everything...")
        try:
            save_spelling_list(self.db_path, spelling_list)
        except Exception as e:
            raise PipelineError("saving", str(e)) from e
        self._report(100, "Done!")
        return spelling_list
