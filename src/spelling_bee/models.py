"""Data classes for spelling lists, generated assets and practice records."""
from dataclasses import dataclass, field, asdict
from typing import Optional, Union

ASSET_KINDS = ("word", "sentence", "repeat", "spelling")
STORY_KEY = "story"


def asset_key(kind: str, word: str) -> str:
    if kind not in ASSET_KINDS:
        raise ValueError(f"Unknown asset kind: {kind}")
    return f"{kind}_{word}"


def spelt_out(word: str) -> str:
    letters = ", ".join(word)
    return f"{word} is spelt: {letters}. {word}."


def clip_text(kind: str, word: str, sentences: dict[str, str]) -> str:
    """The utterance recorded for one per-word clip."""
    if kind == "word":
        return f"The word is: {word}."
    if kind == "sentence":
        return sentences.get(word) or f"{word} is this week's spelling word."
    if kind == "repeat":
        return f"{word}."
    if kind == "spelling":
        return spelt_out(word)
    raise ValueError(f"Unknown asset kind: {kind}")


@dataclass(frozen=True)
class AssetOk:
    uri: str


@dataclass(frozen=True)
class AssetFailed:
    reason: str


AssetResult = Union[AssetOk, AssetFailed]


@dataclass
class GeneratedText:
    sentences: dict[str, str]
    story: str


@dataclass
class SpellingList:
    group: str
    week_id: str
    words: list[str]
    sentences: dict[str, str] = field(default_factory=dict)
    story: str = ""
    audio_assets: dict[str, str] = field(default_factory=dict)
    failed_assets: dict[str, str] = field(default_factory=dict)
    created_at: Optional[str] = None

    @classmethod
    def from_results(cls, group: str, week_id: str, words: list[str], text: GeneratedText,
                     results: dict[str, AssetResult], created_at: str) -> "SpellingList":
        """Fold per-asset outcomes into the URI map and the failure map."""
        audio = {k: r.uri for k, r in results.items() if isinstance(r, AssetOk)}
        failed = {k: r.reason for k, r in results.items() if isinstance(r, AssetFailed)}
        return cls(
            group=group, week_id=week_id, words=list(words),
            sentences=dict(text.sentences), story=text.story,
            audio_assets=audio, failed_assets=failed, created_at=created_at,
        )

    def audio_uri(self, key: str) -> Optional[str]:
        return self.audio_assets.get(key)

    def to_record(self) -> dict:
        return asdict(self)

    @classmethod
    def from_record(cls, record: dict) -> "SpellingList":
        return cls(
            group=record["group"],
            week_id=record["week_id"],
            words=list(record.get("words", [])),
            sentences=dict(record.get("sentences", {})),
            story=record.get("story", ""),
            audio_assets=dict(record.get("audio_assets", {})),
            failed_assets=dict(record.get("failed_assets", {})),
            created_at=record.get("created_at"),
        )


@dataclass
class ChildPractice:
    attempts: int = 0
    last_practice_at: Optional[str] = None
    last_score: Optional[int] = None
    last_total: Optional[int] = None


@dataclass
class PracticeRecord:
    group: str
    week_id: str
    children: dict[str, ChildPractice] = field(default_factory=dict)

    def to_record(self) -> dict:
        return asdict(self)

    @classmethod
    def from_record(cls, record: dict) -> "PracticeRecord":
        return cls(
            group=record["group"],
            week_id=record["week_id"],
            children={
                name: ChildPractice(**info)
                for name, info in record.get("children", {}).items()
            },
        )
