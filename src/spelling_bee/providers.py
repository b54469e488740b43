"""Text, vision and speech providers backed by the Anthropic and OpenAI APIs."""
import base64
import json
import logging
import re

from anthropic import Anthropic, AnthropicError
from openai import OpenAI, OpenAIError

from spelling_bee.models import GeneratedText

logger = logging.getLogger(__name__)

CLAUDE_MODEL = "claude-sonnet-4-20250514"
TTS_MODEL = "gpt-4o-mini-tts"
TTS_FALLBACK_MODEL = "tts-1"
TTS_VOICE = "fable"
TTS_INSTRUCTIONS = (
    "Speak with a warm, friendly British English accent. You are reading spelling words "
    "and funny sentences to an 8-year-old child. Be clear, cheerful, and slightly playful."
)

CONTENT_PROMPT = """You are helping an 8-year-old British child practise their weekly spelling words. The words are: {words}

Please generate:
1. For EACH word, a silly and funny sentence using British English words and idioms. The sentences should make a child laugh — think daft scenarios, talking animals, silly mishaps, funny British expressions. Keep them short and punchy.
2. A short funny story (about 150-200 words) that uses ALL of the spelling words. It should be silly, age-appropriate, and entertaining. Use British English throughout (colour not color, mum not mom, etc.).

IMPORTANT: Respond ONLY with valid JSON in this exact format, no markdown backticks:
{{
  "sentences": {{
    "word1": "funny sentence here",
    "word2": "funny sentence here"
  }},
  "story": "the complete funny story here"
}}"""

VISION_PROMPT = (
    "This is a photo of a child's weekly spelling list from a British school. Please extract "
    "all the spelling words from this image. Return ONLY a JSON array of the words, nothing "
    'else. Example: ["word1", "word2", "word3"]. No markdown backticks.'
)

_FENCE = re.compile(r"```(?:json)?\s*")


class ProviderError(RuntimeError):
    pass


def parse_json_reply(text: str):
    """Parse a model reply as JSON, tolerating markdown code fences."""
    cleaned = _FENCE.sub("", text).strip()
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        raise ProviderError(f"Model reply was not valid JSON: {e}\nRaw text:\n{text}") from e


def _reply_text(response) -> str:
    if not response.content:
        raise ProviderError("Model reply was empty")
    return response.content[0].text.strip()


class ClaudeTextGenerator:
    """Funny sentences and a story for a word list."""

    def __init__(self, client: Anthropic, model: str = CLAUDE_MODEL):
        self.client = client
        self.model = model

    @classmethod
    def from_api_key(cls, api_key: str) -> "ClaudeTextGenerator":
        if not api_key:
            raise ProviderError("Anthropic API key is not set.")
        return cls(Anthropic(api_key=api_key))

    def generate(self, words: list[str]) -> GeneratedText:
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=4000,
                messages=[{"role": "user", "content": CONTENT_PROMPT.format(words=", ".join(words))}],
            )
        except AnthropicError as e:
            raise ProviderError(f"Claude API error: {e}") from e
        data = parse_json_reply(_reply_text(response))
        if not isinstance(data, dict) or not isinstance(data.get("story"), str):
            raise ProviderError("Claude reply is missing the story")
        sentences = data.get("sentences") or {}
        if not isinstance(sentences, dict):
            raise ProviderError("Claude reply sentences must be an object")
        return GeneratedText(
            sentences={str(k).lower(): str(v) for k, v in sentences.items()},
            story=data["story"],
        )


class ClaudeWordExtractor:
    """Reads a spelling list out of a photo."""

    def __init__(self, client: Anthropic, model: str = CLAUDE_MODEL):
        self.client = client
        self.model = model

    @classmethod
    def from_api_key(cls, api_key: str) -> "ClaudeWordExtractor":
        if not api_key:
            raise ProviderError("Anthropic API key is not set.")
        return cls(Anthropic(api_key=api_key))

    def extract_words(self, image_bytes: bytes, media_type: str = "image/jpeg") -> list[str]:
        image = {
            "type": "image",
            "source": {
                "type": "base64",
                "media_type": media_type,
                "data": base64.b64encode(image_bytes).decode("ascii"),
            },
        }
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=1000,
                messages=[{"role": "user", "content": [image, {"type": "text", "text": VISION_PROMPT}]}],
            )
        except AnthropicError as e:
            raise ProviderError(f"Claude Vision API error: {e}") from e
        words = parse_json_reply(_reply_text(response))
        if not isinstance(words, list):
            raise ProviderError("Claude Vision reply must be a JSON array")
        return [str(w).strip().lower() for w in words if str(w).strip()]


class OpenAISpeechSynthesizer:
    """MP3 speech, trying the instructable voice model before the baseline one."""

    def __init__(self, client: OpenAI, voice: str = TTS_VOICE):
        self.client = client
        self.voice = voice

    @classmethod
    def from_api_key(cls, api_key: str) -> "OpenAISpeechSynthesizer":
        if not api_key:
            raise ProviderError("OpenAI API key is not set.")
        return cls(OpenAI(api_key=api_key))

    def synthesize(self, text: str) -> bytes:
        try:
            response = self.client.audio.speech.create(
                model=TTS_MODEL,
                voice=self.voice,
                input=text,
                instructions=TTS_INSTRUCTIONS,
                response_format="mp3",
            )
        except OpenAIError as e:
            logger.info("%s failed (%s), retrying with %s", TTS_MODEL, e, TTS_FALLBACK_MODEL)
            try:
                response = self.client.audio.speech.create(
                    model=TTS_FALLBACK_MODEL,
                    voice=self.voice,
                    input=text,
                    response_format="mp3",
                )
            except OpenAIError as e2:
                raise ProviderError(f"OpenAI TTS error: {e2}") from e2
        return response.content
