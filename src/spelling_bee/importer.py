"""Word list import from typed text, documents and photos."""
import json
import re
from pathlib import Path

IMAGE_TYPES = {".jpg": "image/jpeg", ".jpeg": "image/jpeg", ".png": "image/png"}

_SEPARATORS = re.compile(r"[,\n]+")


def parse_word_list(text: str) -> list[str]:
    """Split on commas and newlines, lowercase, drop blanks. Repeats are kept."""
    return [w.strip().lower() for w in _SEPARATORS.split(text) if w.strip()]


def read_file_content(file_path: str) -> str:
    path = Path(file_path)
    suffix = path.suffix.lower()

    if suffix in (".txt", ".md", ".csv"):
        return path.read_text()
    elif suffix == ".json":
        data = json.loads(path.read_text())
        if not isinstance(data, list):
            raise ValueError(f"{path.name} must hold a JSON array of words")
        return "\n".join(str(w) for w in data)
    elif suffix == ".pdf":
        from PyPDF2 import PdfReader
        reader = PdfReader(file_path)
        return "\n".join(page.extract_text() or "" for page in reader.pages)
    elif suffix == ".docx":
        from docx import Document
        doc = Document(file_path)
        return "\n".join(p.text for p in doc.paragraphs)
    else:
        # Try reading as plain text
        return path.read_text()


def read_word_file(file_path: str, extractor=None) -> list[str]:
    """Words from a file. Photos need an extractor with ``extract_words(bytes, media_type)``."""
    path = Path(file_path)
    media_type = IMAGE_TYPES.get(path.suffix.lower())
    if media_type:
        if extractor is None:
            raise ValueError("Reading words from a photo needs the vision extractor")
        words = extractor.extract_words(path.read_bytes(), media_type)
        return parse_word_list("\n".join(words))
    return parse_word_list(read_file_content(file_path))
