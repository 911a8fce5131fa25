"""Utility functions for session JSON import/export and word list files."""

from pathlib import Path
from typing import Dict, List, Mapping, Optional

import structlog
from pydantic import ValidationError

from .errors import ImportFormatError
from .models import LearningSession

log = structlog.get_logger()


def load_words_from_file(file_path: Path) -> List[str]:
    """Load a manual word list from a text file, one word per line."""
    if not file_path.exists():
        raise FileNotFoundError(f"Word list not found: {file_path}")

    words = []
    with open(file_path, 'r', encoding='utf-8') as f:
        for line in f:
            word = line.strip()
            if word and not word.startswith('#'):
                words.append(word)

    log.info("Loaded words from file", count=len(words), file=str(file_path))
    return words


def parse_session_json(raw) -> LearningSession:
    """Parse session JSON, raising ImportFormatError for anything unusable."""
    if not isinstance(raw, (str, bytes)):
        raise ImportFormatError(f"Expected JSON text, got {type(raw).__name__}")

    try:
        return LearningSession.model_validate_json(raw)
    except ValidationError as e:
        first = e.errors()[0] if e.error_count() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        log.warning("Rejected session import", errors=e.error_count(), location=location)
        raise ImportFormatError(f"{location or 'session'}: {first.get('msg', 'invalid data')}") from e


def embedded_artifacts(session: LearningSession) -> Dict[int, str]:
    """Image references carried inside an imported session, by word index."""
    return {
        index: entry.image_url
        for index, entry in enumerate(session.words)
        if entry.image_url
    }


def dump_session_json(session: LearningSession,
                      artifacts: Optional[Mapping[int, str]] = None) -> str:
    """Serialize a session, embedding loaded artwork as ``imageUrl``."""
    artifacts = artifacts or {}
    words = [
        entry.model_copy(update={"image_url": artifacts[index]}) if index in artifacts else entry
        for index, entry in enumerate(session.words)
    ]
    exported = session.model_copy(update={"words": words})
    return exported.model_dump_json(by_alias=True, exclude_none=True, indent=2)


def write_session_file(path: Path, session: LearningSession,
                       artifacts: Optional[Mapping[int, str]] = None):
    """Write a session JSON file."""
    path.write_text(dump_session_json(session, artifacts), encoding='utf-8')
    log.info("Session written", file=str(path), words=len(session.words),
             artwork=len(artifacts or {}))
