"""Read model for the seven exploration pages of a word.

Each page shows a fixed slice of a ``WordEntry``:

    0      headword, phonetic, definition, origin
    1      artwork (when loaded) and the sarcastic definition
    2, 3   native contexts 0 and 1 as label / description / significance
    4, 5   native contexts 2 and 3 as sentence / significance
    6      first synonym and first antonym

Missing content is reported as ``None``; nothing here raises for a sparse entry.
"""

from typing import List, Optional

from pydantic import BaseModel

from .models import NativeContext, WordEntry, WordPair

PAGE_COUNT = 7
LAST_PAGE = PAGE_COUNT - 1
PRACTICAL_LABEL = "PRACTICAL_LOGIC"


class PageContent(BaseModel):
    """What a single page displays. Fields not used by the page stay ``None``."""

    page: int
    headword: str
    phonetic: Optional[str] = None
    definition: Optional[str] = None
    origin: Optional[str] = None
    image_url: Optional[str] = None
    sarcastic_definition: Optional[str] = None
    label: Optional[str] = None
    headline: Optional[str] = None
    significance: Optional[str] = None
    synonym: Optional[WordPair] = None
    antonym: Optional[WordPair] = None


def _nth(items: List, index: int):
    return items[index] if 0 <= index < len(items) else None


def page_content(entry: WordEntry, page: int, artifact: Optional[str] = None) -> PageContent:
    """Build the content slice for ``page`` of ``entry``."""
    if not 0 <= page < PAGE_COUNT:
        raise ValueError(f"page must be in [0, {LAST_PAGE}], got {page}")

    content = PageContent(page=page, headword=entry.word)

    if page == 0:
        content.phonetic = entry.phonetic
        content.definition = entry.definition
        content.origin = entry.origin
    elif page == 1:
        content.image_url = artifact
        content.sarcastic_definition = entry.sarcastic_definition
    elif page in (2, 3):
        context: Optional[NativeContext] = _nth(entry.native_contexts, page - 2)
        if context:
            content.label = context.label
            content.headline = context.description
            content.significance = context.significance
    elif page in (4, 5):
        context = _nth(entry.native_contexts, page - 2)
        content.label = PRACTICAL_LABEL
        if context:
            content.headline = context.sentence
            content.significance = context.significance
    else:
        content.synonym = _nth(entry.synonyms, 0)
        content.antonym = _nth(entry.antonyms, 0)

    return content


def progress_fraction(word_index: int, page: int, total_words: int) -> float:
    """Overall progress through the learning sequence, clamped to [0, 1]."""
    if total_words <= 0:
        return 0.0
    value = (word_index * PAGE_COUNT + page + 1) / (total_words * PAGE_COUNT)
    return max(0.0, min(1.0, value))
