"""Data models for learning sessions and navigation state."""

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel


class SessionStage(str, Enum):
    """The single active top-level view."""

    IDLE = "IDLE"
    GENERATING = "GENERATING"
    TEXT_SELECTION = "TEXT_SELECTION"
    FORGE_WIZARD = "FORGE_WIZARD"
    CUSTOM_VIEW = "CUSTOM_VIEW"
    INTRO_CINEMATIC = "INTRO_CINEMATIC"
    PARAGRAPH_PREVIEW = "PARAGRAPH_PREVIEW"
    LEARNING_SEQUENCE = "LEARNING_SEQUENCE"
    PARAGRAPH_REVIEW = "PARAGRAPH_REVIEW"
    FINAL_ASSESSMENT = "FINAL_ASSESSMENT"
    SESSION_COMPLETE = "SESSION_COMPLETE"


class EntryMode(str, Enum):
    """How the user asked for a session."""

    TOPIC = "TOPIC"
    TEXT = "TEXT"
    FORGE = "FORGE"


class FontVibe(str, Enum):
    SANS = "SANS"
    SERIF = "SERIF"
    MONO = "MONO"


class ContentModel(BaseModel):
    """Base for generated content: camelCase on the wire, snake_case in Python."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
    )


class NativeContext(ContentModel):
    """How the word is used in one real-world setting."""

    label: Optional[str] = None
    description: Optional[str] = None
    sentence: Optional[str] = None
    connotation: Optional[str] = None
    significance: Optional[str] = None


class WordPair(ContentModel):
    """A synonym or antonym with its meaning."""

    word: Optional[str] = None
    definition: Optional[str] = None


class QuizItem(ContentModel):
    """A single assessment question about a word."""

    question: Optional[str] = None
    options: List[str] = Field(default_factory=list)
    answer: Optional[str] = None
    explanation: Optional[str] = None


class WordEntry(ContentModel):
    """Represents one vocabulary item of a session with all its generated content."""

    word: str
    phonetic: Optional[str] = None
    definition: Optional[str] = None
    sarcastic_definition: Optional[str] = None
    origin: Optional[str] = None
    context_sentence: Optional[str] = None
    mood_color: Optional[str] = None
    font_vibe: Optional[FontVibe] = None
    glow_intensity: Optional[float] = None
    glow_spread: Optional[float] = None
    native_contexts: List[NativeContext] = Field(default_factory=list)
    synonyms: List[WordPair] = Field(default_factory=list)
    antonyms: List[WordPair] = Field(default_factory=list)
    visual_prompt: Optional[str] = None
    quiz: List[QuizItem] = Field(default_factory=list)
    image_url: Optional[str] = None

    @field_validator("word")
    @classmethod
    def _headword_not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("headword must not be blank")
        return value

    @field_validator("font_vibe", mode="before")
    @classmethod
    def _known_font_vibe(cls, value):
        # Anything outside the closed set renders with the default font
        if isinstance(value, str) and value.upper() in FontVibe.__members__:
            return value.upper()
        if isinstance(value, FontVibe):
            return value
        return None


class LearningSession(ContentModel):
    """A generated vocabulary session: the source text and its target words."""

    topic: str = ""
    full_text: str
    words: List[WordEntry] = Field(min_length=1)


class ForgeLayers(BaseModel):
    """Custom fragment handed to the sandbox renderer."""

    html: str = ""
    css: str = ""
    js: str = ""


class NavigationCursor(BaseModel):
    """Position within the learning sequence."""

    word_index: int = Field(default=0, ge=0)
    page: int = Field(default=0, ge=0, le=6)
    direction: int = Field(default=0, ge=-1, le=1)
