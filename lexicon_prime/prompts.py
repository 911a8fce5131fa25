SYSTEM_PROMPT = """
You are the content engine of a cinematic vocabulary trainer.
You answer with a single JSON object and nothing else.
"""

SESSION_SCHEMA = """
{{
  "topic": "string",
  "fullText": "A paragraph that uses every target word",
  "words": [{{
    "word": "string",
    "phonetic": "string",
    "definition": "string",
    "sarcasticDefinition": "string",
    "origin": "string",
    "contextSentence": "string",
    "moodColor": "#HEX",
    "fontVibe": "SANS | SERIF | MONO",
    "nativeContexts": [{{"label": "label", "description": "desc", "sentence": "sentence", "connotation": "pos/neg", "significance": "why"}}],
    "synonyms": [{{"word": "word", "definition": "def"}}],
    "antonyms": [{{"word": "word", "definition": "def"}}],
    "visualPrompt": "Detailed AI image prompt",
    "quiz": [{{"question": "q", "options": ["a", "b"], "answer": "a", "explanation": "why"}}]
  }}]
}}
"""

PROMPT_TOPIC_SESSION = """
Build a vocabulary session around the topic below.

1.  **`topic`**: A short title for the session.
2.  **`fullText`**: Write one vivid paragraph (80-120 words) about the topic that naturally uses every target word.
3.  **`words`**: Choose 3-5 advanced but useful English words that fit the topic. For each word:
    *   `definition`: one clear sentence for a learner.
    *   `sarcasticDefinition`: a dry, ironic alternative definition (one sentence).
    *   `origin`: a short etymology.
    *   `nativeContexts`: exactly 4 entries showing how native speakers use the word in different settings.
    *   `synonyms` and `antonyms`: at least one each.
    *   `visualPrompt`: a ≤ 30 word prompt for an image generator; no text, captions or logos in the image.
    *   `quiz`: 1-2 questions with 2 options each; `answer` must equal one of the options.
    *   `moodColor`: a neon HEX color that matches the word's mood.

Return exactly this shape:
{schema}

Topic: {input_text}
"""

PROMPT_TEXT_SESSION = """
Build a vocabulary session from the reader's own text below.

1.  **`topic`**: A short title describing the text.
2.  **`fullText`**: Return the text itself, trimmed to at most 150 words, keeping every target word.
3.  **`words`**: {word_rule} For each word fill every field of the schema:
    *   `nativeContexts`: exactly 4 entries.
    *   `synonyms` and `antonyms`: at least one each.
    *   `visualPrompt`: a ≤ 30 word prompt for an image generator; no text in the image.
    *   `quiz`: 1-2 questions with 2 options each; `answer` must equal one of the options.

Return exactly this shape:
{schema}

Text:
{input_text}
"""

AUTO_WORD_RULE = "Pick the 3-5 words from the text that a learner would most benefit from."
MANUAL_WORD_RULE = "Use exactly these words, in this order: {word_list}."

MASTER_PROTOCOL = """I am using the Lexicon Prime Learning Engine. Please generate a VALID JSON object for a vocabulary session.

RULES:
1. Topic: {topic}
2. Words: Generate 3-5 high-level words.
3. Aesthetic: Neon HEX colors, "SERIF" or "MONO" fontVibes.
4. Content: Sarcastic definitions, deep etymology, 2-option quizzes.
5. Format: Match the following schema exactly (No markdown, just raw JSON):
{schema}"""


def _schema() -> str:
    return SESSION_SCHEMA.format().strip()


def build_session_prompt(input_text: str, mode, manual_words) -> str:
    """Build the user prompt for a TOPIC or TEXT session."""
    if getattr(mode, "value", mode) == "TEXT":
        if manual_words:
            word_rule = MANUAL_WORD_RULE.format(word_list=", ".join(manual_words))
        else:
            word_rule = AUTO_WORD_RULE
        return PROMPT_TEXT_SESSION.format(
            word_rule=word_rule, schema=_schema(), input_text=input_text.strip()
        )
    return PROMPT_TOPIC_SESSION.format(schema=_schema(), input_text=input_text.strip())


def master_protocol(topic: str = "[INSERT TOPIC]") -> str:
    """The copyable prompt that makes any chat model emit importable session JSON."""
    return MASTER_PROTOCOL.format(topic=topic, schema=_schema())
