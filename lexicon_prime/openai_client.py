"""OpenAI API client with retry logic: session generation and artwork."""

import asyncio
import base64
import json
from typing import Any, Dict, List, Optional, Sequence

import openai
import structlog
from pydantic import ValidationError
from tenacity import (
    RetryError,
    retry,
    stop_after_attempt,
    wait_exponential_jitter,
    retry_if_exception_type,
)

from . import prompts
from .config import OPENAI_API_KEY, MODEL_NAME, IMAGE_SIZE, IMAGE_PROVIDER, TEMPERATURE
from .errors import ConnectivityFailure
from .models import EntryMode, LearningSession

VALID_IMAGE_SIZES = {"1024x1024", "1792x1024", "1024x1792"}

log = structlog.get_logger()

_client: Optional[openai.OpenAI] = None


def get_client() -> openai.OpenAI:
    """Return the shared OpenAI client, creating it on first use."""
    global _client
    if _client is None:
        _client = openai.OpenAI(api_key=OPENAI_API_KEY)
    return _client


def create_openai_retry_decorator():
    """Create a retry decorator for OpenAI API calls."""
    return retry(
        stop=stop_after_attempt(4),
        wait=wait_exponential_jitter(initial=2, max=30, jitter=1),
        retry=retry_if_exception_type((
            openai.RateLimitError,
            openai.APITimeoutError,
            openai.APIConnectionError,
            openai.InternalServerError,
        ))
    )


async def call_chat(model: str, messages: List[Dict[str, str]],
                    temperature: float = TEMPERATURE) -> str:
    """Call OpenAI Chat API with retry logic."""

    @create_openai_retry_decorator()
    async def _make_api_call():
        loop = asyncio.get_running_loop()
        response = await loop.run_in_executor(
            None,
            lambda: get_client().chat.completions.create(
                model=model,
                messages=messages,
                temperature=temperature,
                response_format={"type": "json_object"},
                timeout=90,
            )
        )
        return response.choices[0].message.content

    try:
        return await _make_api_call()
    except RetryError as e:
        actual_exception = e.last_attempt.exception()
        log.error("OpenAI API call failed after retries",
                  error=str(actual_exception),
                  model=model,
                  attempts=e.last_attempt.attempt_number)
        raise actual_exception
    except Exception as e:
        log.error("OpenAI API call failed", error=str(e), model=model)
        raise


def strip_code_fence(response: str) -> str:
    """Remove a markdown code fence the model may wrap around JSON."""
    response = response.strip()
    if response.startswith("```json"):
        response = response[7:]
    elif response.startswith("```"):
        response = response[3:]
    if response.endswith("```"):
        response = response[:-3]
    return response.strip()


async def call_chat_json(model: str, messages: List[Dict[str, str]]) -> Dict[str, Any]:
    """Call OpenAI Chat API and parse the JSON object it returns."""
    response = await call_chat(model, messages)
    cleaned = strip_code_fence(response or "")
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        log.error("Failed to parse JSON response", error=str(e), response=cleaned[:500])
        raise ValueError(f"Invalid JSON response: {cleaned[:200]}")


async def generate_session(input_text: str, mode: EntryMode,
                           manual_words: Optional[Sequence[str]] = None) -> LearningSession:
    """Ask the model for a complete learning session.

    Any failure (network, service error, malformed or incomplete response)
    is reported as a single ``ConnectivityFailure``.
    """
    prompt = prompts.build_session_prompt(input_text, mode, manual_words or [])
    messages = [
        {"role": "system", "content": prompts.SYSTEM_PROMPT},
        {"role": "user", "content": prompt},
    ]

    try:
        payload = await call_chat_json(MODEL_NAME, messages)
        session = LearningSession.model_validate(payload)
    except ValidationError as e:
        log.error("Generated session failed validation", errors=e.error_count())
        raise ConnectivityFailure("Generated session is incomplete") from e
    except Exception as e:
        log.error("Session generation failed", error=str(e), mode=mode.value)
        raise ConnectivityFailure(str(e)) from e

    log.info("Session generated", topic=session.topic, words=len(session.words))
    return session


async def generate_image(prompt: str, size: str = IMAGE_SIZE) -> bytes:
    """
    Generate an image with the model configured in ``IMAGE_PROVIDER`` and
    return the **decoded PNG bytes**.  The function retries on transient
    OpenAI errors via ``create_openai_retry_decorator``.
    """
    if size not in VALID_IMAGE_SIZES:
        raise ValueError(f"Unsupported image size {size!r}")

    @create_openai_retry_decorator()
    async def _make_image_call() -> bytes:
        loop = asyncio.get_running_loop()
        extra = {"response_format": "b64_json"} if IMAGE_PROVIDER == "dall-e-3" else {}
        response = await loop.run_in_executor(
            None,
            lambda: get_client().images.generate(
                model=IMAGE_PROVIDER,
                prompt=prompt,
                size=size,
                n=1,
                **extra,
            )
        )

        if not getattr(response, "data", None):
            raise RuntimeError(f"Image generation response missing data: {response}")

        b64_blob = getattr(response.data[0], "b64_json", None)
        if not b64_blob:
            raise RuntimeError("Image generation response missing b64_json")

        return base64.b64decode(b64_blob)

    try:
        return await _make_image_call()
    except RetryError as e:
        actual_exception = e.last_attempt.exception()
        log.error("Image generation failed after retries",
                  error=str(actual_exception), model=IMAGE_PROVIDER)
        raise actual_exception
