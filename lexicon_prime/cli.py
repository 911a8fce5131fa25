"""Command-line interface for Lexicon Prime learning sessions."""

import asyncio
import logging
import re
from pathlib import Path
from typing import Optional

import click
import structlog

from .config import MODEL_NAME, IMAGE_PROVIDER, PAGE_LOCK_MS
from .controller import SessionController
from .errors import ImportFormatError, LexiconError
from .models import EntryMode, SessionStage
from .pages import LAST_PAGE, PAGE_COUNT, PageContent
from .prompts import master_protocol
from .utils import load_words_from_file

log = structlog.get_logger()


def configure_logging(verbose: bool = False):
    """JSON logs by default, readable console logs with --verbose."""
    if verbose:
        logging.basicConfig(level=logging.INFO)
    renderer = structlog.dev.ConsoleRenderer() if verbose else structlog.processors.JSONRenderer()
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            renderer,
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )


def slugify(text: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")
    return slug[:40] or "session"


@click.group()
def main():
    """Generate and play cinematic vocabulary sessions."""


@main.command()
@click.option("--topic", default="[INSERT TOPIC]", help="Topic to bake into the prompt")
def protocol(topic: str):
    """Print the prompt that makes any chat model emit importable session JSON."""
    click.echo(master_protocol(topic))


@main.command()
@click.argument("input_text")
@click.option(
    "--mode",
    type=click.Choice(["topic", "text"], case_sensitive=False),
    default="topic",
    help="Treat INPUT_TEXT as a topic or as a text to mine for words"
)
@click.option(
    "--words-file",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Manual word list for text mode (one word per line)"
)
@click.option(
    "-o", "--output",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Where to write the session JSON"
)
@click.option(
    "--wait-images/--no-wait-images",
    default=True,
    help="Wait for artwork and embed it in the output"
)
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def generate(input_text: str, mode: str, words_file: Optional[Path], output: Optional[Path],
             wait_images: bool, verbose: bool):
    """Generate a session for INPUT_TEXT and save it as JSON.

    In text mode INPUT_TEXT may also be the path of a text file.
    """
    configure_logging(verbose)
    entry_mode = EntryMode(mode.upper())
    if entry_mode is EntryMode.TEXT and Path(input_text).is_file():
        input_text = Path(input_text).read_text(encoding="utf-8")
    manual_words = load_words_from_file(words_file) if words_file else []

    log.info("Starting session generation", mode=entry_mode.value, model=MODEL_NAME,
             image_provider=IMAGE_PROVIDER, manual_words=len(manual_words))

    async def run_generation() -> SessionController:
        controller = SessionController()
        stage = await controller.start_session(input_text, entry_mode, manual_words)
        if stage is SessionStage.TEXT_SELECTION:
            await controller.start_session(input_text, entry_mode, manual_words)
        if controller.state.error:
            return controller
        if wait_images:
            await controller.images.join()
        return controller

    controller = asyncio.run(run_generation())
    if controller.state.error or controller.state.session is None:
        raise click.ClickException(controller.state.error or "Session generation failed")

    session = controller.state.session
    output = output or Path(f"{slugify(session.topic or input_text)}.json")
    output.write_text(controller.export_session(), encoding="utf-8")
    click.echo(f"Saved {len(session.words)} words ({len(controller.artifacts)} with artwork) to {output}")


def _key() -> str:
    key = click.getchar()
    if not key:
        raise click.Abort()
    return key


def render_page(content: PageContent, progress: float):
    """Print one exploration page."""
    click.echo()
    click.echo(click.style(f"[{content.page + 1}/{PAGE_COUNT}] {progress:.0%}", dim=True))

    if content.page == 0:
        click.echo(click.style(content.headword.upper(), bold=True))
        if content.phonetic:
            click.echo(content.phonetic)
        click.echo(f"Definition: {content.definition or '-'}")
        click.echo(f"Origin: {content.origin or '-'}")
    elif content.page == 1:
        click.echo(f"Artwork: {_describe_artifact(content.image_url)}")
        if content.sarcastic_definition:
            click.echo(click.style(f'"{content.sarcastic_definition}"', italic=True))
    elif content.page == LAST_PAGE:
        synonym, antonym = content.synonym, content.antonym
        click.echo(f"SYNONYM  {synonym.word if synonym else '-'}: {synonym.definition if synonym else ''}")
        click.echo(f"ANTONYM  {antonym.word if antonym else '-'}: {antonym.definition if antonym else ''}")
    else:
        if content.label:
            click.echo(click.style(content.label, bold=True))
        click.echo(f'"{content.headline}"' if content.headline else "-")
        if content.significance:
            click.echo(content.significance)


def _describe_artifact(reference: Optional[str]) -> str:
    if not reference:
        return "not available"
    if reference.startswith("data:"):
        return "generated image"
    return reference


def render_paragraph(controller: SessionController, title: str):
    session = controller.state.session
    text = session.full_text
    for entry in session.words:
        text = re.sub(rf"\b({re.escape(entry.word)})\b",
                      lambda m: click.style(m.group(1), bold=True, underline=True),
                      text, flags=re.IGNORECASE)
    click.echo()
    click.echo(click.style(title, bold=True))
    click.echo(text)


def run_assessment(controller: SessionController):
    """Ask every quiz question of the session. Returns (correct, asked)."""
    correct = asked = 0
    for entry in controller.state.session.words:
        for item in entry.quiz:
            if not item.question or not item.options:
                continue
            asked += 1
            click.echo()
            click.echo(click.style(f"{entry.word}: {item.question}", bold=True))
            for number, option in enumerate(item.options, 1):
                click.echo(f"  {number}. {option}")
            choice = click.prompt("Answer", type=click.IntRange(1, len(item.options)))
            if item.options[choice - 1] == item.answer:
                correct += 1
                click.echo("Correct.")
            else:
                click.echo(f"Not quite: {item.answer}.")
            if item.explanation:
                click.echo(item.explanation)
    return correct, asked


def play_session(controller: SessionController):
    """Drive a session through every stage until the user quits."""
    navigator = controller.navigator
    while True:
        stage = controller.stage

        if stage is SessionStage.INTRO_CINEMATIC:
            words = ", ".join(entry.word.upper() for entry in controller.state.session.words)
            click.echo(click.style(controller.state.session.topic or "LEXICON PRIME", bold=True))
            click.echo(words)
            click.echo("Press any key to begin.")
            _key()
            controller.finish_intro()

        elif stage is SessionStage.PARAGRAPH_PREVIEW:
            render_paragraph(controller, "PREVIEW")
            click.echo("Press any key to explore the words, q to quit.")
            if _key() == "q":
                return
            controller.continue_from_preview()

        elif stage is SessionStage.LEARNING_SEQUENCE:
            render_page(controller.current_page(), controller.progress)
            key = _key()
            if key == "q":
                return
            if key == "n":
                navigator.paginate(1)
            elif key == "p":
                navigator.paginate(-1)
            elif key == "N":
                navigator.skip_word(1)
            elif key == "P":
                navigator.skip_word(-1)

        elif stage is SessionStage.PARAGRAPH_REVIEW:
            render_paragraph(controller, "REVIEW")
            click.echo("Press any key for the final assessment.")
            _key()
            controller.continue_from_review()

        elif stage is SessionStage.FINAL_ASSESSMENT:
            correct, asked = run_assessment(controller)
            click.echo(f"Score: {correct}/{asked}")
            controller.complete_assessment()

        elif stage is SessionStage.SESSION_COMPLETE:
            click.echo(click.style("Session complete.", bold=True))
            click.echo("r: replay, n: new session, q: quit")
            key = _key()
            if key == "r":
                controller.replay_from_start()
            elif key in ("n", "q"):
                controller.reset_to_idle()
                return

        else:
            return


@main.command()
@click.argument("session_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--lock-ms", type=int, default=PAGE_LOCK_MS, help="Input lock after each page turn")
@click.option("--verbose", "-v", is_flag=True, help="Enable verbose logging")
def play(session_file: Path, lock_ms: int, verbose: bool):
    """Play a saved session JSON in the terminal.

    Keys: n/p next or previous page, N/P next or previous word, q quit.
    """
    configure_logging(verbose)
    controller = SessionController(lock_ms=lock_ms)
    try:
        controller.import_session(session_file.read_text(encoding="utf-8"))
    except ImportFormatError as e:
        raise click.ClickException(f"Invalid session file: {e}")

    try:
        play_session(controller)
    except LexiconError as e:
        log.error("Session aborted", error=str(e))
        raise click.ClickException(str(e))


if __name__ == "__main__":
    main()
