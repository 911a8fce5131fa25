"""Tests for the session controller state machine."""

import asyncio
import json

import pytest

from lexicon_prime.config import CONNECTIVITY_ERROR_MESSAGE
from lexicon_prime.controller import TRANSITIONS, SessionController
from lexicon_prime.errors import ConnectivityFailure, ImportFormatError, InvalidTransitionError
from lexicon_prime.models import EntryMode, LearningSession, SessionStage
from lexicon_prime.pages import LAST_PAGE


class FakeGenerator:
    """Stands in for the generation service."""

    def __init__(self, session=None, error=None):
        self.session = session
        self.error = error
        self.calls = []
        self.gate = None

    async def __call__(self, input_text, mode, manual_words):
        self.calls.append((input_text, mode, manual_words))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return self.session


class PendingFetcher:
    """Artwork fetcher that never finishes unless released."""

    def __init__(self):
        self.prompts = []
        self.done = None

    async def __call__(self, prompt):
        self.prompts.append(prompt)
        if self.done is None:
            self.done = asyncio.Event()
        await self.done.wait()
        return f"img:{prompt}"


def test_every_stage_has_transitions():
    assert set(TRANSITIONS) == set(SessionStage)


def test_topic_session_scenario(session):
    """'volcano' with three words ends in the intro with three pending artwork requests."""
    generator = FakeGenerator(session=session)
    fetcher = PendingFetcher()

    async def scenario():
        controller = SessionController(generator=generator, fetcher=fetcher)
        stage = await controller.start_session("volcano", EntryMode.TOPIC)
        pending_now = controller.images.pending
        await asyncio.sleep(0)
        return controller, stage, pending_now

    controller, stage, pending_now = asyncio.run(scenario())

    assert stage is SessionStage.INTRO_CINEMATIC
    assert pending_now == 3
    assert generator.calls == [("volcano", EntryMode.TOPIC, [])]
    assert controller.state.session is session
    assert (controller.state.cursor.word_index, controller.state.cursor.page) == (0, 0)
    assert controller.state.error is None

    controller.finish_intro()
    assert controller.stage is SessionStage.PARAGRAPH_PREVIEW
    assert (controller.state.cursor.word_index, controller.state.cursor.page) == (0, 0)


def test_artwork_arrives_without_changing_stage(session):
    fetcher = PendingFetcher()

    async def scenario():
        controller = SessionController(generator=FakeGenerator(session=session), fetcher=fetcher)
        await controller.start_session("volcano", "TOPIC")
        controller.finish_intro()
        await asyncio.sleep(0)
        fetcher.done.set()
        await controller.images.join()
        return controller

    controller = asyncio.run(scenario())

    assert controller.stage is SessionStage.PARAGRAPH_PREVIEW
    assert controller.artifacts.snapshot() == {
        i: f"img:{entry.visual_prompt}" for i, entry in enumerate(session.words)
    }


def test_generation_failure_returns_to_idle():
    generator = FakeGenerator(error=ConnectivityFailure("timeout"))

    async def scenario():
        controller = SessionController(generator=generator, fetcher=PendingFetcher())
        stage = await controller.start_session("volcano", EntryMode.TOPIC)
        return controller, stage

    controller, stage = asyncio.run(scenario())

    assert stage is SessionStage.IDLE
    assert controller.state.session is None
    assert controller.state.error == CONNECTIVITY_ERROR_MESSAGE
    assert controller.images.pending == 0


def test_retry_after_failure_clears_error(session):
    generator = FakeGenerator(error=ConnectivityFailure("offline"))

    async def scenario():
        controller = SessionController(generator=generator, fetcher=PendingFetcher())
        await controller.start_session("volcano", EntryMode.TOPIC)
        generator.error = None
        generator.session = session
        await controller.start_session("volcano", EntryMode.TOPIC)
        return controller

    controller = asyncio.run(scenario())

    assert controller.stage is SessionStage.INTRO_CINEMATIC
    assert controller.state.error is None


def test_forge_mode_skips_generation():
    generator = FakeGenerator()
    controller = SessionController(generator=generator)

    stage = asyncio.run(controller.start_session("", EntryMode.FORGE))

    assert stage is SessionStage.FORGE_WIZARD
    assert generator.calls == []


def test_text_mode_requires_selection_step(session):
    generator = FakeGenerator(session=session)

    async def scenario():
        controller = SessionController(generator=generator, fetcher=PendingFetcher())
        first = await controller.start_session("Some long text about volcanoes.", EntryMode.TEXT)
        calls_after_first = len(generator.calls)
        second = await controller.start_session(
            "Some long text about volcanoes.", EntryMode.TEXT, ["magma", "caldera"]
        )
        return controller, first, calls_after_first, second

    controller, first, calls_after_first, second = asyncio.run(scenario())

    assert first is SessionStage.TEXT_SELECTION
    assert calls_after_first == 0
    assert second is SessionStage.INTRO_CINEMATIC
    assert generator.calls == [
        ("Some long text about volcanoes.", EntryMode.TEXT, ["magma", "caldera"])
    ]


def test_blank_input_is_ignored():
    generator = FakeGenerator()
    controller = SessionController(generator=generator)

    stage = asyncio.run(controller.start_session("   ", EntryMode.TOPIC))

    assert stage is SessionStage.IDLE
    assert generator.calls == []


def test_reset_during_generation_discards_result(session):
    generator = FakeGenerator(session=session)
    fetcher = PendingFetcher()

    async def scenario():
        generator.gate = asyncio.Event()
        controller = SessionController(generator=generator, fetcher=fetcher)
        task = asyncio.ensure_future(controller.start_session("volcano", EntryMode.TOPIC))
        await asyncio.sleep(0)
        assert controller.stage is SessionStage.GENERATING

        controller.reset_to_idle()
        generator.gate.set()
        await task
        return controller

    controller = asyncio.run(scenario())

    assert controller.stage is SessionStage.IDLE
    assert controller.state.session is None
    assert fetcher.prompts == []


def test_abort_during_generation_discards_failure():
    generator = FakeGenerator(error=ConnectivityFailure("late"))

    async def scenario():
        generator.gate = asyncio.Event()
        controller = SessionController(generator=generator)
        task = asyncio.ensure_future(controller.start_session("volcano", EntryMode.TOPIC))
        await asyncio.sleep(0)
        controller.abort()
        generator.gate.set()
        await task
        return controller

    controller = asyncio.run(scenario())

    assert controller.stage is SessionStage.IDLE
    assert controller.state.error is None


def test_reset_discards_late_artwork(session):
    fetcher = PendingFetcher()

    async def scenario():
        controller = SessionController(generator=FakeGenerator(session=session), fetcher=fetcher)
        await controller.start_session("volcano", EntryMode.TOPIC)
        await asyncio.sleep(0)
        stale = list(controller.images._in_flight)

        controller.reset_to_idle()
        fetcher.done.set()
        await asyncio.gather(*stale)
        return controller

    controller = asyncio.run(scenario())

    assert len(controller.artifacts) == 0
    assert controller.state.session is None


def test_replaced_session_never_receives_old_artwork(session, word_factory):
    fetcher = PendingFetcher()
    replacement = {"fullText": "Lava.", "words": [word_factory("lava", imageUrl="img:seeded")]}

    async def scenario():
        controller = SessionController(generator=FakeGenerator(session=session), fetcher=fetcher)
        await controller.start_session("volcano", EntryMode.TOPIC)
        await asyncio.sleep(0)
        stale = list(controller.images._in_flight)

        controller.reset_to_idle()
        controller.import_session(json.dumps(replacement))
        fetcher.done.set()
        await asyncio.gather(*stale)
        return controller

    controller = asyncio.run(scenario())

    assert controller.artifacts.snapshot() == {0: "img:seeded"}


def test_import_pre_populates_artwork_without_fetching(session_data, clock):
    session_data["words"][1]["imageUrl"] = "https://img.example/caldera.png"
    fetcher = PendingFetcher()
    controller = SessionController(fetcher=fetcher, clock=clock)

    imported = controller.import_session(json.dumps(session_data))

    assert [entry.word for entry in imported.words] == ["magma", "caldera", "pyroclastic"]
    assert controller.stage is SessionStage.INTRO_CINEMATIC
    assert controller.artifacts.snapshot() == {1: "https://img.example/caldera.png"}
    assert controller.images.pending == 0
    assert fetcher.prompts == []


def test_import_rejects_empty_words_without_state_change(session_json):
    controller = SessionController()
    controller.import_session(session_json)
    controller.finish_intro()
    before = controller.state.model_copy(deep=True)

    with pytest.raises(ImportFormatError):
        controller.import_session('{"fullText":"x","words":[]}')

    assert controller.stage is SessionStage.PARAGRAPH_PREVIEW
    assert controller.state == before


@pytest.mark.parametrize("raw", [
    "not json",
    "{\"words\": [{\"word\": \"lava\"}]}",
    "{\"fullText\": \"x\", \"words\": [{\"definition\": \"no headword\"}]}",
    "[]",
])
def test_import_rejects_malformed_data(raw):
    controller = SessionController()

    with pytest.raises(ImportFormatError):
        controller.import_session(raw)

    assert controller.stage is SessionStage.IDLE
    assert controller.state.session is None


def test_import_from_forge_wizard(session_json):
    controller = SessionController()
    asyncio.run(controller.start_session("", EntryMode.FORGE))

    controller.import_session(session_json)

    assert controller.stage is SessionStage.INTRO_CINEMATIC


def test_import_not_allowed_mid_session(session_json):
    controller = SessionController()
    controller.import_session(session_json)

    with pytest.raises(InvalidTransitionError):
        controller.import_session(session_json)
    assert controller.stage is SessionStage.INTRO_CINEMATIC


def test_import_not_allowed_while_generating(session, session_json):
    generator = FakeGenerator(session=session)
    fetcher = PendingFetcher()

    async def scenario():
        generator.gate = asyncio.Event()
        controller = SessionController(generator=generator, fetcher=fetcher)
        task = asyncio.ensure_future(controller.start_session("volcano", EntryMode.TOPIC))
        await asyncio.sleep(0)

        with pytest.raises(InvalidTransitionError):
            controller.import_session(session_json)
        stage_during = controller.stage

        generator.gate.set()
        await task
        return controller, stage_during

    controller, stage_during = asyncio.run(scenario())

    assert stage_during is SessionStage.GENERATING
    assert controller.stage is SessionStage.INTRO_CINEMATIC
    assert controller.state.session is session


def test_cancelled_generation_returns_to_idle(session):
    generator = FakeGenerator(session=session)

    async def scenario():
        generator.gate = asyncio.Event()
        controller = SessionController(generator=generator)
        task = asyncio.ensure_future(controller.start_session("volcano", EntryMode.TOPIC))
        await asyncio.sleep(0)
        assert controller.stage is SessionStage.GENERATING

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task
        return controller

    controller = asyncio.run(scenario())

    assert controller.stage is SessionStage.IDLE
    assert controller.state.session is None
    assert len(controller.artifacts) == 0


def test_full_stage_walk(learning_controller, clock):
    controller = learning_controller

    for _ in range(3):
        assert controller.navigator.skip_word(1)
        clock.advance(400)
    assert controller.stage is SessionStage.PARAGRAPH_REVIEW

    controller.continue_from_review()
    assert controller.stage is SessionStage.FINAL_ASSESSMENT
    controller.complete_assessment()
    assert controller.stage is SessionStage.SESSION_COMPLETE


def test_replay_keeps_session_and_artwork(learning_controller, clock):
    controller = learning_controller
    controller.artifacts.set(0, "img-0")
    session = controller.state.session
    for _ in range(3):
        controller.navigator.skip_word(1)
        clock.advance(400)
    controller.continue_from_review()
    controller.complete_assessment()

    controller.replay_from_start()

    assert controller.stage is SessionStage.LEARNING_SEQUENCE
    assert controller.state.session is session
    assert controller.artifacts.get(0) == "img-0"
    cursor = controller.state.cursor
    assert (cursor.word_index, cursor.page, cursor.direction) == (0, 0, 0)


def test_replay_only_from_session_complete(learning_controller):
    with pytest.raises(InvalidTransitionError):
        learning_controller.replay_from_start()


def test_reset_clears_everything(learning_controller):
    controller = learning_controller
    controller.artifacts.set(0, "img-0")
    controller.navigator.paginate(1)

    controller.reset_to_idle()

    assert controller.stage is SessionStage.IDLE
    assert controller.state.session is None
    assert controller.state.error is None
    assert (controller.state.cursor.word_index, controller.state.cursor.page) == (0, 0)
    assert len(controller.artifacts) == 0
    assert not controller.navigator.locked


def test_retreat_lands_once_on_previous_word(learning_controller):
    controller = learning_controller
    controller.advance_from_word()
    controller.advance_from_word()

    controller.retreat_from_word()

    assert controller.state.cursor.word_index == 1
    assert controller.state.cursor.page == LAST_PAGE


def test_word_moves_outside_sequence_are_rejected(session_json):
    controller = SessionController()
    controller.import_session(session_json)

    with pytest.raises(InvalidTransitionError):
        controller.advance_from_word()
    with pytest.raises(InvalidTransitionError):
        controller.retreat_from_word()


def test_forge_wizard_to_custom_view_and_back():
    controller = SessionController()
    asyncio.run(controller.start_session("", EntryMode.FORGE))

    controller.complete_forge({"html": "<div id='app'></div>", "css": "", "js": "render()"})
    assert controller.stage is SessionStage.CUSTOM_VIEW
    assert controller.state.forge_layers.js == "render()"

    controller.abort()
    assert controller.stage is SessionStage.IDLE
    assert controller.state.forge_layers is None


def test_abort_from_text_selection_keeps_input():
    controller = SessionController()
    asyncio.run(controller.start_session("A paragraph.", EntryMode.TEXT))

    controller.abort()

    assert controller.stage is SessionStage.IDLE
    assert controller.state.input_text == "A paragraph."


def test_abort_not_allowed_once_session_is_running(learning_controller):
    with pytest.raises(InvalidTransitionError):
        learning_controller.abort()


def test_invalid_intent_does_not_change_stage():
    controller = SessionController()

    with pytest.raises(InvalidTransitionError):
        controller.continue_from_review()
    assert controller.stage is SessionStage.IDLE


def test_current_page_reads_artifact(learning_controller, clock):
    learning_controller.artifacts.set(0, "img-0")
    learning_controller.navigator.paginate(1)

    content = learning_controller.current_page()

    assert content.page == 1
    assert content.image_url == "img-0"
    assert content.sarcastic_definition == "Obviously, magma"


def test_export_round_trip(learning_controller):
    learning_controller.artifacts.set(2, "https://img.example/pyroclastic.png")

    exported = learning_controller.export_session()

    fresh = SessionController()
    imported = fresh.import_session(exported)
    original = learning_controller.state.session
    assert len(imported.words) == len(original.words)
    assert [e.word for e in imported.words] == [e.word for e in original.words]
    assert fresh.artifacts.snapshot() == {2: "https://img.example/pyroclastic.png"}
    assert fresh.images.pending == 0
    assert isinstance(imported, LearningSession)
