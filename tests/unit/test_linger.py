"""
Linger scheduler + ambient context.

The orchestrator is real (scripted provider); time comes from a fake clock.
"""
import asyncio
import json

import httpx

from config import get_linger_config, set_linger_config
from core.autonomous.linger import (
    AmbientContext,
    LingerScheduler,
    LLMSummarizer,
    build_linger_directive,
    keep_recent_summary,
)
from core.models import LingerConfig, MessageRole, Phase, TurnSource
from tests.conftest import Gate


class FakeClock:
    def __init__(self, now=100.0):
        self.now = now

    def __call__(self):
        return self.now


def _enabled(interval=20.0):
    return lambda: LingerConfig(enabled=True, behavior="keep my todos tidy", min_interval_sec=interval)


def test_directive_text():
    text = build_linger_directive("be helpful", "", "we need milk")

    assert text.startswith("Linger mode is enabled. Behavior directive from user: be helpful")
    assert "Recent audio summary: (none)" in text
    assert "Latest utterance: we need milk" in text
    assert text.endswith("If no action is valuable, reply briefly or remain silent.")


def test_disabled_config_drops_tick(provider, make_orchestrator):
    orch = make_orchestrator(provider)
    scheduler = LingerScheduler(orch, config_reader=lambda: LingerConfig(enabled=False))

    assert scheduler.on_ambient_update("summary", "hello") is None
    assert orch.session.messages == ()
    assert provider.submitted == []


def test_first_tick_fires_and_appends_directive(provider, make_orchestrator):
    async def scenario():
        orch = make_orchestrator(provider)
        scheduler = LingerScheduler(orch, config_reader=_enabled(), clock=FakeClock())
        task = scheduler.on_ambient_update("groceries", "we are out of milk")
        assert orch.active_source == TurnSource.LINGER
        return orch, scheduler, await task

    orch, scheduler, outcome = asyncio.run(scenario())

    assert outcome.source == TurnSource.LINGER
    assert scheduler.last_fire == 100.0
    first = orch.session.messages[0]
    assert first.role == MessageRole.USER
    assert "Behavior directive from user: keep my todos tidy" in first.content
    assert "Latest utterance: we are out of milk" in first.content
    assert orch.event_log.texts(TurnSource.LINGER)[-1] == "stream_complete"


def test_interval_gate_uses_last_fire(provider, make_orchestrator):
    async def scenario():
        clock = FakeClock()
        orch = make_orchestrator(provider)
        scheduler = LingerScheduler(orch, config_reader=_enabled(interval=20), clock=clock)

        await scheduler.on_ambient_update("", "one")
        clock.now = 105.0
        too_soon = scheduler.on_ambient_update("", "two")
        clock.now = 125.0
        later = scheduler.on_ambient_update("", "three")
        await later
        return scheduler, too_soon

    scheduler, too_soon = asyncio.run(scenario())

    assert too_soon is None
    assert scheduler.last_fire == 125.0
    # two fired turns, three phases each
    assert len(provider.submitted) == 6


def test_busy_orchestrator_drops_tick(provider, make_orchestrator):
    gate = Gate()
    provider.script(Phase.PLANNING, gate, "chat plan")

    async def scenario():
        orch = make_orchestrator(provider)
        scheduler = LingerScheduler(orch, config_reader=_enabled(), clock=FakeClock())
        chat = orch.start_turn([], TurnSource.CHAT)
        await asyncio.sleep(0)
        dropped = scheduler.on_ambient_update("", "while chatting")
        gate.event.set()
        await chat
        dropped_fired = scheduler.last_fire
        dropped_messages = orch.session.messages

        accepted = scheduler.on_ambient_update("", "after the chat")
        assert accepted is not None
        outcome = await accepted
        return orch, scheduler, dropped, dropped_fired, dropped_messages, outcome

    orch, scheduler, dropped, dropped_fired, dropped_messages, outcome = asyncio.run(scenario())

    assert dropped is None
    assert dropped_fired is None
    assert all("Linger mode" not in m.content for m in dropped_messages)

    # next qualifying tick after the chat turn's post-processing
    assert scheduler.last_fire == 100.0
    assert outcome.source == TurnSource.LINGER
    assert "Latest utterance: after the chat" in orch.session.messages[-2].content
    assert orch.event_log.texts(TurnSource.LINGER)[-1] == "stream_complete"


def test_config_is_reread_on_every_tick(provider, make_orchestrator):
    async def scenario():
        orch = make_orchestrator(provider)
        scheduler = LingerScheduler(orch, clock=FakeClock())
        off = scheduler.on_ambient_update("", "first")
        set_linger_config(enabled=True, behavior="note reminders", min_interval_sec=0)
        on = scheduler.on_ambient_update("", "second")
        await on
        return off, on

    off, on = asyncio.run(scenario())

    assert off is None
    assert on is not None
    assert get_linger_config().behavior == "note reminders"


def test_keep_recent_summary_caps_length():
    summary = asyncio.run(keep_recent_summary("a" * 1500, "tail"))

    assert len(summary) == 1200
    assert summary.endswith(" tail")


def test_ambient_push_updates_and_notifies_listeners():
    seen = []

    async def summarize(previous, utterance):
        return f"{previous}|{utterance}"

    ambient = AmbientContext(summarizer=summarize)
    ambient.subscribe(lambda summary, utterance: seen.append((summary, utterance)) or "fired")

    results = asyncio.run(ambient.push("  hello there  "))
    blank = asyncio.run(ambient.push("   "))

    assert results == ["fired"]
    assert blank == []
    assert ambient.summary == "|hello there"
    assert ambient.utterance == "hello there"
    assert seen == [("|hello there", "hello there")]


def test_llm_summarizer_returns_model_summary():
    seen = []

    def handler(request):
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"choices": [{"message": {"content": " Milk is out. "}}]})

    summarizer = LLMSummarizer(base_url="https://llm.test/v1", api_key="k", model="gpt-4o-mini",
                               transport=httpx.MockTransport(handler))

    summary = asyncio.run(summarizer("", "we are out of milk"))

    assert summary == "Milk is out."
    assert seen[0]["model"] == "gpt-4o-mini"
    assert "Previous summary:\n(none)" in seen[0]["messages"][1]["content"]
    assert "New utterance:\nwe are out of milk" in seen[0]["messages"][1]["content"]


def test_llm_summarizer_keeps_previous_on_error():
    summarizer = LLMSummarizer(base_url="https://llm.test/v1", api_key="", model="m",
                               transport=httpx.MockTransport(lambda request: httpx.Response(500)))

    assert asyncio.run(summarizer("kettle on", "hmm")) == "kettle on"
