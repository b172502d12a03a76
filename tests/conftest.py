"""
Pytest configuration and fixtures for scriptwright tests.
"""
from collections import deque
from pathlib import Path
from typing import List

import pytest

from scriptwright.agents.events import AgentEvent, EventBus, EventType
from scriptwright.agents.narrative import NarrativeStateManager
from scriptwright.core.schemas import Episode
from scriptwright.infra.llm.completion import CompletionService, TextDelta, ToolCallRequest
from scriptwright.infra.storage.sql_db import SqlRecordStore

PROJECT_ID = 1


class EventRecorder:
    """Observer that keeps every event it receives."""

    def __init__(self):
        self.events: List[AgentEvent] = []

    def __call__(self, event: AgentEvent):
        self.events.append(event)

    def of_type(self, event_type: EventType) -> List[dict]:
        return [e.data for e in self.events if e.type == event_type]

    def sequence(self) -> List[str]:
        return [e.type.value for e in self.events]


class ScriptedCompletion(CompletionService):
    """
    Completion service that replays scripted turns.

    Each turn is a list of ("text", str) or ("tool", name, args) actions. Tools are
    executed through LangChain's ainvoke just like the real service does, so nested
    delegation consumes the next scripted turn.
    """

    def __init__(self, turns):
        self.turns = deque(turns)
        self.calls = []
        self.tool_results = []

    async def stream_turn(self, system_prompt, tools, messages, max_steps):
        self.calls.append({
            "system_prompt": system_prompt,
            "tools": [t.name for t in tools],
            "messages": list(messages),
            "max_steps": max_steps,
        })
        script = self.turns.popleft()
        by_name = {t.name: t for t in tools}
        for i, action in enumerate(script):
            if action[0] == "text":
                yield TextDelta(action[1])
            elif action[0] == "fail":
                raise action[1]
            else:
                _, name, args = action
                yield ToolCallRequest(name=name, args=args)
                result = await by_name[name].ainvoke(
                    {"name": name, "args": args, "id": f"call_{len(self.calls)}_{i}", "type": "tool_call"}
                )
                self.tool_results.append((name, result))


def make_episode(title: str = "Who dares?", characters=None, props=None, scenes=None, **overrides) -> Episode:
    data = {
        "episode_index": 99,
        "title": title,
        "chapter_range": [1, 2],
        "scenes": scenes if scenes is not None else [{"name": "Old courtyard", "description": "moss, dusk light"}],
        "characters": characters if characters is not None else [{"name": "Lin", "description": "young swordsman"}],
        "props": props if props is not None else [{"name": "Jade pendant", "description": "cracked green jade"}],
        "core_conflict": "Lin wants revenge vs the sect hides the truth",
        "outline": "Lin returns home and finds the gate burned.",
        "opening_hook": "A burning gate at night.",
        "key_events": ["return", "discovery", "betrayal", "vow"],
        "emotional_curve": "2->5->9->3",
        "visual_highlights": ["burning gate", "rain duel"],
        "ending_hook": "A masked figure watches from the roof.",
        "classic_quotes": ["I will not kneel."],
    }
    data.update(overrides)
    return Episode.model_validate(data)


@pytest.fixture
def make_ep():
    return make_episode


@pytest.fixture
def store(tmp_path: Path) -> SqlRecordStore:
    return SqlRecordStore(f"sqlite:///{tmp_path / 'content.db'}")


@pytest.fixture
def recorder() -> EventRecorder:
    return EventRecorder()


@pytest.fixture
def events(recorder) -> EventBus:
    bus = EventBus()
    bus.subscribe(recorder)
    return bus


@pytest.fixture
def narrative(store, events) -> NarrativeStateManager:
    return NarrativeStateManager(PROJECT_ID, store, events)


@pytest.fixture
def seeded_store(store):
    store.insert("project", [{
        "id": PROJECT_ID, "name": "Sword of Dusk", "intro": "A revenge tale",
        "type": "wuxia", "art_style": "dark fantasy", "video_ratio": "9:16",
    }])
    store.insert("chapter", [
        {"project_id": PROJECT_ID, "chapter_index": i, "reel": "Vol 1",
         "chapter": f"Title {i}", "chapter_data": f"Text of chapter {i}"}
        for i in range(1, 6)
    ])
    return store
