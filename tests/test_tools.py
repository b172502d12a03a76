import threading

import pytest

from scriptwright.agents.narrative import NarrativeStateManager
from scriptwright.agents.personas import Persona
from scriptwright.agents.tools import SUB_AGENT_TOOL_NAMES, ToolCatalog
from scriptwright.infra.storage.sql_db import SqlRecordStore


def _call(name, args, call_id="call_1"):
    return {"name": name, "args": args, "id": call_id, "type": "tool_call"}


@pytest.fixture
def catalog(narrative):
    return ToolCatalog(narrative)


async def test_invalid_outline_input_is_rejected_before_mutation(catalog, store, make_ep):
    bad = make_ep().model_dump()
    bad["key_events"] = ["only", "three", "beats"]

    message = await catalog.get("saveOutline").ainvoke(_call("saveOutline", {"episodes": [bad]}))

    assert message.status == "error"
    assert "Invalid tool input" in message.content
    assert store.count("outline", {}) == 0
    assert store.count("script", {}) == 0


async def test_empty_chapter_list_is_a_validation_error(catalog):
    message = await catalog.get("getChapter").ainvoke(_call("getChapter", {"chapter_numbers": []}))

    assert message.status == "error"


async def test_save_outline_defaults_to_overwrite(catalog, store, make_ep):
    episode = make_ep().model_dump()
    await catalog.get("saveOutline").ainvoke(_call("saveOutline", {"episodes": [episode, episode]}))

    message = await catalog.get("saveOutline").ainvoke(_call("saveOutline", {"episodes": [episode]}))

    assert message.content == "Outline saved: inserted 1 episodes, created 1 script records"
    assert store.count("outline", {"project_id": 1}) == 1


async def test_save_outline_append_mode(catalog, store, make_ep):
    episode = make_ep().model_dump()
    await catalog.get("saveOutline").ainvoke(_call("saveOutline", {"episodes": [episode]}))

    await catalog.get("saveOutline").ainvoke(
        _call("saveOutline", {"episodes": [episode, episode], "overwrite": False})
    )

    episodes = [o["episode"] for o in store.find("outline", {"project_id": 1}, order_by="episode")]
    assert episodes == [1, 2, 3]


async def test_append_onto_existing_episode_is_refused(catalog, store, make_ep):
    episode = make_ep().model_dump()
    await catalog.get("saveOutline").ainvoke(_call("saveOutline", {"episodes": [episode, episode]}))

    message = await catalog.get("saveOutline").ainvoke(
        _call("saveOutline", {"episodes": [episode], "overwrite": False, "start_episode": 2})
    )

    assert message.status == "success"
    assert message.content == "Outline not saved: episode 2 already exists; next free episode is 3"
    assert store.count("outline", {"project_id": 1}) == 2
    assert store.count("script", {"project_id": 1}) == 2


async def test_append_leaving_a_gap_is_refused(catalog, store, make_ep):
    episode = make_ep().model_dump()
    await catalog.get("saveOutline").ainvoke(_call("saveOutline", {"episodes": [episode]}))

    message = await catalog.get("saveOutline").ainvoke(
        _call("saveOutline", {"episodes": [episode], "overwrite": False, "start_episode": 9})
    )

    assert message.content == (
        "Outline not saved: episode 9 would leave a gap after episode 1; next free episode is 2"
    )
    assert [o["episode"] for o in store.find("outline", {"project_id": 1})] == [1]


async def test_append_may_refill_a_deleted_episode(catalog, narrative, store, make_ep):
    narrative.save_outlines([make_ep("A"), make_ep("B"), make_ep("C")], overwrite=True)
    narrative.delete_outline(store.first("outline", {"project_id": 1, "episode": 2})["id"])

    message = await catalog.get("saveOutline").ainvoke(
        _call("saveOutline", {"episodes": [make_ep("B2").model_dump()], "overwrite": False, "start_episode": 2})
    )

    assert message.content.startswith("Outline saved")
    assert [o["episode"] for o in store.find("outline", {"project_id": 1}, order_by="episode")] == [1, 2, 3]


async def test_stale_outline_id_does_not_hit_rewritten_outline(catalog, narrative, store, make_ep):
    narrative.save_outlines([make_ep("old")], overwrite=True)
    stale_id = store.first("outline", {"project_id": 1})["id"]
    narrative.save_outlines([make_ep("new")], overwrite=True)

    message = await catalog.get("deleteOutline").ainvoke(_call("deleteOutline", {"ids": [stale_id]}))

    assert message.content == f"Delete results: ID {stale_id}: failed"
    assert store.count("outline", {"project_id": 1}) == 1


async def test_update_outline_not_found_is_a_result_not_an_error(catalog, make_ep):
    message = await catalog.get("updateOutline").ainvoke(
        _call("updateOutline", {"id": 77, "data": make_ep().model_dump()})
    )

    assert message.status == "success"
    assert message.content == "Outline ID not found: 77"


async def test_delete_outline_summary(catalog, narrative, store, make_ep):
    narrative.save_outlines([make_ep()], overwrite=True)
    outline_id = store.first("outline", {"project_id": 1})["id"]

    message = await catalog.get("deleteOutline").ainvoke(_call("deleteOutline", {"ids": [outline_id, 404]}))

    assert message.content == f"Delete results: ID {outline_id}: success, ID 404: failed"


async def test_storyline_tools(catalog, store):
    get_storyline = catalog.get("getStoryline")
    assert (await get_storyline.ainvoke(_call("getStoryline", {}))).content == "The project has no storyline yet"

    await catalog.get("saveStoryline").ainvoke(_call("saveStoryline", {"content": "Lin seeks revenge"}))
    assert (await get_storyline.ainvoke(_call("getStoryline", {}))).content == "Lin seeks revenge"

    deleted = await catalog.get("deleteStoryline").ainvoke(_call("deleteStoryline", {}))
    assert deleted.content == "Storyline deleted"
    assert store.count("storyline", {}) == 0


async def test_generate_assets_without_outline(catalog):
    message = await catalog.get("generateAssets").ainvoke(_call("generateAssets", {}))

    assert message.content == "The project has no outline data, no assets generated"


async def test_get_chapter_reports_missing_inline(seeded_store, events):
    catalog = ToolCatalog(NarrativeStateManager(1, seeded_store, events))

    message = await catalog.get("getChapter").ainvoke(_call("getChapter", {"chapter_numbers": [2, 8]}))

    assert "[Chapter 2 Title 2]\nText of chapter 2" in message.content
    assert "[Chapter 8] not found" in message.content


def test_sub_agent_subset_excludes_destructive_and_delegation_tools(narrative):
    async def delegate(persona, task):
        return ""

    catalog = ToolCatalog(narrative, delegate=delegate)

    sub_names = [t.name for t in catalog.sub_agent_tools()]
    all_names = [t.name for t in catalog.all_tools()]

    assert sub_names == SUB_AGENT_TOOL_NAMES
    assert "deleteOutline" not in sub_names
    assert "generateAssets" not in sub_names
    assert not {p.value for p in Persona} & set(sub_names)
    assert {"AI1", "AI2", "director", "deleteStoryline", "deleteOutline", "generateAssets"} <= set(all_names)
    assert len(all_names) == 12


def test_catalog_without_delegate_has_no_delegation_tools(catalog):
    assert "AI1" not in [t.name for t in catalog.all_tools()]


class ThreadRecordingStore(SqlRecordStore):

    def __init__(self, database_url):
        super().__init__(database_url)
        self.write_threads = set()

    def insert(self, collection, records):
        self.write_threads.add(threading.get_ident())
        return super().insert(collection, records)

    def update(self, collection, where, patch):
        self.write_threads.add(threading.get_ident())
        return super().update(collection, where, patch)


async def test_store_writes_run_off_the_event_loop(store, events, make_ep):
    recording = ThreadRecordingStore(store.database_url)
    catalog = ToolCatalog(NarrativeStateManager(1, recording, events))

    await catalog.get("saveStoryline").ainvoke(_call("saveStoryline", {"content": "v1"}))
    await catalog.get("saveStoryline").ainvoke(_call("saveStoryline", {"content": "v2"}))
    await catalog.get("saveOutline").ainvoke(_call("saveOutline", {"episodes": [make_ep().model_dump()]}))
    await catalog.get("generateAssets").ainvoke(_call("generateAssets", {}))

    assert recording.write_threads
    assert threading.get_ident() not in recording.write_threads
