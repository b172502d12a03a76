from scriptwright.agents.context import NO_PROJECT_INFO, ContextBuilder
from scriptwright.agents.history import ASSISTANT, USER, ConversationHistory


async def test_environment_without_project(narrative):
    builder = ContextBuilder(narrative, ConversationHistory())

    env = await builder.build_environment()

    assert NO_PROJECT_INFO in env
    assert "No chapter data" in env
    assert "Storyline status: not generated" in env
    assert "Outline status: 0 episodes" in env


async def test_environment_reflects_project_state(seeded_store, narrative, make_ep):
    narrative.upsert_storyline("Lin seeks revenge")
    narrative.save_outlines([make_ep(), make_ep()], overwrite=True)
    builder = ContextBuilder(narrative, ConversationHistory())
    builder.set_chapters(seeded_store.find("chapter", {"project_id": 1}, order_by="chapter_index")[:2])

    env = await builder.build_environment()

    assert env.startswith("<environment>") and env.endswith("</environment>")
    assert "Project ID: 1" in env
    assert "Genre: wuxia" in env
    assert "Chapter 1, volume: Vol 1, title: Title 1\nChapter 2, volume: Vol 1, title: Title 2" in env
    assert "Storyline status: generated" in env
    assert "Outline status: 2 episodes" in env


async def test_full_context_includes_history_and_task(narrative):
    history = ConversationHistory()
    history.append(USER, "outline the first arc")
    history.append(ASSISTANT, "handing over to AI2")

    context = await ContextBuilder(narrative, history).build_full_context("write 3 episodes")

    assert "user: outline the first arc\n\nassistant: handing over to AI2" in context
    assert context.endswith("<current_task>\nwrite 3 episodes\n</current_task>")


async def test_empty_history_placeholder(narrative):
    context = await ContextBuilder(narrative, ConversationHistory()).build_full_context("task")

    assert "No conversation history" in context
