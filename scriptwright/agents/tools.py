"""
工具目录 (Tool Catalog)
向模型暴露的固定工具集合。每个工具包含参数 schema、面向模型的描述与执行函数。
参数校验失败时由 LangChain 转成 status="error" 的工具消息返回给模型，不会触及数据。
业务上的失败 (如大纲ID不存在、追加集数冲突) 以说明文字的形式返回，工具本身不抛异常。
记录存储是同步的，所有存储调用经 asyncio.to_thread 执行，不阻塞事件循环。
"""
import asyncio
import logging
from typing import Awaitable, Callable, Dict, List, Optional

from langchain_core.tools import BaseTool, StructuredTool
from pydantic import BaseModel, Field, PositiveInt, ValidationError

from scriptwright.agents.narrative import NO_STORYLINE, NarrativeStateManager
from scriptwright.agents.personas import DESCRIPTIONS, Persona
from scriptwright.core.exceptions import EpisodeRangeError
from scriptwright.core.schemas import Episode

logger = logging.getLogger(__name__)

Delegate = Callable[[Persona, str], Awaitable[str]]

SUB_AGENT_TOOL_NAMES = ["getChapter", "getStoryline", "saveStoryline", "getOutline", "saveOutline", "updateOutline"]


class NoArgs(BaseModel):
    pass


class GetChapterArgs(BaseModel):
    chapter_numbers: List[PositiveInt] = Field(min_length=1, description="Chapter numbers to read")


class SaveStorylineArgs(BaseModel):
    content: str = Field(description="Full storyline content")


class GetOutlineArgs(BaseModel):
    simplified: bool = Field(False, description="Return only the id / episode list")


class SaveOutlineArgs(BaseModel):
    episodes: List[Episode] = Field(min_length=1, description="Episode outlines in episode order")
    overwrite: bool = Field(True, description="Clear the existing outline before writing")
    start_episode: Optional[PositiveInt] = Field(
        None, description="First episode number in append mode (defaults to the next free number)"
    )


class UpdateOutlineArgs(BaseModel):
    id: int = Field(description="Outline ID")
    data: Episode = Field(description="Updated outline document")


class DeleteOutlineArgs(BaseModel):
    ids: List[int] = Field(min_length=1, description="Outline IDs to delete")


class DelegateArgs(BaseModel):
    task_description: str = Field(
        description="Concrete task description including chapter range, required changes and other details"
    )


def format_validation_error(error: ValidationError) -> str:
    return f"Invalid tool input: {error}"


def _tool(name: str, description: str, args_schema, coroutine) -> StructuredTool:
    return StructuredTool.from_function(
        coroutine=coroutine,
        name=name,
        description=description,
        args_schema=args_schema,
        handle_validation_error=format_validation_error,
    )


class ToolCatalog:
    """
    构建绑定到某个项目的工具集合。

    Args:
        narrative: 叙事状态管理器，所有数据类工具的执行者。
        delegate: 子 Agent 委派回调，缺省时不提供委派工具。
    """

    def __init__(self, narrative: NarrativeStateManager, delegate: Optional[Delegate] = None):
        self.narrative = narrative
        self.delegate = delegate
        self._tools = self._build_data_tools()

    # ==================== 章节 ====================

    async def _get_chapter(self, chapter_numbers: List[int]) -> str:
        logger.info(f"获取章节: 章节号 {', '.join(str(n) for n in chapter_numbers)}")
        return await self.narrative.fetch_chapters(chapter_numbers)

    # ==================== 故事线 ====================

    async def _get_storyline(self) -> str:
        logger.info("获取故事线")
        storyline = await asyncio.to_thread(self.narrative.find_storyline)
        return (storyline or {}).get("content") or NO_STORYLINE

    async def _save_storyline(self, content: str) -> str:
        logger.info("保存故事线")
        await asyncio.to_thread(self.narrative.upsert_storyline, content)
        return "Storyline saved"

    async def _delete_storyline(self) -> str:
        logger.info("删除故事线")
        deleted = await asyncio.to_thread(self.narrative.delete_storyline)
        return "Storyline deleted" if deleted > 0 else NO_STORYLINE

    # ==================== 大纲 ====================

    async def _get_outline(self, simplified: bool = False) -> str:
        logger.info(f"获取大纲: 简化模式 {simplified}")
        return await asyncio.to_thread(self.narrative.render_outlines, simplified)

    async def _save_outline(self, episodes: list, overwrite: bool = True,
                            start_episode: Optional[int] = None) -> str:
        logger.info(f"保存大纲: 覆盖模式 {overwrite}, 集数 {len(episodes)}")
        documents = [Episode.model_validate(ep) for ep in episodes]
        try:
            result = await asyncio.to_thread(self.narrative.save_outlines, documents, overwrite, start_episode)
        except EpisodeRangeError as e:
            logger.warning(f"追加大纲被拒绝: {e}")
            return f"Outline not saved: {e}"
        return (f"Outline saved: inserted {result.inserted} episodes, "
                f"created {result.scripts} script records")

    async def _update_outline(self, id: int, data) -> str:
        logger.info(f"更新大纲: ID {id}")
        if await asyncio.to_thread(self.narrative.update_outline, id, Episode.model_validate(data)):
            return f"Outline ID {id} updated"
        return f"Outline ID not found: {id}"

    async def _delete_outline(self, ids: List[int]) -> str:
        logger.info(f"删除大纲: IDs {', '.join(str(i) for i in ids)}")
        outcomes = await self.narrative.delete_outlines(ids)
        summary = ", ".join(
            f"ID {o.outline_id}: {'success' if o.ok else 'failed'}" for o in outcomes
        )
        return f"Delete results: {summary}"

    # ==================== 资产 ====================

    async def _generate_assets(self) -> str:
        logger.info("生成资产")
        stats = await asyncio.to_thread(self.narrative.generate_assets)
        if stats.is_empty:
            return "The project has no outline data, no assets generated"
        return (f"Assets generated: inserted {stats.inserted}, "
                f"updated {stats.updated}, unchanged {stats.skipped}")

    def _build_data_tools(self) -> Dict[str, BaseTool]:
        tools = [
            _tool("getChapter", "Read the full source text of novel chapters by chapter number; supports batches",
                  GetChapterArgs, self._get_chapter),
            _tool("getStoryline", "Get the storyline of the current project",
                  NoArgs, self._get_storyline),
            _tool("saveStoryline", "Save or update the storyline of the current project; overwrites existing content",
                  SaveStorylineArgs, self._save_storyline),
            _tool("deleteStoryline", "Delete the storyline of the current project",
                  NoArgs, self._delete_storyline),
            _tool("getOutline", "Get the project outline. simplified=true returns a short list, false the full content",
                  GetOutlineArgs, self._get_outline),
            _tool("saveOutline", "Save outline data. overwrite=true clears the existing outline first, "
                                 "false appends to the end",
                  SaveOutlineArgs, self._save_outline),
            _tool("updateOutline", "Update the outline of a single episode by ID",
                  UpdateOutlineArgs, self._update_outline),
            _tool("deleteOutline", "Delete outlines and their scripts by outline ID",
                  DeleteOutlineArgs, self._delete_outline),
            _tool("generateAssets", "Extract characters, props and scenes from all outlines of the project "
                                    "and upsert them as assets, deduplicated by name",
                  NoArgs, self._generate_assets),
        ]
        return {t.name: t for t in tools}

    def _delegation_tool(self, persona: Persona) -> StructuredTool:
        async def run(task_description: str) -> str:
            return await self.delegate(persona, task_description)

        return _tool(persona.value, DESCRIPTIONS[persona], DelegateArgs, run)

    def get(self, name: str) -> BaseTool:
        return self._tools[name]

    def sub_agent_tools(self) -> List[BaseTool]:
        """子 Agent 工具子集：不含删除、资产生成与再次委派"""
        return [self._tools[name] for name in SUB_AGENT_TOOL_NAMES]

    def all_tools(self) -> List[BaseTool]:
        """主 Agent 的完整工具目录"""
        tools = []
        if self.delegate is not None:
            tools.extend(self._delegation_tool(p) for p in Persona)
        tools.extend(self._tools.values())
        return tools
