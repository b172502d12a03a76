"""
上下文构建 (Context Builder)
把项目元数据、已加载章节目录、故事线/大纲状态与可用工具说明渲染成环境描述，
再与对话历史和当前任务拼接成交给补全服务的完整提示。只读，不修改任何数据。
"""
import asyncio
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from scriptwright.agents.history import ConversationHistory
from scriptwright.agents.narrative import NarrativeStateManager

logger = logging.getLogger(__name__)

NO_PROJECT_INFO = "No project info found"

TOOL_CATALOG_DESCRIPTION = """Available tools:
- getChapter: read source chapters
- getStoryline/saveStoryline/deleteStoryline: storyline operations
- getOutline/saveOutline/updateOutline/deleteOutline: outline operations
- generateAssets: derive assets from the outline"""


class ContextBuilder:

    def __init__(self, narrative: NarrativeStateManager, history: ConversationHistory):
        self.narrative = narrative
        self.history = history
        self.chapters: List[dict] = []

    @property
    def project_id(self) -> int:
        return self.narrative.project_id

    def set_chapters(self, chapters: Sequence[dict]):
        self.chapters = list(chapters)

    def get_project_info(self) -> Optional[dict]:
        return self.narrative.store.first("project", {"id": self.project_id})

    def render_project_info(self, info: Optional[dict]) -> str:
        if not info:
            return NO_PROJECT_INFO
        fields = [
            f"Novel name: {info.get('name')}",
            f"Synopsis: {info.get('intro')}",
            f"Genre: {info.get('type')}",
            f"Target drama style: {info.get('art_style')}",
            f"Aspect ratio: {info.get('video_ratio')}",
        ]
        return "\n".join(fields)

    def render_chapter_index(self) -> str:
        if not self.chapters:
            return "No chapter data"
        return "\n".join(
            f"Chapter {c.get('chapter_index')}, volume: {c.get('reel')}, title: {c.get('chapter')}"
            for c in self.chapters
        )

    async def build_environment(self) -> str:
        info, storyline, outline_count = await asyncio.gather(
            asyncio.to_thread(self.get_project_info),
            asyncio.to_thread(self.narrative.find_storyline),
            asyncio.to_thread(self.narrative.outline_count),
        )
        return f"""<environment>
Project ID: {self.project_id}
System time: {datetime.now().strftime("%Y-%m-%d %H:%M:%S")}

{self.render_project_info(info)}

Loaded chapters:
{self.render_chapter_index()}

Storyline status: {"generated" if storyline else "not generated"}
Outline status: {outline_count} episodes

{TOOL_CATALOG_DESCRIPTION}
</environment>"""

    async def build_full_context(self, task: str) -> str:
        env = await self.build_environment()
        return f"""{env}

<conversation_history>
{self.history.render()}
</conversation_history>

<current_task>
{task}
</current_task>"""
