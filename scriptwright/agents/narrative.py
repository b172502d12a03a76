"""
叙事状态管理 (Narrative State Manager)
负责故事线、大纲、剧本与资产的增删改查及合并语义：
- 故事线按项目 upsert，整体覆盖；
- 大纲支持覆盖 / 追加写入，集数连续，每集自动创建一个空剧本；
- 删除大纲级联删除剧本，批量删除逐个结算、互不影响；
- 资产从全部大纲中按名称去重提取，只新增和更新，不删除。
"""
import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence

from scriptwright.agents.events import EventBus, RefreshTarget
from scriptwright.core.exceptions import EpisodeRangeError, OutlineNotFoundError
from scriptwright.core.schemas import (
    KEY_EVENT_LABELS, AssetItem, AssetStats, AssetType, Episode, OutlineSaveResult,
    decode_episode, encode_episode,
)
from scriptwright.infra.storage.record_store import RecordStore

logger = logging.getLogger(__name__)

NO_OUTLINE = "The project has no outline yet"
NO_STORYLINE = "The project has no storyline yet"


@dataclass
class DeleteOutcome:
    outline_id: int
    ok: bool
    reason: str = ""


def unique_by_name(items: Sequence[AssetItem]) -> List[AssetItem]:
    """按名称去重，同名时保留最后出现的一项，顺序取首次出现的位置"""
    by_name: Dict[str, AssetItem] = {}
    for item in items:
        by_name[item.name] = item
    return list(by_name.values())


def _format_list(items) -> str:
    return "\n".join(f"  {i + 1}. {item}" for i, item in enumerate(items)) or "  none"


def _format_assets(items: Sequence[AssetItem]) -> str:
    return "; ".join(f"{item.name}({item.description})" for item in items) or "none"


def format_outline_detail(outline_id: int, ep: Episode) -> str:
    """渲染单集完整大纲"""
    key_events = "\n".join(
        f"  [{KEY_EVENT_LABELS[i] if i < len(KEY_EVENT_LABELS) else i + 1}] {event}"
        for i, event in enumerate(ep.key_events)
    ) or "  none"
    return f"""
Outline ID: {outline_id}
Episode {ep.episode_index}: {ep.title}
{"=" * 50}
Chapters: {", ".join(str(c) for c in ep.chapter_range)}
Core conflict: {ep.core_conflict}

[Plot trunk] (highest priority, sole authority for the script):
{ep.outline or "none"}

[Opening shot] (must be the first shot of the script):
{ep.opening_hook or "none"}

[Key events] (strictly Setup -> Development -> Turn -> Resolution):
{key_events}

Emotional curve: {ep.emotional_curve}

[Visual highlights] (in plot order):
{_format_list(ep.visual_highlights)}

[Ending hook]:
{ep.ending_hook or "none"}

[Classic quotes]:
{_format_list(ep.classic_quotes)}

Characters (by appearance): {_format_assets(ep.characters)}
Scenes (by appearance): {_format_assets(ep.scenes)}
Props (by appearance): {_format_assets(ep.props)}"""


class NarrativeStateManager:
    """
    单个项目的叙事数据操作集合。写操作完成后通过事件总线发出 refresh 通知。

    Args:
        project_id (int): 项目ID。
        store (RecordStore): 记录存储。
        events (EventBus): 刷新通知的出口。
    """

    def __init__(self, project_id: int, store: RecordStore, events: EventBus):
        self.project_id = project_id
        self.store = store
        self.events = events

    # ==================== 章节 ====================

    def find_chapter(self, chapter_index: int) -> Optional[dict]:
        return self.store.first("chapter", {"project_id": self.project_id, "chapter_index": chapter_index})

    async def fetch_chapters(self, chapter_numbers: Sequence[int]) -> str:
        """并发获取多个章节，按输入顺序拼接，缺失的章节在原位置注明"""
        chapters = await asyncio.gather(
            *(asyncio.to_thread(self.find_chapter, num) for num in chapter_numbers)
        )
        parts = []
        for num, chapter in zip(chapter_numbers, chapters):
            if chapter:
                parts.append(f"\n[Chapter {chapter['chapter_index']} {chapter.get('chapter') or ''}]\n"
                             f"{chapter.get('chapter_data') or ''}")
            else:
                parts.append(f"\n[Chapter {num}] not found")
        return "\n\n---\n".join(parts)

    # ==================== 故事线 ====================

    def find_storyline(self) -> Optional[dict]:
        return self.store.first("storyline", {"project_id": self.project_id})

    def upsert_storyline(self, content: str):
        if self.find_storyline():
            self.store.update("storyline", {"project_id": self.project_id}, {"content": content})
        else:
            self.store.insert("storyline", [{"project_id": self.project_id, "content": content}])
        self.events.refresh(RefreshTarget.STORYLINE)

    def delete_storyline(self) -> int:
        deleted = self.store.delete("storyline", {"project_id": self.project_id})
        self.events.refresh(RefreshTarget.STORYLINE)
        return deleted

    # ==================== 大纲 ====================

    def find_outlines(self) -> List[dict]:
        return self.store.find("outline", {"project_id": self.project_id}, order_by="episode")

    def find_outline(self, outline_id: int) -> Optional[dict]:
        return self.store.first("outline", {"id": outline_id, "project_id": self.project_id})

    def outline_count(self) -> int:
        return self.store.count("outline", {"project_id": self.project_id})

    def max_episode(self) -> int:
        return self.store.max("outline", {"project_id": self.project_id}, "episode") or 0

    def clear_outlines_and_scripts(self) -> int:
        outlines = self.store.find("outline", {"project_id": self.project_id})
        if not outlines:
            return 0
        outline_ids = [o["id"] for o in outlines]
        self.store.delete("script", {"outline_id": outline_ids})
        self.store.delete("outline", {"project_id": self.project_id})
        return len(outlines)

    def check_append_range(self, start: int, count: int):
        """追加的集数区间不得与已有集数重叠，也不得在现有最大集数之后留出空档"""
        next_free = self.max_episode() + 1
        if start > next_free:
            raise EpisodeRangeError(
                f"episode {start} would leave a gap after episode {next_free - 1}; next free episode is {next_free}",
                next_free,
            )
        taken = self.store.find(
            "outline", {"project_id": self.project_id, "episode": list(range(start, start + count))},
            order_by="episode",
        )
        if taken:
            raise EpisodeRangeError(
                f"episode {taken[0]['episode']} already exists; next free episode is {next_free}", next_free,
            )

    def save_outlines(self, episodes: Sequence[Episode], overwrite: bool,
                      start_episode: Optional[int] = None) -> OutlineSaveResult:
        """
        写入一批分集大纲。

        Args:
            episodes: 大纲文档，按集数顺序排列。
            overwrite: True 时先清空项目现有大纲及剧本，并从第 1 集开始编号。
            start_episode: 追加模式下的起始集数，缺省为现有最大集数 + 1。
                不得与已有集数重叠，也不得超过现有最大集数 + 1，否则在写入前抛出 EpisodeRangeError。

        Returns:
            OutlineSaveResult: 清理数、插入数与创建的剧本数。
        """
        result = OutlineSaveResult()
        if overwrite:
            result.cleared = self.clear_outlines_and_scripts()
            if result.cleared > 0:
                logger.info(f"清理旧数据: 删除了 {result.cleared} 条大纲及关联剧本")

        if overwrite:
            start = 1
        elif start_episode is not None:
            self.check_append_range(start_episode, len(episodes))
            start = start_episode
        else:
            start = self.max_episode() + 1

        numbered = [ep.model_copy(update={"episode_index": start + idx}) for idx, ep in enumerate(episodes)]
        outline_ids = self.store.insert("outline", [
            {"project_id": self.project_id, "episode": ep.episode_index, "data": encode_episode(ep)}
            for ep in numbered
        ])
        result.inserted = len(outline_ids)

        scripts = [
            {"project_id": self.project_id, "outline_id": outline_id,
             "name": f"Episode {ep.episode_index}", "content": ""}
            for outline_id, ep in zip(outline_ids, numbered)
        ]
        if scripts:
            self.store.insert("script", scripts)
        result.scripts = len(scripts)

        self.events.refresh(RefreshTarget.OUTLINE)
        return result

    def update_outline(self, outline_id: int, episode: Episode) -> bool:
        """覆盖单集大纲内容，集数以已存记录为准；记录不存在时返回 False"""
        existing = self.find_outline(outline_id)
        if not existing:
            return False
        episode = episode.model_copy(update={"episode_index": existing["episode"]})
        self.store.update("outline", {"id": outline_id}, {"data": encode_episode(episode)})
        self.events.refresh(RefreshTarget.OUTLINE)
        return True

    def delete_outline(self, outline_id: int):
        """删除单集大纲并级联删除其剧本"""
        if not self.find_outline(outline_id):
            raise OutlineNotFoundError(outline_id)
        self.store.delete("script", {"outline_id": outline_id})
        self.store.delete("outline", {"id": outline_id, "project_id": self.project_id})

    async def delete_outlines(self, outline_ids: Sequence[int]) -> List[DeleteOutcome]:
        """并发删除多条大纲，逐个结算，单条失败不影响其他"""
        results = await asyncio.gather(
            *(asyncio.to_thread(self.delete_outline, oid) for oid in outline_ids),
            return_exceptions=True,
        )
        outcomes = []
        for oid, res in zip(outline_ids, results):
            if isinstance(res, Exception):
                logger.warning(f"删除大纲 {oid} 失败: {res}")
                outcomes.append(DeleteOutcome(oid, False, str(res)))
            else:
                outcomes.append(DeleteOutcome(oid, True))
        self.events.refresh(RefreshTarget.OUTLINE)
        return outcomes

    def load_episodes(self) -> List[tuple]:
        """返回 [(outline_id, episode_number, Episode), ...]，按集数升序"""
        return [(r["id"], r["episode"], decode_episode(r.get("data"))) for r in self.find_outlines()]

    def render_outlines(self, simplified: bool) -> str:
        episodes = self.load_episodes()
        if not episodes:
            return NO_OUTLINE

        if simplified:
            listing = "\n".join(
                f"Episode {ep.episode_index or number} (id={oid})" for oid, number, ep in episodes
            )
            return f"Project outline ({len(episodes)} episodes):\n{listing}"

        details = "\n".join(format_outline_detail(oid, ep) for oid, _, ep in episodes)
        return f"Project outline ({len(episodes)} episodes)\n\n{details}"

    # ==================== 资产 ====================

    def extract_assets(self) -> Dict[AssetType, List[AssetItem]]:
        """按集数顺序汇总全部大纲中的资产，并按名称去重 (后出现者覆盖)"""
        collected: Dict[AssetType, List[AssetItem]] = {t: [] for t in AssetType}
        for _, _, ep in self.load_episodes():
            collected[AssetType.CHARACTER].extend(ep.characters)
            collected[AssetType.PROP].extend(ep.props)
            collected[AssetType.SCENE].extend(ep.scenes)
        return {asset_type: unique_by_name(items) for asset_type, items in collected.items()}

    def upsert_asset(self, asset_type: AssetType, item: AssetItem) -> str:
        where = {"project_id": self.project_id, "type": asset_type.value, "name": item.name}
        existing = self.store.first("asset", where)
        if existing is None:
            self.store.insert("asset", [{**where, "intro": item.description, "prompt": item.description}])
            return "inserted"
        if existing.get("intro") != item.description:
            self.store.update("asset", {"id": existing["id"]},
                              {"intro": item.description, "prompt": item.description})
            return "updated"
        return "skipped"

    def generate_assets(self) -> AssetStats:
        """从大纲生成资产，只做新增和更新，不删除已有资产"""
        stats = AssetStats()
        if self.outline_count() == 0:
            return stats

        for asset_type, items in self.extract_assets().items():
            for item in items:
                outcome = self.upsert_asset(asset_type, item)
                setattr(stats, outcome, getattr(stats, outcome) + 1)

        self.events.refresh(RefreshTarget.ASSETS)
        return stats
