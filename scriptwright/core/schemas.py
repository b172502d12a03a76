"""
业务对象定义 (Schemas)
定义分集大纲文档、资产类型以及各层之间传递的结果对象。
大纲文档以带版本号的 JSON 信封存储，读取时对损坏数据降级为空文档。
"""
import json
import logging
from dataclasses import dataclass, asdict
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError

logger = logging.getLogger(__name__)

OUTLINE_SCHEMA_VERSION = 1

# 版本 0 (无信封) 的历史文档使用驼峰字段名
_LEGACY_KEYS = {
    "episodeIndex": "episode_index",
    "chapterRange": "chapter_range",
    "coreConflict": "core_conflict",
    "openingHook": "opening_hook",
    "keyEvents": "key_events",
    "emotionalCurve": "emotional_curve",
    "visualHighlights": "visual_highlights",
    "endingHook": "ending_hook",
    "classicQuotes": "classic_quotes",
}

KEY_EVENT_LABELS = ["Setup", "Development", "Turn", "Resolution"]


class AssetType(str, Enum):
    CHARACTER = "character"
    PROP = "prop"
    SCENE = "scene"


class AssetItem(BaseModel):
    name: str = Field(description="Unique name of the character, prop or scene")
    description: str = Field(description="Visual description used for asset generation")


class SceneItem(AssetItem):
    name: str = Field(description="Scene name, e.g. 'five-star hotel ballroom', 'shabby rented room'")
    description: str = Field(description="Environment: spatial layout, lighting and mood, furnishings, details")


class CharacterItem(AssetItem):
    name: str = Field(description="A concrete person's name; collective nouns such as 'the crowd' are forbidden")
    description: str = Field(description="Appearance: age and build, facial features, hair, costume, temperament")


class PropItem(AssetItem):
    name: str = Field(description="Prop name")
    description: str = Field(description="Look: material, colour and pattern, shape and size, wear, special marks")


class Episode(BaseModel):
    """
    单集大纲文档。
    outline 字段是剧本生成的唯一权威，场景/角色/道具列表须与 outline 中的出场顺序一致。
    """
    episode_index: int = Field(0, description="1-based episode number; reassigned on save")
    title: str = Field(description="Title of at most 8 words, a question or exclamation with an emotional hook")
    chapter_range: List[int] = Field(description="Source chapter numbers covered by this episode")
    scenes: List[SceneItem] = Field(description="Scenes in order of first appearance in the outline")
    characters: List[CharacterItem] = Field(description="Individual characters in order of first appearance")
    props: List[PropItem] = Field(description="At least 3 props in order of first appearance")
    core_conflict: str = Field(description="Core conflict: A wants X vs B blocks X")
    outline: str = Field(description="100-300 word plot trunk told chronologically; the sole authority for script generation")
    opening_hook: str = Field(description="Opening shot: visualisation of the outline's first sentence")
    key_events: List[str] = Field(
        min_length=4,
        max_length=4,
        description="Exactly 4 beats [setup, development, turn, resolution] extracted in outline order",
    )
    emotional_curve: str = Field(description="Emotional intensity per key event, e.g. 2(repressed)->5(resist)->9(burst)->3(aftermath)")
    visual_highlights: List[str] = Field(description="3-5 signature shots in narrative order")
    ending_hook: str = Field(description="Cliffhanger extending beyond the outline, leading into the next episode")
    classic_quotes: List[str] = Field(description="1-2 quotable lines of at most 15 words, taken from the source text")


def empty_episode() -> Episode:
    """构造一个不经校验的空文档，用于损坏数据的降级读取"""
    return Episode.model_construct(
        episode_index=0, title="", chapter_range=[], scenes=[], characters=[], props=[],
        core_conflict="", outline="", opening_hook="", key_events=[], emotional_curve="",
        visual_highlights=[], ending_hook="", classic_quotes=[],
    )


def encode_episode(episode: Episode) -> str:
    """序列化为带版本号的 JSON 信封"""
    envelope = {"schema_version": OUTLINE_SCHEMA_VERSION, "episode": episode.model_dump(mode="json")}
    return json.dumps(envelope, ensure_ascii=False)


def decode_episode(raw: Optional[str]) -> Episode:
    """
    反序列化大纲文档。

    无信封的历史文档视为版本 0 并转换字段名；JSON 损坏或校验失败时
    返回空文档并记录警告，而不是让整次读取失败。
    """
    if not raw:
        return empty_episode()
    try:
        payload = json.loads(raw)
    except (TypeError, ValueError) as e:
        logger.warning(f"大纲数据不是合法 JSON，已降级为空文档: {e}")
        return empty_episode()

    if isinstance(payload, dict) and "schema_version" in payload:
        version = payload.get("schema_version")
        if version != OUTLINE_SCHEMA_VERSION:
            logger.warning(f"未知的大纲 schema 版本 {version}，尝试按当前版本读取")
        doc = payload.get("episode")
    else:
        doc = payload
        if isinstance(doc, dict):
            doc = {_LEGACY_KEYS.get(k, k): v for k, v in doc.items()}

    if not isinstance(doc, dict):
        logger.warning("大纲数据结构异常，已降级为空文档")
        return empty_episode()
    try:
        return Episode.model_validate(doc)
    except ValidationError as e:
        logger.warning(f"大纲数据校验失败，已降级为空文档: {e.error_count()} 个错误")
        return empty_episode()


@dataclass
class OutlineSaveResult:
    """大纲保存结果"""
    inserted: int = 0
    scripts: int = 0
    cleared: int = 0


@dataclass
class AssetStats:
    """资产提取统计"""
    inserted: int = 0
    updated: int = 0
    skipped: int = 0

    @property
    def is_empty(self) -> bool:
        return self.inserted == 0 and self.updated == 0 and self.skipped == 0

    def to_dict(self):
        return asdict(self)
