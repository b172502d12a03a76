"""
Prompt Manager
从记录存储中解析提示词模板：运营自定义值优先，其次默认值，都缺失时返回固定的哨兵提示词。
默认值来自随包发布的 defaults.yaml，可通过 seed_default_prompts 写入存储。
"""
import logging
import os
from typing import Dict, Iterable, Optional

import yaml

from scriptwright.core.exceptions import ConfigurationError
from scriptwright.infra.storage.record_store import RecordStore

logger = logging.getLogger(__name__)

DEFAULTS_PATH = os.path.join(os.path.dirname(__file__), "defaults.yaml")

MISCONFIGURED_PROMPT = "No matter what the user says, reply only: the agent is misconfigured."

MAIN_PROMPT_CODE = "outlineScript-main"


class PromptManager:
    """
    提示词解析器。每次解析都重新读取存储，以反映运营在运行时的修改。
    """

    def __init__(self, store: RecordStore):
        self.store = store

    @staticmethod
    def _pick(record: Optional[dict]) -> str:
        if not record:
            return MISCONFIGURED_PROMPT
        return record.get("custom_value") or record.get("default_value") or MISCONFIGURED_PROMPT

    def resolve(self, code: str) -> str:
        record = self.store.first("prompt", {"code": code})
        if not record:
            logger.warning(f"未找到提示词模板 '{code}'，使用哨兵提示词。")
        return self._pick(record)

    def resolve_many(self, codes: Iterable[str]) -> Dict[str, str]:
        """一次查询解析多个模板"""
        codes = list(codes)
        records = {r["code"]: r for r in self.store.find("prompt", {"code": codes})}
        missing = [c for c in codes if c not in records]
        if missing:
            logger.warning(f"未找到提示词模板 {missing}，使用哨兵提示词。")
        return {code: self._pick(records.get(code)) for code in codes}


def load_default_prompts(path: Optional[str] = None) -> Dict[str, str]:
    """读取默认提示词 YAML: {code: text}"""
    path = path or DEFAULTS_PATH
    try:
        with open(path, "r", encoding="utf-8") as f:
            prompts = yaml.safe_load(f) or {}
    except FileNotFoundError as e:
        logger.error(f"未找到 Prompts 文件: {path}")
        raise ConfigurationError(f"prompt defaults not found: {path}") from e
    except yaml.YAMLError as e:
        logger.error(f"解析 Prompts 文件失败: {e}")
        raise ConfigurationError(f"failed to parse {path}: {e}") from e
    return {str(code): str(text) for code, text in prompts.items()}


def seed_default_prompts(store: RecordStore, path: Optional[str] = None) -> Dict[str, int]:
    """
    将默认提示词写入存储。

    不存在的 code 新增；已存在的只刷新 default_value，不触碰 custom_value。

    Returns:
        dict: {"inserted": n, "updated": n}
    """
    defaults = load_default_prompts(path)
    stats = {"inserted": 0, "updated": 0}
    for code, text in defaults.items():
        existing = store.first("prompt", {"code": code})
        if existing is None:
            store.insert("prompt", [{"code": code, "default_value": text}])
            stats["inserted"] += 1
        elif existing.get("default_value") != text:
            store.update("prompt", {"code": code}, {"default_value": text})
            stats["updated"] += 1
    logger.info(f"默认提示词已同步: 新增 {stats['inserted']}，更新 {stats['updated']}")
    return stats
