"""
配置加载器
读取 config.yaml 与 user_config.yaml 并合并，user_config 中的同名段落覆盖基础配置。
provider_templates.yaml 描述各模型提供商的类路径及构造参数。
"""
import copy
import logging
import os
from typing import Optional

import yaml

from scriptwright.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)

CONFIG_PATH = os.getenv("SCRIPTWRIGHT_CONFIG", "config.yaml")
USER_CONFIG_PATH = os.getenv("SCRIPTWRIGHT_USER_CONFIG", "user_config.yaml")
PROVIDER_TEMPLATES_PATH = os.getenv("SCRIPTWRIGHT_PROVIDER_TEMPLATES", "provider_templates.yaml")

DEFAULT_CONFIG = {
    "database": {"url": "sqlite:///content.db"},
    "models": {},
    "steps": {},
    "agent": {"max_steps": 100, "temperature": 0.7},
}

# 这些段落按 key 合并，其余段落整体覆盖
_MERGED_SECTIONS = ("database", "models", "steps", "agent")


def _merge_configs(base_config: dict, user_config: dict) -> dict:
    """
    合并基础配置和用户配置。
    """
    merged_config = copy.deepcopy(base_config)
    for key, value in user_config.items():
        if key in _MERGED_SECTIONS and isinstance(value, dict):
            merged_config[key] = merged_config.get(key) or {}
            merged_config[key].update(value)
        else:
            merged_config[key] = value
    return merged_config


def _load_yaml(path: str) -> dict:
    if not os.path.exists(path):
        return {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        logger.error(f"解析 {path} 文件失败: {e}", exc_info=True)
        raise ConfigurationError(f"failed to parse {path}: {e}") from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"{path} must contain a mapping at the top level")
    return data


def load_config(config_path: Optional[str] = None, user_config_path: Optional[str] = None) -> dict:
    """
    加载并合并 默认配置 <- config.yaml <- user_config.yaml。
    文件不存在时跳过，不视为错误。
    """
    config_path = config_path or CONFIG_PATH
    user_config_path = user_config_path or USER_CONFIG_PATH

    base_config = _load_yaml(config_path)
    if not base_config:
        logger.warning(f"配置文件 {config_path} 未找到或为空，使用默认配置。")
    merged = _merge_configs(DEFAULT_CONFIG, base_config)
    return _merge_configs(merged, _load_yaml(user_config_path))


def load_provider_templates(path: Optional[str] = None) -> dict:
    """
    加载并解析 provider_templates.yaml 文件。
    """
    path = path or PROVIDER_TEMPLATES_PATH
    templates = _load_yaml(path)
    if not templates:
        logger.warning(f"提供商模板文件 {path} 未找到，返回空模板。")
    return templates


def get_agent_setting(config: dict, key: str):
    """读取 agent 段落中的设置，缺省时回退到默认值"""
    return config.get("agent", {}).get(key, DEFAULT_CONFIG["agent"].get(key))

