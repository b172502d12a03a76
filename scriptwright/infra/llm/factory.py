"""
管理和提供不同LLM（大语言模型）的实例。
完全由 config.yaml 和 provider_templates.yaml 驱动：
步骤别名 -> 模型ID -> 提供商模板 -> LangChain 聊天模型类。
"""
import importlib
import logging
import os
from typing import Optional

from scriptwright.config.loader import load_config, load_provider_templates
from scriptwright.core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _get_class_from_path(class_path: str):
    """根据字符串路径动态导入类。"""
    try:
        module_path, class_name = class_path.rsplit(".", 1)
        module = importlib.import_module(module_path)
        return getattr(module, class_name)
    except (ImportError, AttributeError, ValueError) as e:
        logger.error(f"无法从路径 '{class_path}' 动态导入类: {e}", exc_info=True)
        raise ConfigurationError(f"cannot import '{class_path}': {e}") from e


def get_llm(alias: str, temperature: float = 0.7, config: Optional[dict] = None,
            templates: Optional[dict] = None):
    """
    根据别名从配置文件获取并实例化一个 LangChain 聊天模型。

    Args:
        alias (str): 步骤的别名 (e.g., "outline_agent")。
        temperature (float): 控制模型创造力的参数。
        config (dict): 已加载的配置，缺省时重新读取 config.yaml。
        templates (dict): 已加载的提供商模板，缺省时重新读取。

    Returns:
        A LangChain chat model instance.
    """
    config = config if config is not None else load_config()
    templates = templates if templates is not None else load_provider_templates()

    # 1. 从步骤别名找到模型ID
    model_id = config.get("steps", {}).get(alias)
    if not model_id:
        logger.error(f"在 config.yaml 的 'steps' 部分找不到别名 '{alias}'。")
        raise ConfigurationError(f"no model configured for step '{alias}'")

    # 2. 从模型ID找到模型的用户配置
    user_model_config = config.get("models", {}).get(model_id)
    if not user_model_config:
        logger.error(f"在 config.yaml 的 'models' 部分找不到模型ID '{model_id}'。")
        raise ConfigurationError(f"model '{model_id}' is not defined")

    # 3. 从用户配置找到模板ID，再找到提供商模板
    template_id = user_model_config.get("template")
    provider_template = templates.get(template_id) if template_id else None
    if not provider_template:
        logger.error(f"在提供商模板中找不到模板ID '{template_id}'。")
        raise ConfigurationError(f"provider template '{template_id}' not found for model '{model_id}'")

    class_path = provider_template.get("class")
    if not class_path:
        raise ConfigurationError(f"provider template '{template_id}' has no 'class'")
    LLMClass = _get_class_from_path(class_path)

    # 4. 准备构造函数参数
    constructor_params = {"temperature": temperature}
    for param_name, param_type in provider_template.get("params", {}).items():
        user_value = user_model_config.get(param_name)
        if user_value is None:
            continue
        if param_type in ("secret_env", "url_env"):
            env_var_value = os.getenv(user_value)
            if not env_var_value:
                logger.error(f"模型 '{model_id}' 需要设置环境变量 '{user_value}'，但它未被设置。")
                raise ConfigurationError(f"environment variable '{user_value}' is required by model '{model_id}'")
            # 'api_key_env' -> 'api_key'
            constructor_params[param_name.replace("_env", "")] = env_var_value
        else:
            constructor_params[param_name] = user_value

    logger.info(f"正在实例化模型: {model_id} (类: {LLMClass.__name__})")
    try:
        return LLMClass(**constructor_params)
    except Exception as e:
        logger.error(f"实例化模型 '{model_id}' 失败: {e}", exc_info=True)
        raise ConfigurationError(f"failed to instantiate model '{model_id}': {e}") from e
