"""
环境变量加载。
provider_templates.yaml 中 secret_env / url_env 类型的参数从这里加载的环境变量中读取。
"""
import logging
import os
from typing import Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

ENV_FILE = os.getenv("SCRIPTWRIGHT_ENV_FILE", ".env")


def load_environment(env_file: Optional[str] = None) -> bool:
    """
    从 .env 文件加载环境变量，进程中已存在的变量不会被覆盖。
    返回是否找到并加载了文件。
    """
    path = env_file or ENV_FILE
    loaded = load_dotenv(path)
    if loaded:
        logger.debug(f"环境变量已从 {path} 加载。")
    else:
        logger.debug(f"未找到 {path}，仅使用进程环境变量。")
    return loaded
