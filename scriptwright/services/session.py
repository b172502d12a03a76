"""
会话装配 (Session Facade)
根据配置装配记录存储、聊天模型与编排引擎，供 CLI 或上层服务使用。
"""
import logging
from typing import List, Optional

from scriptwright.agents.engine import OutlineAgent
from scriptwright.agents.events import EventBus
from scriptwright.config.loader import get_agent_setting, load_config
from scriptwright.infra.llm.completion import LangChainCompletionService
from scriptwright.infra.llm.factory import get_llm
from scriptwright.infra.storage.record_store import RecordStore
from scriptwright.infra.storage.sql_db import SqlRecordStore

logger = logging.getLogger(__name__)

AGENT_STEP_ALIAS = "outline_agent"


def open_store(config: dict, database_url: Optional[str] = None) -> SqlRecordStore:
    url = database_url or config.get("database", {}).get("url")
    logger.info(f"打开数据库: {url}")
    return SqlRecordStore(url)


def load_chapters(store: RecordStore, project_id: int) -> List[dict]:
    """读取项目的全部章节，按章节号升序"""
    return store.find("chapter", {"project_id": project_id}, order_by="chapter_index")


def create_outline_agent(project_id: int, config: Optional[dict] = None,
                         store: Optional[RecordStore] = None,
                         events: Optional[EventBus] = None) -> OutlineAgent:
    """
    按配置创建一个已加载章节的 OutlineAgent。

    Args:
        project_id (int): 项目ID。
        config (dict): 已加载的配置，缺省时读取 config.yaml。
        store (RecordStore): 记录存储，缺省时按 database.url 打开。
        events (EventBus): 事件总线，缺省时由引擎新建。
    """
    config = config if config is not None else load_config()
    store = store if store is not None else open_store(config)

    model = get_llm(AGENT_STEP_ALIAS, temperature=get_agent_setting(config, "temperature"), config=config)
    agent = OutlineAgent(
        project_id, store, LangChainCompletionService(model),
        events=events, max_steps=int(get_agent_setting(config, "max_steps")),
    )
    chapters = load_chapters(store, project_id)
    agent.set_novel(chapters)
    logger.info(f"项目 {project_id} 已加载 {len(chapters)} 个章节")
    return agent
