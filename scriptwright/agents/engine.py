"""
编排引擎 (Orchestration Engine)
持有对话历史，驱动主 Agent 的模型回合，并把子任务委派给故事师 / 大纲师 / 导演。
子 Agent 回合与主回合使用同一个 TurnRunner 状态机，只是工具子集与事件标签不同；
两者共享同一个 ConversationHistory 实例。

一个 OutlineAgent 实例同一时间只能处理一个 call()，调用方负责串行化。
模型或工具抛出的异常不在这一层捕获，直接传给调用方；已写入历史的内容保留。
"""
import logging
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from langchain_core.tools import BaseTool

from scriptwright.agents.context import ContextBuilder
from scriptwright.agents.events import EventBus, EventType
from scriptwright.agents.history import ASSISTANT, USER, ConversationHistory
from scriptwright.agents.narrative import NarrativeStateManager
from scriptwright.agents.personas import MAIN_AGENT, PROMPT_CODES, Persona
from scriptwright.agents.tools import ToolCatalog
from scriptwright.infra.llm.completion import CompletionService, TextDelta, ToolCallRequest
from scriptwright.infra.storage.record_store import RecordStore
from scriptwright.prompts.manager import MAIN_PROMPT_CODE, PromptManager

logger = logging.getLogger(__name__)

DEFAULT_MAX_STEPS = 100


class TurnState(str, Enum):
    IDLE = "idle"
    STREAMING = "streaming"
    TOOL_DISPATCH = "tool_dispatch"
    COMPLETED = "completed"


class TurnRunner:
    """
    单个模型回合的状态机: Idle -> Streaming -> (ToolDispatch)* -> Completed。

    Args:
        agent: 事件中标注的执行者 ("main" 或子 Agent 角色)。
        completion: 补全服务。
        events: 事件总线。
        on_text: 收到文本片段时的通知回调。
    """

    def __init__(self, agent: str, completion: CompletionService, events: EventBus,
                 on_text: Callable[[str], None]):
        self.agent = agent
        self.completion = completion
        self.events = events
        self.on_text = on_text
        self.state = TurnState.IDLE
        self.tool_calls: List[str] = []

    async def run(self, system_prompt: str, tools: Sequence[BaseTool], messages: Sequence[Dict[str, str]],
                  max_steps: int) -> str:
        self.state = TurnState.STREAMING
        full_response = ""
        stream = self.completion.stream_turn(
            system_prompt=system_prompt, tools=tools, messages=messages, max_steps=max_steps,
        )
        async for item in stream:
            if isinstance(item, ToolCallRequest):
                # 参数不回显，保持事件结构稳定
                self.state = TurnState.TOOL_DISPATCH
                self.tool_calls.append(item.name)
                self.events.notify(EventType.TOOL_CALL, agent=self.agent, name=item.name)
            elif isinstance(item, TextDelta):
                self.state = TurnState.STREAMING
                full_response += item.text
                self.on_text(item.text)
        self.state = TurnState.COMPLETED
        return full_response


class OutlineAgent:
    """
    小说 -> 分集大纲 的多 Agent 编排入口。

    Args:
        project_id (int): 项目ID。
        store (RecordStore): 记录存储。
        completion (CompletionService): 补全服务。
        events (EventBus): 观察者在 call() 之前订阅；缺省时新建一个。
        history (ConversationHistory): 共享的对话历史；缺省时新建一个。
        max_steps (int): 每个回合模型 <-> 工具往返的上限。
    """

    def __init__(self, project_id: int, store: RecordStore, completion: CompletionService,
                 events: Optional[EventBus] = None, history: Optional[ConversationHistory] = None,
                 max_steps: int = DEFAULT_MAX_STEPS):
        self.project_id = project_id
        self.completion = completion
        self.events = events if events is not None else EventBus()
        self.history = history if history is not None else ConversationHistory()
        self.max_steps = max_steps
        self.prompts = PromptManager(store)
        self.narrative = NarrativeStateManager(project_id, store, self.events)
        self.context = ContextBuilder(self.narrative, self.history)
        self.tools = ToolCatalog(self.narrative, delegate=self.invoke_sub_agent)
        self.last_turn: Optional[TurnRunner] = None

    def set_novel(self, chapters: Sequence[dict]):
        """设置本次会话已加载的章节 (用于环境描述中的章节目录)"""
        self.context.set_chapters(chapters)

    async def invoke_sub_agent(self, persona: Persona, task: str) -> str:
        """
        在新的回合中运行子 Agent，结束后把其输出追加到共享历史。
        子 Agent 只拿到不含删除、资产生成与委派的工具子集，因此不会继续递归。
        """
        self.events.notify(EventType.TRANSFER, to=persona.value)
        logger.info(f"Sub-Agent 调用: {persona.value}")

        system_prompt = self.prompts.resolve_many(PROMPT_CODES.values())[PROMPT_CODES[persona]]
        context = await self.context.build_full_context(task)

        runner = TurnRunner(
            persona.value, self.completion, self.events,
            on_text=lambda text: self.events.notify(EventType.SUB_AGENT_STREAM, agent=persona.value, text=text),
        )
        full_response = await runner.run(
            system_prompt, self.tools.sub_agent_tools(), [{"role": USER, "content": context}], self.max_steps,
        )

        self.events.notify(EventType.SUB_AGENT_END, agent=persona.value)
        self.history.append(ASSISTANT, full_response)
        logger.info(f"Sub-Agent 完成: {persona.value}")
        return full_response or f"{persona.value} finished the task"

    async def call(self, message: str) -> str:
        """处理一条用户消息，返回主 Agent 的完整回复"""
        self.history.append(USER, message)

        env_context = await self.context.build_environment()
        main_prompt = self.prompts.resolve(MAIN_PROMPT_CODE)

        runner = TurnRunner(
            MAIN_AGENT, self.completion, self.events,
            on_text=lambda text: self.events.notify(EventType.DATA, text=text),
        )
        self.last_turn = runner
        full_response = await runner.run(
            f"{env_context}\n{main_prompt}", self.tools.all_tools(), self.history.to_messages(), self.max_steps,
        )

        self.history.append(ASSISTANT, full_response)
        self.events.notify(EventType.RESPONSE, text=full_response)
        return full_response
