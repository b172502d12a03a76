"""
补全服务 (Completion Service)
给定系统提示词、工具目录与消息历史，产出流式事件序列 (文本片段 / 工具调用)，
并由服务自身执行被调用的工具、把结果回填给模型，直到模型不再调用工具或达到步数上限。
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Sequence, Union

from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage, ToolMessage
from langchain_core.tools import BaseTool

from scriptwright.core.exceptions import LLMOperationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TextDelta:
    """模型输出的增量文本"""
    text: str


@dataclass(frozen=True)
class ToolCallRequest:
    """模型请求调用工具，工具执行前产出"""
    name: str
    args: Dict[str, Any] = field(default_factory=dict)


StreamEvent = Union[TextDelta, ToolCallRequest]


class CompletionService(ABC):

    @abstractmethod
    def stream_turn(self, system_prompt: str, tools: Sequence[BaseTool],
                    messages: Sequence[Dict[str, str]], max_steps: int) -> AsyncIterator[StreamEvent]:
        """
        执行一轮对话。

        Args:
            system_prompt: 系统提示词。
            tools: 本轮可用的工具。
            messages: [{"role": "user"|"assistant", "content": str}, ...]
            max_steps: 模型 <-> 工具往返的最大次数。
        """


def to_langchain_messages(messages: Sequence[Dict[str, str]]) -> List[BaseMessage]:
    converted = []
    for message in messages:
        if message["role"] == "assistant":
            converted.append(AIMessage(content=message["content"]))
        else:
            converted.append(HumanMessage(content=message["content"]))
    return converted


def content_text(content) -> str:
    """抽取消息内容中的纯文本，兼容 content blocks 形式"""
    if isinstance(content, str):
        return content
    parts = []
    for block in content or []:
        if isinstance(block, str):
            parts.append(block)
        elif isinstance(block, dict) and block.get("type") == "text":
            parts.append(block.get("text", ""))
    return "".join(parts)


class LangChainCompletionService(CompletionService):
    """
    基于 LangChain 聊天模型的补全服务。

    Args:
        model: 支持 bind_tools 的 LangChain 聊天模型，通常来自 get_llm()。
    """

    def __init__(self, model):
        self.model = model

    def _bind(self, tools: Sequence[BaseTool]):
        if not tools:
            return self.model
        try:
            return self.model.bind_tools(list(tools))
        except NotImplementedError as e:
            raise LLMOperationError(f"model {type(self.model).__name__} does not support tool calling") from e

    async def stream_turn(self, system_prompt: str, tools: Sequence[BaseTool],
                          messages: Sequence[Dict[str, str]], max_steps: int) -> AsyncIterator[StreamEvent]:
        tools_by_name = {t.name: t for t in tools}
        model = self._bind(tools)
        conversation: List[BaseMessage] = [SystemMessage(content=system_prompt), *to_langchain_messages(messages)]

        for step in range(max_steps):
            gathered = None
            async for chunk in model.astream(conversation):
                text = content_text(chunk.content)
                if text:
                    yield TextDelta(text)
                gathered = chunk if gathered is None else gathered + chunk

            tool_calls = getattr(gathered, "tool_calls", None) or []
            if not tool_calls:
                return
            conversation.append(gathered)

            for call in tool_calls:
                yield ToolCallRequest(name=call["name"], args=call.get("args") or {})
                tool = tools_by_name.get(call["name"])
                if tool is None:
                    logger.warning(f"模型请求了未声明的工具: {call['name']}")
                    conversation.append(ToolMessage(
                        content=f"Unknown tool: {call['name']}",
                        tool_call_id=call.get("id") or "",
                        status="error",
                    ))
                    continue
                result = await tool.ainvoke({**call, "type": "tool_call"})
                if not isinstance(result, ToolMessage):
                    result = ToolMessage(content=str(result), tool_call_id=call.get("id") or "")
                conversation.append(result)

        logger.warning(f"达到最大步数 {max_steps}，强制结束本轮")
