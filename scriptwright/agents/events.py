"""
事件总线 (Event Bus)
编排引擎在构造时注入一个 EventBus，观察者在 call() 之前订阅、结束后退订。
观察者是接收 AgentEvent 的可调用对象，单个观察者抛出的异常只记录日志，不影响本轮对话。
"""
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    REFRESH = "refresh"
    TRANSFER = "transfer"
    TOOL_CALL = "toolCall"
    SUB_AGENT_STREAM = "subAgentStream"
    SUB_AGENT_END = "subAgentEnd"
    DATA = "data"
    RESPONSE = "response"


class RefreshTarget(str, Enum):
    STORYLINE = "storyline"
    OUTLINE = "outline"
    ASSETS = "assets"


@dataclass(frozen=True)
class AgentEvent:
    type: EventType
    data: Dict[str, Any] = field(default_factory=dict)


Observer = Callable[[AgentEvent], None]


class EventBus:

    def __init__(self):
        self._observers: List[Observer] = []

    def subscribe(self, observer: Observer) -> Callable[[], None]:
        """订阅事件，返回对应的退订函数"""
        self._observers.append(observer)
        return lambda: self.unsubscribe(observer)

    def unsubscribe(self, observer: Observer):
        if observer in self._observers:
            self._observers.remove(observer)

    @property
    def observer_count(self) -> int:
        return len(self._observers)

    def notify(self, event_type: EventType, **data):
        event = AgentEvent(type=event_type, data=data)
        for observer in list(self._observers):
            try:
                observer(event)
            except Exception as e:
                logger.error(f"观察者处理事件 {event_type.value} 失败: {e}", exc_info=True)

    def refresh(self, target: RefreshTarget):
        self.notify(EventType.REFRESH, target=target.value)
