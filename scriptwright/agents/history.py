"""
对话历史
一次编排会话内共享的、只追加的角色消息日志。主 Agent 与子 Agent 持有同一个实例的引用。
"""
from dataclasses import dataclass
from typing import Dict, Iterator, List

USER = "user"
ASSISTANT = "assistant"


@dataclass(frozen=True)
class Turn:
    role: str
    content: str


class ConversationHistory:

    def __init__(self):
        self._turns: List[Turn] = []

    def append(self, role: str, content: str):
        if role not in (USER, ASSISTANT):
            raise ValueError(f"unsupported role: {role}")
        self._turns.append(Turn(role=role, content=content))

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(list(self._turns))

    def to_messages(self) -> List[Dict[str, str]]:
        return [{"role": t.role, "content": t.content} for t in self._turns]

    def render(self) -> str:
        if not self._turns:
            return "No conversation history"
        return "\n\n".join(f"{t.role}: {t.content}" for t in self._turns)
