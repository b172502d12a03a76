from scriptwright.agents.engine import OutlineAgent, TurnRunner, TurnState
from scriptwright.agents.events import AgentEvent, EventBus, EventType, RefreshTarget
from scriptwright.agents.history import ConversationHistory
from scriptwright.agents.personas import Persona

__all__ = [
    "AgentEvent", "ConversationHistory", "EventBus", "EventType", "OutlineAgent",
    "Persona", "RefreshTarget", "TurnRunner", "TurnState",
]
