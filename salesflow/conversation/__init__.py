from salesflow.conversation.guardrails import GuardrailPipeline
from salesflow.conversation.state_machine import (
    ConversationState,
    FlowName,
    FlowStage,
    check_flow_transfer,
)

__all__ = [
    "ConversationState",
    "FlowName",
    "FlowStage",
    "check_flow_transfer",
    "GuardrailPipeline",
]
