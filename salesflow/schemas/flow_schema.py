"""Data-described flow definitions executed by the flow executor."""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class InputType(str, Enum):
    TEXT = "text"
    OPTIONS = "options"
    CONFIRM = "confirm"
    NUMBER = "number"
    PHONE = "phone"
    EMAIL = "email"


class StepOption(BaseModel):
    label: str
    value: str
    next_step: Optional[str] = None


class StepValidation(BaseModel):
    required: bool = True
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    error_message: Optional[str] = None


class StepCondition(BaseModel):
    """Branch to ``next_step`` when ``variable <operator> value`` holds."""
    variable: str
    operator: str  # "equals" | "contains" | "gt" | "lt"
    value: str
    next_step: Optional[str] = None


class SkipCondition(BaseModel):
    variable: str
    operator: str  # "equals" | "exists" | "not_exists"
    value: Optional[str] = None


class FlowStep(BaseModel):
    step_id: str
    order: int
    message: str
    collect_as: Optional[str] = None
    input_type: InputType = InputType.TEXT
    options: list[StepOption] = Field(default_factory=list)
    validation: StepValidation = Field(default_factory=StepValidation)
    next_step: Optional[str] = None
    conditions: list[StepCondition] = Field(default_factory=list)
    skip_if: Optional[SkipCondition] = None


class CompletionAction(str, Enum):
    MESSAGE = "message"
    HANDOFF = "handoff"
    INTENT = "intent"
    FLOW = "flow"


class OnComplete(BaseModel):
    action: CompletionAction = CompletionAction.MESSAGE
    message: Optional[str] = None
    handoff_reason: Optional[str] = None
    include_variables: list[str] = Field(default_factory=list)
    trigger_intent: Optional[str] = None
    next_flow: Optional[str] = None


class OnAbandon(BaseModel):
    action: str = "none"  # "none" | "message" | "handoff"
    message: Optional[str] = None


class FlowDefinition(BaseModel):
    """
    An ordered step script plus completion behavior.

    The definition itself is never discarded by a run; only its counters
    change, and they only ever increase.
    """
    key: str
    name: str
    description: Optional[str] = None
    trigger_intent: Optional[str] = None
    steps: list[FlowStep] = Field(default_factory=list)
    start_step: Optional[str] = None
    on_complete: OnComplete = Field(default_factory=OnComplete)
    on_abandon: OnAbandon = Field(default_factory=OnAbandon)
    active: bool = True
    timeout_minutes: int = 30

    start_count: int = 0
    complete_count: int = 0
    abandon_count: int = 0

    def get_step(self, step_id: Optional[str]) -> Optional[FlowStep]:
        if step_id is None:
            return None
        for step in self.steps:
            if step.step_id == step_id:
                return step
        return None

    def first_step(self) -> Optional[FlowStep]:
        """Explicit ``start_step`` if set, else the step with the lowest order."""
        if self.start_step:
            return self.get_step(self.start_step)
        if not self.steps:
            return None
        return min(self.steps, key=lambda s: s.order)
