"""
Flow executor: runs data-described step scripts (lead capture and the like).

A FlowDefinition is an ordered list of steps. A run lives on the session
as ``flow_run`` (current step plus collected variables) and is discarded
on completion or abandonment; only the definition's counters persist.

Step transitions:
    option branch  >  first matching condition  >  step's next_step
Steps whose ``skip_if`` holds are skipped, on start too. A missing next
step completes the run. Completions are recorded per ``run_id`` so a
retried turn never counts the same completion twice.

Usage:
    executor = FlowExecutor(flow_store, handoff_service)
    response = await executor.start("lead_capture", session, trigger_message=text)
    response = await executor.advance("Juan Pérez", session)
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from salesflow.conversation.entity_normalizer import parse_dimensions
from salesflow.conversation.handoff import HandoffService
from salesflow.conversation.step_inputs import OptionsInput, input_for
from salesflow.schemas.flow_schema import (
    CompletionAction,
    FlowDefinition,
    FlowStep,
    InputType,
    SkipCondition,
    StepCondition,
)
from salesflow.schemas.message_schema import FlowResponse
from salesflow.schemas.session_schema import ConversationSession, FlowRun

logger = logging.getLogger(__name__)

DEFAULT_CLOSING = "Gracias por la información."


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def condition_holds(condition: StepCondition, data: dict[str, Any]) -> bool:
    value = data.get(condition.variable)
    if value is None:
        return False
    if condition.operator == "equals":
        return str(value).lower() == condition.value.lower()
    if condition.operator == "contains":
        return condition.value.lower() in str(value).lower()
    if condition.operator in ("gt", "lt"):
        left, right = _as_float(value), _as_float(condition.value)
        if left is None or right is None:
            return False
        return left > right if condition.operator == "gt" else left < right
    logger.warning("Unknown condition operator '%s'", condition.operator)
    return False


def should_skip(skip: Optional[SkipCondition], data: dict[str, Any]) -> bool:
    if skip is None:
        return False
    value = data.get(skip.variable)
    if skip.operator == "exists":
        return value not in (None, "")
    if skip.operator == "not_exists":
        return value in (None, "")
    if skip.operator == "equals":
        return value is not None and str(value).lower() == str(skip.value or "").lower()
    logger.warning("Unknown skip operator '%s'", skip.operator)
    return False


class FlowExecutor:
    """Starts, advances and abandons flow runs stored on the session."""

    def __init__(
        self,
        flow_store,
        handoff: HandoffService,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._store = flow_store
        self._handoff = handoff
        self._clock = clock

    @staticmethod
    def is_in_flow(session: ConversationSession) -> bool:
        return session.flow_run is not None

    # ------------------------------------------------------------------ #
    #  Step navigation
    # ------------------------------------------------------------------ #

    @staticmethod
    def _target(definition: FlowDefinition, step_id: Optional[str]) -> Optional[FlowStep]:
        target = definition.get_step(step_id)
        if step_id and target is None:
            logger.error(
                "Configuration error: flow '%s' points to missing step '%s'",
                definition.key, step_id,
            )
        return target

    def _default_next(self, definition: FlowDefinition, step: FlowStep, data: dict[str, Any]) -> Optional[FlowStep]:
        for condition in step.conditions:
            if condition_holds(condition, data):
                return self._target(definition, condition.next_step)
        return self._target(definition, step.next_step)

    def _skip_forward(
        self, definition: FlowDefinition, step: Optional[FlowStep], data: dict[str, Any]
    ) -> Optional[FlowStep]:
        # A skip chain longer than the script means the definition loops.
        for _ in range(len(definition.steps) + 1):
            if step is None or not should_skip(step.skip_if, data):
                return step
            logger.debug("Skipping step '%s'", step.step_id)
            step = self._default_next(definition, step, data)
        logger.error("Skip loop in flow '%s'; completing run", definition.key)
        return None

    @staticmethod
    def _step_response(definition: FlowDefinition, step: FlowStep, run: FlowRun) -> FlowResponse:
        return FlowResponse(
            text=step.message,
            handled_by=f"flow_{definition.key}",
            metadata={
                "run_id": run.run_id,
                "step_id": step.step_id,
                "input_type": step.input_type.value,
                "options": [o.label for o in step.options],
            },
        )

    def _prepopulate(self, session: ConversationSession, trigger_message: Optional[str]) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if session.product_interest:
            data["product_type"] = session.product_interest
        dims = parse_dimensions(trigger_message) if trigger_message else None
        if dims is not None:
            data["requested_size"] = dims.key
        return data

    async def _load(self, key: str) -> Optional[FlowDefinition]:
        definition = await self._store.get_definition(key)
        if definition is None or not definition.active:
            logger.error("Flow definition not found or inactive: %s", key)
            return None
        return definition

    # ------------------------------------------------------------------ #
    #  Public operations
    # ------------------------------------------------------------------ #

    async def start(
        self, key: str, session: ConversationSession, trigger_message: Optional[str] = None
    ) -> Optional[FlowResponse]:
        """Begin a run of ``key`` and return its first question."""
        definition = await self._load(key)
        if definition is None:
            session.flow_run = None
            return None

        first = definition.first_step()
        if first is None:
            logger.error("Flow '%s' has no steps", key)
            session.flow_run = None
            return None

        data = self._prepopulate(session, trigger_message)
        now = self._clock()
        run = FlowRun(
            flow_key=key,
            current_step=first.step_id,
            collected_data=data,
            started_at=now,
            last_activity_at=now,
            trigger_message=trigger_message,
        )
        await self._store.increment_counter(key, "start_count")

        step = self._skip_forward(definition, first, data)
        if step is None:
            logger.info("All steps of '%s' skipped; completing immediately", key)
            return await self._complete(definition, run, session)

        run.current_step = step.step_id
        session.flow_run = run
        session.last_intent = f"flow_{key}_start"
        logger.info("Started flow '%s' at step '%s'", key, step.step_id)
        return self._step_response(definition, step, run)

    async def start_for_intent(
        self, intent: str, session: ConversationSession, trigger_message: Optional[str] = None
    ) -> Optional[FlowResponse]:
        """Start the active definition whose ``trigger_intent`` is ``intent``, if any."""
        definition = await self._store.find_by_trigger_intent(intent)
        if definition is None:
            return None
        return await self.start(definition.key, session, trigger_message)

    def _expired(self, definition: FlowDefinition, run: FlowRun, now: datetime) -> bool:
        last_seen = run.last_activity_at or run.started_at
        return now - last_seen > timedelta(minutes=definition.timeout_minutes)

    async def advance(self, text: str, session: ConversationSession) -> Optional[FlowResponse]:
        """Feed one customer answer to the current step."""
        run = session.flow_run
        if run is None:
            return None

        definition = await self._load(run.flow_key)
        if definition is None:
            session.flow_run = None
            return None

        step = definition.get_step(run.current_step)
        if step is None:
            logger.error("Step '%s' missing from flow '%s'", run.current_step, run.flow_key)
            session.flow_run = None
            return None

        now = self._clock()
        if self._expired(definition, run, now):
            logger.info("Flow '%s' idle for over %d min", run.flow_key, definition.timeout_minutes)
            await self.abandon(session, reason="timeout")
            return None
        # Any answer, even a rejected one, keeps the run alive.
        run.last_activity_at = now

        kind = input_for(step)
        error = kind.validate(step, text)
        if error:
            logger.debug("Step '%s' rejected input: %s", step.step_id, error)
            return FlowResponse(
                text=error,
                handled_by=f"flow_{definition.key}_validation",
                metadata={"run_id": run.run_id, "step_id": step.step_id},
            )

        value = kind.normalize(step, text)
        data = dict(run.collected_data)
        if step.collect_as:
            data[step.collect_as] = value

        next_step: Optional[FlowStep] = None
        if step.input_type == InputType.OPTIONS:
            option = OptionsInput.match(step, text)
            if option is not None and option.next_step:
                next_step = self._target(definition, option.next_step)
        if next_step is None:
            next_step = self._default_next(definition, step, data)
        next_step = self._skip_forward(definition, next_step, data)

        run = run.model_copy(update={"collected_data": data})
        if next_step is None:
            return await self._complete(definition, run, session)

        run.current_step = next_step.step_id
        session.flow_run = run
        session.last_intent = f"flow_{definition.key}_{next_step.step_id}"
        return self._step_response(definition, next_step, run)

    async def _complete(
        self, definition: FlowDefinition, run: FlowRun, session: ConversationSession
    ) -> Optional[FlowResponse]:
        first_time = await self._store.record_completion(definition.key, run.run_id)
        if not first_time:
            logger.debug("Completion of run %s already counted", run.run_id)

        data = run.collected_data
        session.flow_run = None
        session.flow_collected_data = dict(data)
        on_complete = definition.on_complete
        logger.info("Flow '%s' complete (%s)", definition.key, on_complete.action.value)

        if on_complete.action == CompletionAction.HANDOFF:
            names = on_complete.include_variables or list(data)
            notes = "\n".join(f"{name}: {data[name]}" for name in names if name in data)
            reason = on_complete.handoff_reason or f"Flow: {definition.name}"
            text = self._handoff.execute(
                session,
                reason,
                prefix=on_complete.message or "",
                with_timing=not on_complete.message,
                notification=f"Flow completado: {definition.name}\n{notes}",
            )
            return FlowResponse(
                text=text,
                handled_by=f"flow_{definition.key}_complete_handoff",
                handoff=True,
                metadata={"handoff_notes": notes},
            )

        if on_complete.action == CompletionAction.FLOW and on_complete.next_flow:
            chained = await self.start(on_complete.next_flow, session)
            if chained is not None and on_complete.message:
                chained.text = f"{on_complete.message}\n\n{chained.text}"
            return chained

        if on_complete.action == CompletionAction.INTENT and on_complete.trigger_intent:
            session.last_intent = on_complete.trigger_intent
            return FlowResponse(
                text=on_complete.message or DEFAULT_CLOSING,
                handled_by=f"flow_{definition.key}_complete_intent",
                metadata={"trigger_intent": on_complete.trigger_intent},
            )

        return FlowResponse(
            text=on_complete.message or DEFAULT_CLOSING,
            handled_by=f"flow_{definition.key}_complete",
        )

    async def abandon(self, session: ConversationSession, reason: str = "abandoned") -> Optional[FlowResponse]:
        """Drop the current run, counting it and applying ``on_abandon``."""
        run = session.flow_run
        if run is None:
            return None
        session.flow_run = None

        definition = await self._store.get_definition(run.flow_key)
        if definition is None:
            return None
        await self._store.increment_counter(definition.key, "abandon_count")
        logger.info("Flow '%s' abandoned (%s)", definition.key, reason)

        if definition.on_abandon.action == "handoff":
            self._handoff.execute(session, f"Flow abandonado: {definition.name}", with_timing=False)
        if definition.on_abandon.message:
            return FlowResponse(
                text=definition.on_abandon.message,
                handled_by=f"flow_{definition.key}_abandon",
                handoff=session.handoff_requested,
            )
        return None
