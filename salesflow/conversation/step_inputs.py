"""
Input kinds for data-described flow steps.

Each ``InputType`` maps to one StepInput case that owns both halves of
handling an answer: ``validate`` (returns an error message or None) and
``normalize`` (returns the value stored under ``collect_as``). The flow
executor never switches on the input type itself.
"""

import logging
import re
from typing import Any, Optional

from salesflow.schemas.flow_schema import FlowStep, InputType, StepOption
from salesflow.utils import normalize_phone

logger = logging.getLogger(__name__)

REQUIRED_ERROR = "Por favor proporciona una respuesta."
PATTERN_ERROR = "El formato de la respuesta no es válido."

_PHONE = re.compile(r"^[\d\s\-\(\)\+]{7,20}$")
_EMAIL = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_POSITIVE = {"si", "sí", "yes", "ok", "claro", "perfecto", "correcto", "afirmativo"}


def _common_errors(step: FlowStep, trimmed: str) -> Optional[str]:
    """Required / length / pattern rules shared by every input kind."""
    rules = step.validation
    custom = rules.error_message
    if rules.required and not trimmed:
        return custom or REQUIRED_ERROR
    if rules.min_length and len(trimmed) < rules.min_length:
        return custom or f"La respuesta debe tener al menos {rules.min_length} caracteres."
    if rules.max_length and len(trimmed) > rules.max_length:
        return custom or f"La respuesta no puede tener más de {rules.max_length} caracteres."
    if rules.pattern:
        try:
            if not re.search(rules.pattern, trimmed, re.IGNORECASE):
                return custom or PATTERN_ERROR
        except re.error:
            logger.error("Invalid validation pattern on step '%s': %s", step.step_id, rules.pattern)
    return None


class StepInput:
    """Plain free text."""

    input_type = InputType.TEXT

    def validate(self, step: FlowStep, raw: str) -> Optional[str]:
        return _common_errors(step, raw.strip())

    def normalize(self, step: FlowStep, raw: str) -> Any:
        return raw.strip()


class TextInput(StepInput):
    pass


class OptionsInput(StepInput):
    """One of the step's options, by value, label or 1-based number."""

    input_type = InputType.OPTIONS

    @staticmethod
    def match(step: FlowStep, raw: str) -> Optional[StepOption]:
        answer = raw.strip().lower()
        if answer.isdigit():
            index = int(answer) - 1
            if 0 <= index < len(step.options):
                return step.options[index]
        for option in step.options:
            if answer in (option.value.lower(), option.label.lower()):
                return option
        return None

    def validate(self, step: FlowStep, raw: str) -> Optional[str]:
        error = super().validate(step, raw)
        if error or not step.options:
            return error
        if self.match(step, raw) is None:
            listing = "\n".join(f"{i}. {o.label}" for i, o in enumerate(step.options, start=1))
            return f"Por favor selecciona una de las opciones:\n{listing}"
        return None

    def normalize(self, step: FlowStep, raw: str) -> Any:
        option = self.match(step, raw)
        return option.value if option else raw.strip()


class ConfirmInput(StepInput):
    input_type = InputType.CONFIRM

    def normalize(self, step: FlowStep, raw: str) -> Any:
        return "yes" if raw.strip().lower() in _POSITIVE else "no"


class NumberInput(StepInput):
    input_type = InputType.NUMBER

    @staticmethod
    def _parse(raw: str) -> Optional[float]:
        try:
            return float(re.sub(r"[,$]", "", raw.strip()))
        except ValueError:
            return None

    def validate(self, step: FlowStep, raw: str) -> Optional[str]:
        error = super().validate(step, raw)
        if error:
            return error
        if self._parse(raw) is None:
            return step.validation.error_message or "Por favor proporciona un número válido."
        return None

    def normalize(self, step: FlowStep, raw: str) -> Any:
        return self._parse(raw)


class PhoneInput(StepInput):
    input_type = InputType.PHONE

    def validate(self, step: FlowStep, raw: str) -> Optional[str]:
        error = super().validate(step, raw)
        if error:
            return error
        if not _PHONE.match(raw.strip()):
            return step.validation.error_message or "Por favor proporciona un número de teléfono válido."
        return None

    def normalize(self, step: FlowStep, raw: str) -> Any:
        return normalize_phone(raw)


class EmailInput(StepInput):
    input_type = InputType.EMAIL

    def validate(self, step: FlowStep, raw: str) -> Optional[str]:
        error = super().validate(step, raw)
        if error:
            return error
        if not _EMAIL.match(raw.strip()):
            return step.validation.error_message or "Por favor proporciona un correo electrónico válido."
        return None

    def normalize(self, step: FlowStep, raw: str) -> Any:
        return raw.strip().lower()


INPUT_KINDS: dict[InputType, StepInput] = {
    kind.input_type: kind
    for kind in (TextInput(), OptionsInput(), ConfirmInput(), NumberInput(), PhoneInput(), EmailInput())
}


def input_for(step: FlowStep) -> StepInput:
    return INPUT_KINDS.get(step.input_type, INPUT_KINDS[InputType.TEXT])
