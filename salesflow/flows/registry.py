"""
Flow registry: handler lookup by flow name without import cycles.

The flow manager never imports the product flows directly. Every handler
class is registered here under its FlowName value and resolved at
dispatch time, so adding a product line means adding one module and one
``register_flow`` line.
"""

import logging
from typing import Any, Callable

logger = logging.getLogger(__name__)

_FLOW_REGISTRY: dict[str, Callable[..., Any]] = {}


def register_flow(name: str, factory: Callable[..., Any]) -> None:
    """Register a flow handler factory by name."""
    _FLOW_REGISTRY[name] = factory
    logger.debug("Flow registered: %s", name)


def create_flow(name: str, **kwargs: Any) -> Any:
    """Create a flow handler by registered name.

    Raises:
        KeyError: If the flow name is not registered.
    """
    if name not in _FLOW_REGISTRY:
        registered = list(_FLOW_REGISTRY.keys())
        raise KeyError(f"Flow '{name}' not registered. Available: {registered}")
    return _FLOW_REGISTRY[name](**kwargs)


def get_registered_flows() -> list[str]:
    """Return names of all registered flows."""
    return list(_FLOW_REGISTRY.keys())


def _auto_register() -> None:
    """Auto-register the built-in handlers. Called once at import time."""
    from salesflow.conversation.state_machine import FlowName
    from salesflow.flows.borde_flow import BordeSeparadorFlow
    from salesflow.flows.default_flow import DefaultFlow
    from salesflow.flows.groundcover_flow import GroundcoverFlow
    from salesflow.flows.malla_flow import MallaSombraFlow
    from salesflow.flows.monofilamento_flow import MonofilamentoFlow
    from salesflow.flows.rollo_flow import RolloFlow

    register_flow(FlowName.DEFAULT.value, DefaultFlow)
    register_flow(FlowName.MALLA_SOMBRA.value, MallaSombraFlow)
    register_flow(FlowName.ROLLO.value, RolloFlow)
    register_flow(FlowName.BORDE_SEPARADOR.value, BordeSeparadorFlow)
    register_flow(FlowName.GROUNDCOVER.value, GroundcoverFlow)
    register_flow(FlowName.MONOFILAMENTO.value, MonofilamentoFlow)


_auto_register()
