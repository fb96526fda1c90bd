from salesflow.flows.base import FlowContext, ProductFlow
from salesflow.flows.borde_flow import BordeSeparadorFlow
from salesflow.flows.default_flow import DefaultFlow
from salesflow.flows.groundcover_flow import GroundcoverFlow
from salesflow.flows.malla_flow import MallaSombraFlow
from salesflow.flows.monofilamento_flow import MonofilamentoFlow
from salesflow.flows.rollo_flow import RolloFlow
from salesflow.flows.registry import create_flow, get_registered_flows, register_flow

__all__ = [
    "FlowContext", "ProductFlow",
    "DefaultFlow", "MallaSombraFlow", "RolloFlow", "BordeSeparadorFlow",
    "GroundcoverFlow", "MonofilamentoFlow",
    "create_flow", "register_flow", "get_registered_flows",
]
