"""Tests for import chains and module integrity.

Ensures all public modules can be imported without errors and
that re-exports from __init__.py files work correctly.
"""

import pytest


class TestSchemaImports:
    def test_import_session_schema(self):
        from salesflow.schemas.session_schema import (
            ConversationSession, IntentBucket, SessionStatus,
        )
        session = ConversationSession(customer_id="psid-1")
        assert session.active_flow is None
        assert session.pending is None
        assert session.status == SessionStatus.ACTIVE
        assert IntentBucket.HIGH == "high"

    def test_import_message_schema(self):
        from salesflow.schemas.message_schema import ClassifierResult, FlowResponse, Intent
        assert ClassifierResult.unclear().intent == Intent.UNCLEAR
        assert FlowResponse(text="hola", handled_by="x").handoff is False

    def test_import_catalog_and_flow_schemas(self):
        from salesflow.schemas.catalog_schema import CatalogEntry, UseCase
        from salesflow.schemas.flow_schema import FlowDefinition, InputType
        assert CatalogEntry is not None
        assert InputType.TEXT == "text"


class TestConversationImports:
    def test_package_reexports(self):
        from salesflow.conversation import (
            ConversationState, FlowName, FlowStage, GuardrailPipeline, check_flow_transfer,
        )
        state = ConversationState()
        assert state.flow == FlowName.DEFAULT
        assert state.stage == FlowStage.START
        assert GuardrailPipeline().scope is not None
        assert callable(check_flow_transfer)

    def test_import_routing_modules(self):
        from salesflow.conversation.flow_manager import FlowManager
        from salesflow.conversation.flow_executor import FlowExecutor
        from salesflow.conversation.intent_dispatcher import IntentDispatcher
        from salesflow.conversation.handoff import HandoffService
        assert FlowManager is not None
        assert FlowExecutor is not None
        assert IntentDispatcher is not None
        assert HandoffService is not None

    def test_import_slot_manager(self):
        from salesflow.conversation.slot_manager import SLOT_LIBRARY, VALID_PERCENTAGES
        assert "dimensions" in SLOT_LIBRARY
        assert 90 in VALID_PERCENTAGES


class TestToolImports:
    def test_import_catalog_store(self):
        from salesflow.tools.catalog_store import SEED_ENTRIES, InMemoryCatalogStore
        assert len(SEED_ENTRIES) >= 10
        assert InMemoryCatalogStore().fail is False

    def test_import_flow_store(self):
        from salesflow.tools.flow_store import lead_capture_definition
        assert lead_capture_definition().steps

    def test_import_collaborators(self):
        from salesflow.tools.classifier import RuleBasedClassifier
        from salesflow.tools.links import InMemoryLinkTracker
        from salesflow.tools.notifications import InMemoryNotificationSink
        from salesflow.tools.renderer import TemplateRenderer
        from salesflow.tools.session_store import InMemorySessionStore
        assert RuleBasedClassifier().calls == 0
        assert InMemoryNotificationSink().sent == []
        assert InMemorySessionStore().save_count == 0
        assert InMemoryLinkTracker().fail is False
        assert TemplateRenderer().rendered == []


class TestPromptImports:
    def test_import_system_messages(self):
        from salesflow.config import settings
        from salesflow.prompts.system_messages import FALLBACK_TEXT, GREETING_TEXT
        assert settings.business.name in GREETING_TEXT
        assert FALLBACK_TEXT

    def test_import_response_templates(self):
        from salesflow.prompts.response_templates import RESPONSE_TEMPLATES, render_template
        assert callable(render_template)
        assert RESPONSE_TEMPLATES


class TestFlowRegistry:
    def test_registry_has_all_flows(self):
        from salesflow.flows import get_registered_flows
        flows = get_registered_flows()
        for name in ("default", "malla_sombra", "rollo", "borde_separador", "groundcover", "monofilamento"):
            assert name in flows

    def test_create_flow_by_name(self, components):
        from salesflow.flows import DefaultFlow, create_flow
        flow = create_flow(
            "default",
            catalog=components.catalog,
            links=components.links,
            handoff=components.handoff,
            renderer=components.renderer,
        )
        assert isinstance(flow, DefaultFlow)

    def test_create_unknown_flow_raises(self):
        from salesflow.flows import create_flow
        with pytest.raises(KeyError, match="not registered"):
            create_flow("nonexistent_flow")


class TestConfigImport:
    def test_import_config(self):
        from salesflow.config import settings
        assert settings.business.name is not None
        assert settings.flows.lead_capture_flow_key
        assert settings.scoring.low_threshold < settings.scoring.high_threshold


class TestConsoleDemo:
    def test_console_session_imports(self):
        from console_demo import ConsoleSession
        session = ConsoleSession()
        assert session.customer_id == "console-demo"
        assert "malla" in session.SCENARIOS
        assert session.components.sessions.save_count == 0
