"""Tests for product spec slot filling."""

import pytest

from salesflow.conversation.slot_manager import SLOT_LIBRARY, SlotManager
from salesflow.conversation.state_machine import FlowStage
from salesflow.schemas.session_schema import ProductSpecs


class TestSlotManager:
    def setup_method(self):
        self.specs = ProductSpecs()
        self.manager = SlotManager(self.specs, ["width", "percentage"])

    def test_first_missing_slot(self):
        assert self.manager.get_next_empty_slot().name == "width"

    def test_width_from_answer(self):
        ok, _ = self.manager.set_slot("width", "de 4.20")
        assert ok
        assert self.specs.width == 4.2
        assert self.manager.get_next_empty_slot().name == "percentage"

    def test_roll_answer_sets_length_too(self):
        ok, _ = self.manager.set_slot("width", "4.20x100")
        assert ok
        assert (self.specs.width, self.specs.length) == (4.2, 100)

    def test_bare_percentage(self):
        ok, _ = self.manager.set_slot("percentage", "90")
        assert ok
        assert self.specs.percentage == 90

    def test_unsold_percentage_rejected(self):
        ok, msg = self.manager.set_slot("percentage", "45%")
        assert not ok
        assert "porcentaje" in msg
        assert self.specs.percentage is None

    def test_unparseable_answer(self):
        ok, msg = self.manager.set_slot("width", "no sé")
        assert not ok
        assert "ancho" in msg

    def test_all_required_filled(self):
        self.manager.set_slot("width", "2.10")
        self.manager.set_slot("percentage", "al 90%")
        assert self.manager.all_required_filled()
        assert self.manager.get_missing_slots() == []

    def test_quantity_is_optional(self):
        manager = SlotManager(ProductSpecs(), ["dimensions", "quantity"])
        manager.set_slot("dimensions", "4x5")
        assert manager.all_required_filled()

    def test_to_dict_skips_empty(self):
        self.manager.set_slot("width", "2.10")
        assert self.manager.to_dict() == {"width": 2.1}

    def test_unknown_slot(self):
        with pytest.raises(ValueError, match="Unknown slot"):
            SlotManager(ProductSpecs(), ["color_favorito"])


class TestSlotLibrary:
    def test_each_slot_has_an_awaiting_stage(self):
        assert SLOT_LIBRARY["dimensions"].stage == FlowStage.AWAITING_DIMENSIONS
        assert SLOT_LIBRARY["width"].stage == FlowStage.AWAITING_WIDTH
        assert SLOT_LIBRARY["length"].stage == FlowStage.AWAITING_LENGTH
        assert SLOT_LIBRARY["percentage"].stage == FlowStage.AWAITING_PERCENTAGE

    def test_set_values_validates(self):
        manager = SlotManager(ProductSpecs(), ["dimensions"])
        ok, _ = manager.set_values("dimensions", {"width": 0, "height": 5})
        assert not ok
