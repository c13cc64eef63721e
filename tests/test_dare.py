"""Tests for the DARE flow stepper."""

import pytest
from sakina.dare import DARE_STEPS, DareFlow


class TestDareFlow:
    def test_step_order(self):
        assert [s.id for s in DARE_STEPS] == ["defuse", "allow", "run_toward", "engage"]

    def test_walk_forward_and_back(self):
        flow = DareFlow()
        assert flow.is_first
        assert flow.next().id == "allow"
        assert flow.progress == (2, 4)
        assert flow.previous().id == "defuse"

    def test_clamped_at_ends(self):
        flow = DareFlow()
        assert flow.previous().id == "defuse"
        for _ in range(10):
            flow.next()
        assert flow.is_last
        assert flow.current.id == "engage"

    def test_empty_steps_rejected(self):
        with pytest.raises(ValueError):
            DareFlow(())
