"""Tests for table construction and validation."""
import pytest

from fsmgen import compile_file, compile_source
from fsmgen.config import DEFAULT_CAPABILITIES
from fsmgen.errors import (
    AmbiguousWildcardError,
    CapabilityError,
    DuplicateTransitionError,
    InvalidInternalTransitionError,
)


def compile_rules(*rules, **meta):
    entries = "".join(f"{key}: {value}, " for key, value in meta.items())
    return compile_source(entries + "transitions: {\n" + ",\n".join(rules) + "\n}")


class TestIdentifiers:
    """State and event enumeration order."""

    def test_first_seen_order_initial_first(self):
        spec = compile_rules(
            "Running + Stop = Idle",
            "*Idle + Start = Running",
            "_ + Fail = Broken",
        )

        assert spec.states == ["Idle", "Running", "Broken"]
        assert spec.events == ["Stop", "Start", "Fail"]
        assert spec.initial == "Idle"

    def test_targets_become_states(self):
        spec = compile_rules("*A + Go = B", "B + Go = C")

        assert spec.states == ["A", "B", "C"]

    def test_initial_is_first_alternative_of_marked_clause(self):
        spec = compile_rules("Other + X = Y", "*Ready | Waiting + Start = Active")

        assert spec.initial == "Ready"
        assert spec.states[0] == "Ready"


class TestExplicitTransitions:

    def test_lookup(self):
        spec = compile_rules("*Idle + Start = Running", "Running + Stop = Idle")

        assert spec.table.lookup("Idle", "Start") == "Running"
        assert spec.table.lookup("Running", "Stop") == "Idle"
        assert spec.table.lookup("Idle", "Stop") is None
        assert len(spec.table) == 2

    def test_duplicate_different_targets(self):
        with pytest.raises(DuplicateTransitionError) as excinfo:
            compile_rules("*Idle + Start = Running", "Idle + Start = Stopped")

        error = excinfo.value
        assert error.state == "Idle"
        assert error.event == "Start"
        assert error.targets == ("Running", "Stopped")
        assert error.line == 3
        assert "distinct events" in error.hint
        assert "line 2" in error.hint

    def test_duplicate_identical_targets(self):
        with pytest.raises(DuplicateTransitionError):
            compile_rules("*Idle + Start = Running", "Idle + Start = Running")

    def test_duplicate_through_alternation(self):
        with pytest.raises(DuplicateTransitionError) as excinfo:
            compile_rules("*Idle + Start = Running", "Waiting | Idle + Stop | Start = Done")

        assert (excinfo.value.state, excinfo.value.event) == ("Idle", "Start")

    def test_internal_transition(self):
        spec = compile_rules("*Moving + Tick = _")

        assert spec.table.lookup("Moving", "Tick") == "Moving"


class TestWildcards:

    def test_precedence(self):
        spec = compile_rules(
            "*Idle + Start = Running",
            "Running + Reset = Running",
            "_ + Reset = Idle",
        )

        assert spec.table.lookup("Running", "Reset") == "Running"
        assert spec.table.origin("Running", "Reset") == "explicit"
        assert spec.table.lookup("Idle", "Reset") == "Idle"
        assert spec.table.origin("Idle", "Reset") == "wildcard"
        assert spec.table.wildcard_rules == {"Reset": "Idle"}

    def test_wildcard_covers_every_state(self):
        spec = compile_rules("*A + Go = B", "B + Go = C", "_ + Off = A")

        assert [spec.table.lookup(s, "Off") for s in spec.states] == ["A", "A", "A"]

    def test_wildcard_declared_before_explicit_rule(self):
        spec = compile_rules("_ + Reset = Idle", "*Idle + Start = Running", "Running + Reset = Paused")

        assert spec.table.lookup("Running", "Reset") == "Paused"
        assert spec.table.lookup("Paused", "Reset") == "Idle"

    def test_ambiguous_wildcard(self):
        with pytest.raises(AmbiguousWildcardError) as excinfo:
            compile_rules("*Idle + Start = Running", "_ + Reset = Idle", "_ + Reset = Running")

        assert excinfo.value.event == "Reset"
        assert excinfo.value.targets == ("Idle", "Running")
        assert excinfo.value.line == 4

    def test_ambiguous_wildcard_through_grouping(self):
        with pytest.raises(AmbiguousWildcardError):
            compile_rules("*Idle + Start = Running", "_ + Stop | Reset = Idle", "_ + Pause | Reset = Running")

    def test_identical_wildcards_merge(self):
        spec = compile_rules("*Idle + Start = Running", "_ + Reset = Idle", "_ + Halt | Reset = Idle")

        assert spec.table.wildcard_rules == {"Reset": "Idle", "Halt": "Idle"}

    def test_wildcard_internal_target(self):
        with pytest.raises(InvalidInternalTransitionError):
            compile_rules("*Idle + Start = Running", "_ + Tick = _")


class TestCapabilities:

    def test_default(self):
        spec = compile_rules("*Idle + Start = Running")

        assert spec.state_capabilities == DEFAULT_CAPABILITIES
        assert spec.event_capabilities == DEFAULT_CAPABILITIES

    def test_derive_names_are_normalized(self):
        spec = compile_rules(
            "*Idle + Start = Running",
            derive_states="[Debug, PartialEq, Eq]",
            derive_events="[Clone, Hash]",
        )

        assert spec.state_capabilities == {"repr", "eq"}
        assert spec.event_capabilities == {"copy", "hash"}

    def test_unknown_capability(self):
        with pytest.raises(CapabilityError, match="Serialize"):
            compile_rules("*Idle + Start = Running", derive_states="[Debug, Serialize]")

    def test_unknown_capability_points_at_derive_entry(self, tmp_path):
        path = tmp_path / "lamp.fsm"
        path.write_text(
            "name: Lamp,\n"
            "derive_states: [Debug],\n"
            "derive_events: [Hash, Display],\n"
            "transitions: { *Off + Toggle = On }\n"
        )

        with pytest.raises(CapabilityError) as excinfo:
            compile_file(path)

        error = excinfo.value
        assert "derive_events" in error.message
        assert error.source == str(path)
        assert (error.line, error.column) == (3, 1)
        assert str(error).startswith(f"{path}:3:1: ")


class TestSampleMachines:

    def test_robot(self, data_dir):
        spec = compile_file(data_dir / "robot.fsm")

        assert spec.initial == "Off"
        assert spec.states == ["Off", "Idle", "Moving", "Waiting", "EmergencyStopped"]
        assert spec.table.lookup("Moving", "Tick") == "Moving"
        assert spec.table.lookup("Waiting", "EmergencyStop") == "EmergencyStopped"
        assert spec.table.lookup("EmergencyStopped", "PowerOff") == "Off"
        assert spec.table.lookup("Off", "Tick") is None

    def test_broken(self, data_dir):
        with pytest.raises(DuplicateTransitionError) as excinfo:
            compile_file(data_dir / "broken.fsm")

        assert excinfo.value.source.endswith("broken.fsm")
