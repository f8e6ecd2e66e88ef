"""
Transition table model

Dataclasses shared by every pipeline stage: parsed clauses, expanded
transitions, the validated table and the machine description handed to the
emitters.
"""

from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple


@dataclass
class StatePattern:
    """Source side of a clause: alternatives or the '_' wildcard"""
    states: List[str] = field(default_factory=list)
    wildcard: bool = False
    initial: bool = False  # clause carries the leading '*'


@dataclass
class TargetSpec:
    """Destination of a clause; name None means '_' (stay in the source state)"""
    name: Optional[str] = None

    @property
    def is_internal(self) -> bool:
        return self.name is None


@dataclass
class Clause:
    """One 'states + events = target' rule, as written"""
    states: StatePattern
    events: List[str]
    target: TargetSpec
    text: str = ""
    line: Optional[int] = None
    column: Optional[int] = None


@dataclass(frozen=True)
class Transition:
    """Concrete (state, event) -> target triple"""
    state: str
    event: str
    target: str
    clause: Optional[Clause] = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class WildcardRule:
    """Event -> target rule applying to every state without an explicit rule"""
    event: str
    target: str
    clause: Optional[Clause] = field(default=None, compare=False, repr=False)


@dataclass
class Expansion:
    """Everything one clause denotes"""
    clause: Clause
    transitions: List[Transition] = field(default_factory=list)
    wildcard_rules: List[WildcardRule] = field(default_factory=list)


@dataclass
class ParsedMachine:
    """Parser output: metadata shell plus clauses in source order"""
    name: Optional[str] = None
    derive_states: Optional[List[str]] = None  # None when the block is absent
    derive_events: Optional[List[str]] = None
    # (line, column) of each derive entry key
    derive_positions: Dict[str, Tuple[int, int]] = field(default_factory=dict)
    clauses: List[Clause] = field(default_factory=list)
    source: str = "<string>"

    @property
    def initial_clause(self) -> Optional[Clause]:
        for clause in self.clauses:
            if clause.states.initial:
                return clause
        return None


@dataclass
class TransitionTable:
    """
    Validated (state, event) -> target mapping

    ``entries`` is fully resolved: wildcard rules have already been applied
    to every state lacking an explicit rule. ``wildcard_rules`` keeps the
    event -> target rules for serialization. ``wildcard_keys`` marks which
    entries came from a wildcard rule.
    """
    entries: Dict[Tuple[str, str], str] = field(default_factory=dict)
    wildcard_rules: Dict[str, str] = field(default_factory=dict)
    wildcard_keys: FrozenSet[Tuple[str, str]] = frozenset()

    def lookup(self, state: str, event: str) -> Optional[str]:
        return self.entries.get((state, event))

    def origin(self, state: str, event: str) -> Optional[str]:
        key = (state, event)
        if key not in self.entries:
            return None
        return 'wildcard' if key in self.wildcard_keys else 'explicit'

    def __len__(self):
        return len(self.entries)

    def __contains__(self, key):
        return key in self.entries


@dataclass
class MachineSpec:
    """Compiled machine, the sole input of the emitters"""
    states: List[str]
    events: List[str]
    table: TransitionTable
    name: Optional[str] = None
    state_capabilities: FrozenSet[str] = frozenset()
    event_capabilities: FrozenSet[str] = frozenset()
    source: str = "<string>"

    @property
    def initial(self) -> str:
        return self.states[0]
