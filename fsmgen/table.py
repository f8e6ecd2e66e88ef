"""
Transition Table Builder

Accumulates clause expansions into the canonical (state, event) -> target
table and rejects duplicates and ambiguous wildcards. The result is a
MachineSpec ready for the emitters.
"""

import logging
from typing import Dict, List, Tuple

from fsmgen.config import resolve_capabilities
from fsmgen.errors import AmbiguousWildcardError, DuplicateTransitionError, InitialStateError
from fsmgen.expander import expand_clause
from fsmgen.model import Expansion, MachineSpec, ParsedMachine, Transition, TransitionTable, WildcardRule

logger = logging.getLogger(__name__)


def _append_unique(items: List[str], item: str):
    if item not in items:
        items.append(item)


class TableBuilder:
    """
    Builds and validates the transition table of one machine

    Explicit transitions always take precedence over wildcard rules; a
    wildcard rule only fills (state, event) pairs that have no explicit
    entry.
    """

    def __init__(self, machine: ParsedMachine):
        self.machine = machine
        self.source = machine.source

    def build(self) -> MachineSpec:
        expansions = [expand_clause(clause, source=self.source) for clause in self.machine.clauses]

        states, events = self._collect_identifiers(expansions)
        explicit = self._insert_explicit(expansions)
        wildcard_rules = self._merge_wildcard_rules(expansions)

        entries = {key: t.target for key, t in explicit.items()}
        wildcard_keys = set()
        for event, rule in wildcard_rules.items():
            for state in states:
                if (state, event) in entries:
                    continue
                entries[(state, event)] = rule.target
                wildcard_keys.add((state, event))

        table = TransitionTable(
            entries=entries,
            wildcard_rules={event: rule.target for event, rule in wildcard_rules.items()},
            wildcard_keys=frozenset(wildcard_keys),
        )

        logger.debug(
            "Built table for %s: %d state(s), %d event(s), %d explicit and %d wildcard entries",
            self.machine.name or self.source, len(states), len(events),
            len(explicit), len(wildcard_keys),
        )

        return MachineSpec(
            states=states,
            events=events,
            table=table,
            name=self.machine.name,
            state_capabilities=self._capabilities('states'),
            event_capabilities=self._capabilities('events'),
            source=self.source,
        )

    def _capabilities(self, kind: str):
        key = f'derive_{kind}'
        line, column = self.machine.derive_positions.get(key, (None, None))
        return resolve_capabilities(getattr(self.machine, key), kind,
                                    source=self.source, line=line, column=column)

    def _collect_identifiers(self, expansions: List[Expansion]) -> Tuple[List[str], List[str]]:
        """Distinct states and events in first-seen order, initial state first"""
        initial_clause = self.machine.initial_clause
        if initial_clause is None:
            raise InitialStateError("no clause is marked initial", source=self.source)
        initial = initial_clause.states.states[0]

        states = [initial]
        events = []
        for expansion in expansions:
            clause = expansion.clause
            for state in clause.states.states:
                _append_unique(states, state)
            if not clause.target.is_internal:
                _append_unique(states, clause.target.name)
            for event in clause.events:
                _append_unique(events, event)
        return states, events

    def _insert_explicit(self, expansions: List[Expansion]) -> Dict[Tuple[str, str], Transition]:
        table: Dict[Tuple[str, str], Transition] = {}
        for expansion in expansions:
            for transition in expansion.transitions:
                key = (transition.state, transition.event)
                previous = table.get(key)
                if previous is not None:
                    raise self._duplicate(previous, transition)
                table[key] = transition
        return table

    def _duplicate(self, previous: Transition, transition: Transition) -> DuplicateTransitionError:
        clause = transition.clause
        error = DuplicateTransitionError(
            transition.state, transition.event, previous.target, transition.target,
            clause=clause.text, line=clause.line, column=clause.column, source=self.source,
        )
        if previous.clause is not None and previous.clause is not clause:
            error.hint += f" (first defined at line {previous.clause.line}: '{previous.clause.text}')"
        return error

    def _merge_wildcard_rules(self, expansions: List[Expansion]) -> Dict[str, WildcardRule]:
        """One rule per event; rules naming the same target are merged"""
        rules: Dict[str, WildcardRule] = {}
        for expansion in expansions:
            for rule in expansion.wildcard_rules:
                previous = rules.get(rule.event)
                if previous is None:
                    rules[rule.event] = rule
                elif previous.target != rule.target:
                    clause = rule.clause
                    raise AmbiguousWildcardError(
                        rule.event, [previous.target, rule.target],
                        clause=clause.text, line=clause.line, column=clause.column,
                        source=self.source,
                    )
        return rules


def build_table(machine: ParsedMachine) -> MachineSpec:
    return TableBuilder(machine).build()
