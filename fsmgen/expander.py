"""
Pattern expansion

Turns one clause into the concrete transitions it denotes. Wildcard sources
are kept as event -> target rules; they are resolved against the full state
set by the table builder.
"""

from itertools import product
from typing import Optional

from fsmgen.errors import InvalidInternalTransitionError
from fsmgen.model import Clause, Expansion, Transition, WildcardRule


def expand_clause(clause: Clause, source: Optional[str] = None) -> Expansion:
    """
    Expand a clause into transitions or wildcard rules

    Args:
        clause: Parsed clause
        source: Input name for diagnostics

    Returns:
        Expansion holding the clause's (state, event, target) triples in
        source order, or its wildcard rules for a '_' source
    """
    expansion = Expansion(clause=clause)

    if clause.states.wildcard:
        if clause.target.is_internal:
            raise InvalidInternalTransitionError.at(
                "target '_' is not allowed on a wildcard source", clause,
                hint="a wildcard clause has no single source state to stay in; name the target state",
                source=source,
            )
        expansion.wildcard_rules = [
            WildcardRule(event, clause.target.name, clause) for event in clause.events
        ]
        return expansion

    for state, event in product(clause.states.states, clause.events):
        target = state if clause.target.is_internal else clause.target.name
        expansion.transitions.append(Transition(state, event, target, clause))
    return expansion
