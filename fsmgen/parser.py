"""
Transition DSL Parser

Parses transition-table source text into a ParsedMachine: the optional
name / derive metadata and the ordered clause list. Grammar lives in
grammar.lark; this module walks the lark tree and enforces the rules the
grammar cannot express (entry keys, reserved identifiers, initial markers).
"""

import logging
from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from lark import Lark, Token, Tree
from lark.exceptions import UnexpectedCharacters, UnexpectedEOF, UnexpectedInput, UnexpectedToken

from fsmgen.config import is_reserved_identifier
from fsmgen.errors import InitialStateError, TransitionSyntaxError
from fsmgen.model import Clause, ParsedMachine, StatePattern, TargetSpec

logger = logging.getLogger(__name__)

# Readable names for lark terminals in "expected ..." messages
TOKEN_NAMES = {
    'IDENT': 'identifier',
    'WILDCARD': "'_'",
    'INITIAL': "'*'",
    'PLUS': "'+'",
    'EQUAL': "'='",
    'VBAR': "'|'",
    'COMMA': "','",
    'COLON': "':'",
    'LSQB': "'['",
    'RSQB': "']'",
    'LBRACE': "'{'",
    'RBRACE': "'}'",
    '$END': 'end of input',
}


@lru_cache(maxsize=None)
def _load_grammar() -> Lark:
    return Lark.open('grammar.lark', rel_to=__file__, parser='lalr', propagate_positions=True)


class TransitionParser:
    """
    Parser for the transition-table DSL

    Produces clauses in source order. Raises TransitionSyntaxError for text
    that does not match the grammar and InitialStateError when the '*'
    marker is missing, repeated or placed on the wildcard.
    """

    METADATA_KEYS = ('name', 'derive_states', 'derive_events')
    TRANSITIONS_KEY = 'transitions'

    def __init__(self):
        self.lark = _load_grammar()
        self.text = ''
        self.source = '<string>'

    def parse_file(self, path) -> ParsedMachine:
        """
        Parse a DSL file

        Args:
            path: Path to the source file

        Returns:
            ParsedMachine with clauses in source order
        """
        path = Path(path)
        try:
            text = path.read_text(encoding='utf-8')
        except UnicodeDecodeError as e:
            raise TransitionSyntaxError(
                f"cannot decode byte 0x{e.object[e.start]:02x} at offset {e.start}",
                source=str(path),
                hint="source files must be UTF-8",
            ) from e
        return self.parse(text, source=str(path))

    def parse(self, text: str, source: str = '<string>') -> ParsedMachine:
        """Parse DSL source text"""
        self.text = text
        self.source = source

        try:
            tree = self.lark.parse(text)
        except UnexpectedInput as e:
            raise self._syntax_error(e) from e

        machine = ParsedMachine(source=source)
        seen_keys = set()
        block = None

        for entry in tree.children:
            key_token = entry.children[0]
            key = str(key_token)

            if block is not None:
                raise self._error(
                    TransitionSyntaxError,
                    f"unexpected entry '{key}' after the transitions block",
                    key_token,
                    hint="the transitions block must be the last entry",
                )
            if key in seen_keys:
                raise self._error(TransitionSyntaxError, f"duplicate entry '{key}'", key_token)
            seen_keys.add(key)

            if entry.data == 'name_entry' and key == 'name':
                machine.name = self._identifier(entry.children[1])
            elif entry.data == 'derive_entry' and key == 'derive_states':
                machine.derive_states = [str(tok) for tok in entry.children[1].children]
                machine.derive_positions[key] = (key_token.line, key_token.column)
            elif entry.data == 'derive_entry' and key == 'derive_events':
                machine.derive_events = [str(tok) for tok in entry.children[1].children]
                machine.derive_positions[key] = (key_token.line, key_token.column)
            elif entry.data == 'block_entry' and key == self.TRANSITIONS_KEY:
                block = entry
                machine.clauses = self._transform_clause_block(entry.children[1])
            elif key in self.METADATA_KEYS or key == self.TRANSITIONS_KEY:
                raise self._error(
                    TransitionSyntaxError, f"malformed value for '{key}'", key_token,
                    hint=self._entry_hint(key),
                )
            else:
                raise self._error(
                    TransitionSyntaxError,
                    f"unknown entry '{key}'; expected 'name', 'derive_states', "
                    f"'derive_events', or 'transitions'",
                    key_token,
                )

        if block is None:
            raise TransitionSyntaxError("expected 'transitions' block", source=source,
                                        hint="declare transitions: { *Initial + Event = Target, ... }")
        if not machine.clauses:
            raise self._error(TransitionSyntaxError, "transitions block is empty", block.children[0])

        self._check_initial_markers(machine, block.children[0])

        logger.debug("Parsed %d clause(s) from %s", len(machine.clauses), source)
        return machine

    def _entry_hint(self, key: str) -> str:
        if key == 'name':
            return "use name: Identifier"
        if key == self.TRANSITIONS_KEY:
            return "use transitions: { ... }"
        return f"use {key}: [Capability, ...]"

    def _transform_clause_block(self, node: Tree) -> List[Clause]:
        return [self._transform_clause(child) for child in node.children
                if isinstance(child, Tree) and child.data == 'clause']

    def _transform_clause(self, node: Tree) -> Clause:
        state_node, event_node, target_node = node.children

        clause = Clause(
            states=self._transform_state_pattern(state_node),
            events=[self._identifier(tok) for tok in event_node.children],
            target=self._transform_target(target_node),
            text=' '.join(self.text[node.meta.start_pos:node.meta.end_pos].split()),
            line=node.meta.line,
            column=node.meta.column,
        )
        return clause

    def _transform_state_pattern(self, node: Tree) -> StatePattern:
        pattern = StatePattern()
        for tok in node.children:
            if tok.type == 'INITIAL':
                pattern.initial = True
            elif tok.type == 'WILDCARD':
                pattern.wildcard = True
            else:
                pattern.states.append(self._identifier(tok))
        return pattern

    def _transform_target(self, node: Tree) -> TargetSpec:
        tok = node.children[0]
        if tok.type == 'WILDCARD':
            return TargetSpec()
        return TargetSpec(self._identifier(tok))

    def _identifier(self, tok: Token) -> str:
        ident = str(tok)
        if is_reserved_identifier(ident):
            raise self._error(TransitionSyntaxError, f"identifier '{ident}' is reserved", tok,
                              hint="rename the state or event")
        return ident

    def _check_initial_markers(self, machine: ParsedMachine, block_token: Token):
        marked = [clause for clause in machine.clauses if clause.states.initial]

        for clause in marked:
            if clause.states.wildcard:
                raise InitialStateError.at(
                    "the wildcard source '_' cannot be marked initial", clause,
                    hint="mark a concrete state with '*'", source=self.source,
                )

        if not marked:
            raise self._error(
                InitialStateError, "no clause is marked initial", block_token,
                hint="prefix exactly one source state with '*', e.g. *Idle + Start = Running",
            )

        if len(marked) > 1:
            first = marked[0]
            raise InitialStateError.at(
                f"more than one clause is marked initial (first marked at line {first.line}: "
                f"'{first.text}')",
                marked[1],
                hint="only one clause may carry the '*' marker",
                source=self.source,
            )

    def _line_text(self, line: Optional[int]) -> Optional[str]:
        if not line:
            return None
        lines = self.text.splitlines()
        if line > len(lines):
            return None
        return lines[line - 1].strip() or None

    def _error(self, cls, message: str, tok: Token, **kwargs):
        return cls(message, clause=self._line_text(tok.line), line=tok.line,
                   column=tok.column, source=self.source, **kwargs)

    def _syntax_error(self, e: UnexpectedInput) -> TransitionSyntaxError:
        """Convert a lark parse failure into a positioned diagnostic"""
        line = getattr(e, 'line', None)
        column = getattr(e, 'column', None)

        if isinstance(e, UnexpectedEOF) or line is None or line < 1:
            lines = self.text.splitlines() or ['']
            line = len(lines)
            column = len(lines[-1]) + 1
            message = "unexpected end of input"
        elif isinstance(e, UnexpectedToken):
            message = f"unexpected {self._describe_token(e.token)}"
        elif isinstance(e, UnexpectedCharacters):
            message = f"unexpected character '{e.char}'"
        else:
            message = "malformed input"

        expected = sorted(getattr(e, 'expected', None) or getattr(e, 'allowed', None) or ())
        hint = None
        if expected:
            hint = "expected " + ", ".join(TOKEN_NAMES.get(name, name) for name in expected)

        return TransitionSyntaxError(message, clause=self._line_text(line), line=line,
                                     column=column, hint=hint, source=self.source)

    def _describe_token(self, tok: Token) -> str:
        if tok.type == '$END':
            return "end of input"
        return f"{TOKEN_NAMES.get(tok.type, tok.type)} '{tok}'"


def parse_text(text: str, source: str = '<string>') -> ParsedMachine:
    return TransitionParser().parse(text, source=source)
