"""
Compilation diagnostics

Every rejected input surfaces as a CompileError subclass. Errors are fatal:
the pipeline never produces a partial table or artifact.
"""

from typing import Dict, Optional, Sequence

DUPLICATE_HINT = (
    "each combination of source state and event can only appear once; "
    "use distinct events, or move conditional logic into the host application"
)


class CompileError(ValueError):
    """Base class for all compilation failures"""

    kind = "compile error"

    def __init__(self, message: str, clause=None, line: Optional[int] = None,
                 column: Optional[int] = None, hint: Optional[str] = None,
                 source: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.clause = clause
        self.line = line
        self.column = column
        self.hint = hint
        self.source = source

    @classmethod
    def at(cls, message: str, clause, **kwargs):
        """Build an error positioned on a parsed clause"""
        return cls(message, clause=clause.text, line=clause.line,
                   column=clause.column, **kwargs)

    def location(self) -> str:
        parts = [self.source or "<string>"]
        if self.line is not None:
            parts.append(str(self.line))
            if self.column is not None:
                parts.append(str(self.column))
        return ":".join(parts)

    def to_dict(self) -> Dict[str, Optional[str]]:
        return {
            'kind': self.kind,
            'message': self.message,
            'clause': self.clause,
            'source': self.source,
            'line': self.line,
            'column': self.column,
            'hint': self.hint,
        }

    def __str__(self):
        text = f"{self.location()}: {self.kind}: {self.message}"
        if self.clause:
            text += f"\n  clause: {self.clause}"
        if self.hint:
            text += f"\n  help: {self.hint}"
        return text


class TransitionSyntaxError(CompileError):
    """Source text does not match the transition grammar"""

    kind = "syntax error"


class InitialStateError(CompileError):
    """Zero or several initial markers, or a marked wildcard"""

    kind = "initial state error"


class DuplicateTransitionError(CompileError):
    """Two explicit rules for the same (state, event) pair"""

    kind = "duplicate transition"

    def __init__(self, state: str, event: str, first_target: str, second_target: str, **kwargs):
        kwargs.setdefault('hint', DUPLICATE_HINT)
        super().__init__(
            f"state '{state}' + event '{event}' is already defined "
            f"(targets '{first_target}' and '{second_target}')",
            **kwargs,
        )
        self.state = state
        self.event = event
        self.targets = (first_target, second_target)


class AmbiguousWildcardError(CompileError):
    """Two wildcard rules for the same event with different targets"""

    kind = "ambiguous wildcard"

    def __init__(self, event: str, targets: Sequence[str], **kwargs):
        kwargs.setdefault('hint', "give each wildcard event a single target state")
        super().__init__(
            f"wildcard transitions for event '{event}' disagree on the target: "
            + ", ".join(f"'{t}'" for t in targets),
            **kwargs,
        )
        self.event = event
        self.targets = tuple(targets)


class InvalidInternalTransitionError(CompileError):
    """Internal target '_' on a wildcard source"""

    kind = "invalid internal transition"


class CapabilityError(CompileError):
    """Unknown derive capability name"""

    kind = "capability error"


class NamespaceCollisionError(CompileError):
    """Two machines emit the same names into one module"""

    kind = "namespace collision"


class TableFormatError(CompileError):
    """Malformed serialized transition table"""

    kind = "table format error"
