"""fsmgen - compiler for transition-table state machines."""

from fsmgen.codegen import CodeGenerator
from fsmgen.compiler import compile_file, compile_source
from fsmgen.errors import (
    AmbiguousWildcardError,
    CapabilityError,
    CompileError,
    DuplicateTransitionError,
    InitialStateError,
    InvalidInternalTransitionError,
    NamespaceCollisionError,
    TableFormatError,
    TransitionSyntaxError,
)
from fsmgen.model import MachineSpec, TransitionTable
from fsmgen.table_xml import TableMachine, from_xml, load_table, to_xml

__all__ = [
    "CodeGenerator",
    "compile_file",
    "compile_source",
    "AmbiguousWildcardError",
    "CapabilityError",
    "CompileError",
    "DuplicateTransitionError",
    "InitialStateError",
    "InvalidInternalTransitionError",
    "NamespaceCollisionError",
    "TableFormatError",
    "TransitionSyntaxError",
    "MachineSpec",
    "TransitionTable",
    "TableMachine",
    "from_xml",
    "load_table",
    "to_xml",
]
