"""Compile DSL source into a validated MachineSpec."""

from pathlib import Path

from fsmgen.model import MachineSpec
from fsmgen.parser import TransitionParser
from fsmgen.table import TableBuilder


def compile_source(text: str, source: str = '<string>') -> MachineSpec:
    machine = TransitionParser().parse(text, source=source)
    return TableBuilder(machine).build()


def compile_file(path) -> MachineSpec:
    machine = TransitionParser().parse_file(Path(path))
    return TableBuilder(machine).build()
