"""
Serialized transition tables

Writes a compiled MachineSpec as an XML document and reads it back, plus
TableMachine, a small interpreter that answers process_event from a loaded
table without generating code.

Document layout:

    <statemachine version="1" name="Player" initial="Idle">
      <states capabilities="eq hash"><state id="Idle"/>...</states>
      <events capabilities="repr"><event id="Start"/>...</events>
      <transitions>
        <transition state="Idle" event="Start" target="Running" origin="explicit"/>
      </transitions>
      <wildcards><wildcard event="Reset" target="Idle"/></wildcards>
    </statemachine>
"""

import logging
from pathlib import Path
from typing import List, Optional

from lxml import etree

from fsmgen.config import CAPABILITIES, GENERATOR_CONFIG
from fsmgen.errors import TableFormatError
from fsmgen.model import MachineSpec, TransitionTable

logger = logging.getLogger(__name__)

ROOT_TAG = GENERATOR_CONFIG['table_format']['root']
FORMAT_VERSION = GENERATOR_CONFIG['table_format']['version']


def _capability_attr(capabilities) -> str:
    return ' '.join(c for c in CAPABILITIES if c in capabilities)


def to_xml(spec: MachineSpec) -> bytes:
    """Serialize a compiled machine"""
    root = etree.Element(ROOT_TAG, version=FORMAT_VERSION, initial=spec.initial)
    if spec.name:
        root.set('name', spec.name)

    states = etree.SubElement(root, 'states', capabilities=_capability_attr(spec.state_capabilities))
    for state in spec.states:
        etree.SubElement(states, 'state', id=state)

    events = etree.SubElement(root, 'events', capabilities=_capability_attr(spec.event_capabilities))
    for event in spec.events:
        etree.SubElement(events, 'event', id=event)

    transitions = etree.SubElement(root, 'transitions')
    for state in spec.states:
        for event in spec.events:
            target = spec.table.lookup(state, event)
            if target is None:
                continue
            etree.SubElement(transitions, 'transition', state=state, event=event,
                             target=target, origin=spec.table.origin(state, event))

    wildcards = etree.SubElement(root, 'wildcards')
    for event, target in spec.table.wildcard_rules.items():
        etree.SubElement(wildcards, 'wildcard', event=event, target=target)

    return etree.tostring(root, pretty_print=True, xml_declaration=True, encoding='utf-8')


class _TableReader:
    """Rebuilds a MachineSpec from a parsed document, checking references"""

    def __init__(self, root, source: str):
        self.root = root
        self.source = source

    def error(self, message: str, elem=None) -> TableFormatError:
        line = elem.sourceline if elem is not None else None
        return TableFormatError(message, line=line, source=self.source)

    def attr(self, elem, name: str) -> str:
        value = elem.get(name)
        if not value:
            raise self.error(f"<{elem.tag}> is missing the '{name}' attribute", elem)
        return value

    def section(self, tag: str):
        elem = self.root.find(tag)
        if elem is None:
            raise self.error(f"missing <{tag}> section", self.root)
        return elem

    def identifiers(self, section_tag: str, item_tag: str) -> List[str]:
        items = []
        for elem in self.section(section_tag).findall(item_tag):
            ident = self.attr(elem, 'id')
            if ident in items:
                raise self.error(f"duplicate <{item_tag}> '{ident}'", elem)
            items.append(ident)
        if not items:
            raise self.error(f"<{section_tag}> is empty", self.section(section_tag))
        return items

    def capabilities(self, section_tag: str):
        value = self.section(section_tag).get('capabilities', '')
        names = frozenset(value.split())
        unknown = names - set(CAPABILITIES)
        if unknown:
            raise self.error(f"unknown capabilities in <{section_tag}>: {' '.join(sorted(unknown))}",
                             self.section(section_tag))
        return names

    def read(self) -> MachineSpec:
        if self.root.tag != ROOT_TAG:
            raise self.error(f"expected <{ROOT_TAG}> root element, found <{self.root.tag}>", self.root)

        states = self.identifiers('states', 'state')
        events = self.identifiers('events', 'event')
        initial = self.attr(self.root, 'initial')
        if states[0] != initial:
            raise self.error(f"initial state '{initial}' must be the first <state>", self.root)

        entries = {}
        wildcard_keys = set()
        for elem in self.section('transitions').findall('transition'):
            state, event, target = (self.attr(elem, key) for key in ('state', 'event', 'target'))
            for kind, ident, known in (('state', state, states), ('event', event, events),
                                       ('state', target, states)):
                if ident not in known:
                    raise self.error(f"<transition> references unknown {kind} '{ident}'", elem)
            if (state, event) in entries:
                raise self.error(f"duplicate <transition> for state '{state}' + event '{event}'", elem)
            entries[(state, event)] = target
            if elem.get('origin') == 'wildcard':
                wildcard_keys.add((state, event))

        wildcard_rules = {}
        wildcards = self.root.find('wildcards')
        if wildcards is not None:
            for elem in wildcards.findall('wildcard'):
                event, target = self.attr(elem, 'event'), self.attr(elem, 'target')
                if event not in events or target not in states:
                    raise self.error(f"<wildcard> for '{event}' references an unknown identifier", elem)
                wildcard_rules[event] = target

        return MachineSpec(
            states=states,
            events=events,
            table=TransitionTable(entries=entries, wildcard_rules=wildcard_rules,
                                  wildcard_keys=frozenset(wildcard_keys)),
            name=self.root.get('name') or None,
            state_capabilities=self.capabilities('states'),
            event_capabilities=self.capabilities('events'),
            source=self.source,
        )


def from_xml(data: bytes, source: str = '<string>') -> MachineSpec:
    """Rebuild a MachineSpec from a serialized table"""
    try:
        root = etree.fromstring(data)
    except etree.XMLSyntaxError as e:
        raise TableFormatError(f"malformed XML: {e}", source=source) from e
    return _TableReader(root, source).read()


def load_table(path) -> MachineSpec:
    path = Path(path)
    logger.info("Loading serialized table: %s", path)
    return from_xml(path.read_bytes(), source=str(path))


class TableMachine:
    """
    Interprets a compiled table by state and event name

    process_event never raises: unknown names and pairs without a
    transition both yield None.
    """

    def __init__(self, spec: MachineSpec):
        self.spec = spec
        self._entries = dict(spec.table.entries)

    @classmethod
    def from_file(cls, path) -> 'TableMachine':
        return cls(load_table(path))

    @property
    def name(self) -> Optional[str]:
        return self.spec.name

    @property
    def initial(self) -> str:
        return self.spec.initial

    @property
    def states(self) -> List[str]:
        return list(self.spec.states)

    @property
    def events(self) -> List[str]:
        return list(self.spec.events)

    def process_event(self, state: str, event: str) -> Optional[str]:
        if not isinstance(state, str) or not isinstance(event, str):
            return None
        return self._entries.get((state, event))
