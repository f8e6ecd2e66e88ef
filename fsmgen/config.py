"""
fsmgen Configuration - Single Source of Truth

Holds the naming tables, capability vocabulary and generated-file header used
throughout the compiler. Change the header text or the accepted capability
spellings here and every generated artifact picks it up.

Usage:
    from fsmgen.config import GENERATOR_CONFIG
    print(GENERATOR_CONFIG['project']['name'])
"""

import keyword
from typing import FrozenSet, Iterable, Optional

from fsmgen.errors import CapabilityError

GENERATOR_CONFIG = {
    # Project Information
    'project': {
        'name': 'fsmgen',
        'description': 'Transition-table state machine compiler',
        'version': '0.3.0',
    },

    # Output file naming (per input stem)
    'outputs': {
        'python': '{stem}_sm.py',
        'xml': '{stem}_table.xml',
    },

    # Generated Code Header
    'generated_code_header': {
        'title': 'GENERATED CODE - do not edit by hand',
        'regenerate': 'Regenerate with: fsmgen {sources}',
    },

    # Serialized table format
    'table_format': {
        'root': 'statemachine',
        'version': '1',
    },
}

# Derive names accepted in derive_states / derive_events, mapped to the
# capability they switch on in the emitted enumeration.
CAPABILITY_ALIASES = {
    'repr': 'repr',
    'Debug': 'repr',
    'copy': 'copy',
    'Clone': 'copy',
    'Copy': 'copy',
    'eq': 'eq',
    'PartialEq': 'eq',
    'Eq': 'eq',
    'hash': 'hash',
    'Hash': 'hash',
}

CAPABILITIES = ('eq', 'hash', 'copy', 'repr')

# Used when a derive list is omitted entirely.
DEFAULT_CAPABILITIES = frozenset(CAPABILITIES)

# Attribute names the generated enumerations already use.
RESERVED_IDENTIFIERS = frozenset({
    'default', 'process_event', 'name', 'value', 'mro', 'classmethod', 'Optional',
})


def is_reserved_identifier(ident: str) -> bool:
    """True if ``ident`` cannot be emitted as an enumeration member"""
    return keyword.iskeyword(ident) or ident in RESERVED_IDENTIFIERS


def resolve_capabilities(names: Optional[Iterable[str]], kind: str = 'states',
                         **error_kwargs) -> FrozenSet[str]:
    """
    Normalize a derive list into a capability set.

    Args:
        names: Derive names as written in the source, or None if the
            derive block was omitted
        kind: 'states' or 'events', used in diagnostics
        **error_kwargs: Position and source forwarded to CapabilityError

    Returns:
        Frozen set drawn from CAPABILITIES
    """
    if names is None:
        return DEFAULT_CAPABILITIES

    resolved = set()
    for name in names:
        capability = CAPABILITY_ALIASES.get(name)
        if capability is None:
            known = ', '.join(sorted(CAPABILITY_ALIASES))
            raise CapabilityError(
                f"unknown capability '{name}' in derive_{kind}",
                hint=f"supported names: {known}",
                **error_kwargs,
            )
        resolved.add(capability)
    return frozenset(resolved)


def get_output_filename(stem: str, fmt: str) -> str:
    """Get the artifact filename for an input stem and output format"""
    if fmt not in GENERATOR_CONFIG['outputs']:
        raise ValueError(f"Unknown output format: {fmt}")
    return GENERATOR_CONFIG['outputs'][fmt].format(stem=stem)


def get_generated_file_header(sources: Iterable[str]) -> str:
    """
    Get the comment header placed at the top of every generated module.

    The header names the generator and the DSL sources the module was
    compiled from.
    """
    config = GENERATOR_CONFIG
    project = config['project']
    header = config['generated_code_header']
    source_list = ' '.join(sources) or '<string>'

    return (
        f"# {header['title']}\n"
        f"#\n"
        f"# Generated by {project['name']} {project['version']}\n"
        f"# From: {source_list}\n"
        f"# {header['regenerate'].format(sources=source_list)}\n"
    )
