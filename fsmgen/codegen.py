#!/usr/bin/env python3
"""
State Machine Code Generator (Python + Jinja2)

Generates Python state machine modules from transition-table DSL files.
Each module defines the State and Event enumerations and the process_event
lookup of every machine compiled into it. Can also write the serialized
XML table read by fsmgen.table_xml.TableMachine.
"""

import argparse
import logging
import re
import sys
import types
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from jinja2 import Environment, FileSystemLoader, select_autoescape

from fsmgen.compiler import compile_file
from fsmgen.config import get_generated_file_header, get_output_filename
from fsmgen.errors import CompileError, NamespaceCollisionError
from fsmgen.model import MachineSpec
from fsmgen.table_xml import to_xml

logger = logging.getLogger(__name__)


class CodeGenerator:
    """
    Code generator for compiled state machines

    Uses Jinja2 templates to generate Python code from MachineSpec models.
    """

    def __init__(self, template_dir=None):
        if template_dir is None:
            template_dir = Path(__file__).parent / 'templates'

        # Setup Jinja2 environment
        self.env = Environment(
            loader=FileSystemLoader(str(template_dir)),
            autoescape=select_autoescape(['html', 'xml']),
            trim_blocks=True,
            lstrip_blocks=True,
            keep_trailing_newline=True,
        )

        # Add custom filters
        self.env.filters['snake'] = self._snake_case
        self.env.filters['comment'] = self._escape_comment

    def _snake_case(self, name):
        """PlayerOne -> player_one, HTTPServer -> http_server"""
        return re.sub(r'(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])', '_', name).lower()

    def _escape_comment(self, text):
        """Keep text on a single comment line"""
        if not text:
            return ""
        return ' '.join(str(text).split())

    def qualified_names(self, spec: MachineSpec) -> Dict[str, str]:
        """
        Names emitted for a machine

        Unnamed machines get State / Event / process_event; a namespace
        prefixes every one of them so several machines can share a module.
        """
        if not spec.name:
            return {
                'state_type': 'State',
                'event_type': 'Event',
                'function': 'process_event',
                'table': '_TRANSITIONS',
            }
        snake = self._snake_case(spec.name)
        return {
            'state_type': f'{spec.name}State',
            'event_type': f'{spec.name}Event',
            'function': f'{snake}_process_event',
            'table': f'_{snake.upper()}_TRANSITIONS',
        }

    def _check_namespaces(self, specs: Sequence[MachineSpec]):
        owners = {}
        for spec in specs:
            for name in self.qualified_names(spec).values():
                other = owners.get(name)
                if other is not None:
                    raise NamespaceCollisionError(
                        f"machines from {other.source} and {spec.source} both define '{name}'",
                        source=spec.source,
                        hint="give each machine a distinct name: entry",
                    )
                owners[name] = spec

    def _build_rows(self, spec: MachineSpec) -> List[Dict]:
        """Dense table rows: one per state, one cell per event"""
        index = {state: i for i, state in enumerate(spec.states)}
        rows = []
        for state in spec.states:
            cells = []
            moves = []
            for event in spec.events:
                target = spec.table.lookup(state, event)
                if target is None:
                    cells.append('None')
                    continue
                cells.append(str(index[target]))
                suffix = ' (any state)' if spec.table.origin(state, event) == 'wildcard' else ''
                moves.append(f'{event} -> {target}{suffix}')
            comment = f"{state}: {', '.join(moves)}" if moves else f'{state}: no transitions'
            rows.append({'state': state, 'cells': cells, 'comment': comment})
        return rows

    def _machine_context(self, spec: MachineSpec) -> Dict:
        context = dict(self.qualified_names(spec))
        context.update(
            display_name=spec.name or Path(spec.source).stem,
            states=spec.states,
            events=spec.events,
            initial=spec.initial,
            rows=self._build_rows(spec),
            state_capabilities=spec.state_capabilities,
            event_capabilities=spec.event_capabilities,
        )
        return context

    def render(self, specs: Sequence[MachineSpec], sources: Optional[Sequence[str]] = None) -> str:
        """
        Render one Python module holding every machine in ``specs``

        Raises:
            NamespaceCollisionError: two machines would emit the same names
        """
        self._check_namespaces(specs)
        if sources is None:
            sources = [spec.source for spec in specs]

        template = self.env.get_template('state_machine.py.jinja2')
        return template.render(
            header=get_generated_file_header(sources),
            machines=[self._machine_context(spec) for spec in specs],
        )

    def load(self, specs: Sequence[MachineSpec], module_name: str = 'fsmgen_generated') -> types.ModuleType:
        """Render ``specs`` and execute the result as a fresh module"""
        source = self.render(specs)
        module = types.ModuleType(module_name)
        module.__file__ = f'<{module_name}>'
        exec(compile(source, module.__file__, 'exec'), module.__dict__)
        logger.debug("Loaded generated module %s (%d machine(s))", module_name, len(specs))
        return module

    def generate(self, source_paths: Sequence[str], output_dir: str, fmt: str = 'python',
                 module: Optional[str] = None) -> bool:
        """
        Generate artifacts from DSL files

        Args:
            source_paths: Input DSL files
            output_dir: Directory for generated files
            fmt: 'python' writes one module for all inputs, 'xml' writes one
                serialized table per input
            module: Output module stem (default: stem of the first input)

        Returns:
            True if generation succeeded, False otherwise
        """
        try:
            specs = []
            for path in source_paths:
                spec = compile_file(path)
                print(f"Generating code for: {spec.name or Path(path).stem}")
                print(f"  States: {len(spec.states)}")
                print(f"  Events: {len(spec.events)}")
                print(f"  Transitions: {len(spec.table)}")
                specs.append(spec)

            output_dir = Path(output_dir)
            output_dir.mkdir(parents=True, exist_ok=True)

            if fmt == 'xml':
                for path, spec in zip(source_paths, specs):
                    output_path = output_dir / get_output_filename(Path(path).stem, 'xml')
                    output_path.write_bytes(to_xml(spec))
                    print(f"  ✓ Generated: {output_path}")
                return True

            output = self.render(specs, sources=[str(path) for path in source_paths])
            stem = module or Path(source_paths[0]).stem
            output_path = output_dir / get_output_filename(stem, fmt)

            with open(output_path, 'w', encoding='utf-8') as f:
                f.write(output)

            print(f"  ✓ Generated: {output_path}")
            return True

        except (CompileError, OSError) as e:
            print(f"Error generating code: {e}", file=sys.stderr)
            logger.debug("Generation failed", exc_info=True)
            return False


def main(argv=None):
    parser = argparse.ArgumentParser(
        description='Generate Python state machine code from transition-table DSL files'
    )
    parser.add_argument('sources', nargs='+', help='Input DSL files')
    parser.add_argument('-o', '--output-dir', default='.',
                        help='Output directory for generated files')
    parser.add_argument('-f', '--format', choices=['python', 'xml'], default='python',
                        help='python: one module for all inputs; xml: one serialized table per input')
    parser.add_argument('-m', '--module', default=None,
                        help='Output module stem (default: first input stem)')
    parser.add_argument('-t', '--template-dir', default=None,
                        help='Template directory (default: fsmgen/templates)')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Log pipeline details')

    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format='%(levelname)s %(name)s: %(message)s',
    )

    # Check input files exist
    for source in args.sources:
        if not Path(source).exists():
            print(f"Error: source file not found: {source}", file=sys.stderr)
            return 1

    generator = CodeGenerator(template_dir=args.template_dir)
    success = generator.generate(args.sources, args.output_dir, fmt=args.format, module=args.module)

    return 0 if success else 1


if __name__ == '__main__':
    sys.exit(main())
