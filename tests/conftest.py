from pathlib import Path

import pytest

from fsmgen import CodeGenerator, compile_source

DATA_DIR = Path(__file__).parent / "data"


@pytest.fixture
def data_dir():
    return DATA_DIR


@pytest.fixture
def generator():
    return CodeGenerator()


@pytest.fixture
def build_module(generator):
    """Compile DSL text and load the generated module."""
    def _build(*texts, module_name="machine_under_test"):
        specs = [compile_source(text, source=f"<machine {i}>") for i, text in enumerate(texts)]
        return generator.load(specs, module_name=module_name)
    return _build
