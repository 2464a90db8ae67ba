"""Shared helpers for the H@mer test suite."""

import pytest

from aarch64_sim import run
from hamer.codegen import CodeGen
from hamer.lexer import tokenize
from hamer.parser import Parser


def parse_source(code: str) -> list:
    """Parse H@mer source text into statements."""
    return Parser(tokenize(code)).parse()


def generate(program, **kwargs) -> str:
    """Generate assembly from source text or a statement list."""
    statements = parse_source(program) if isinstance(program, str) else program
    return CodeGen(statements, **kwargs).generate()


@pytest.fixture
def execute():
    """Compile a program and run it on the simulator."""

    def _execute(program, counter=0x5EED):
        return run(generate(program), counter=counter)

    return _execute
