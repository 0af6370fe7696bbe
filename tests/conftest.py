# tests/conftest.py
"""Small builders for IR snippets used across the test modules."""

import pytest

from bril_lvn.cfg import Block
from bril_lvn.ir import Function, Instruction, Argument


def const(dest, value, type="int"):
    return Instruction(op="const", dest=dest, type=type, value=value)


def op(opcode, dest, *args, type="int"):
    return Instruction(op=opcode, dest=dest, type=type, args=list(args))


def effect(opcode, *args, labels=()):
    return Instruction(op=opcode, args=list(args), labels=list(labels))


def label(name):
    return Instruction(label=name)


def block(*instrs, successors=()):
    return Block(instrs=list(instrs), successors=list(successors))


def func(name, *instrs, params=()):
    return Function(name=name, instrs=list(instrs),
                    args=[Argument(p, "int") for p in params])


def text(instrs):
    return [str(i) for i in instrs]


@pytest.fixture
def loop_program_json():
    """A counting loop over parameter `n`, as Bril JSON."""
    return {
        "functions": [{
            "name": "main",
            "args": [{"name": "n", "type": "int"}],
            "instrs": [
                {"op": "const", "dest": "zero", "type": "int", "value": 0},
                {"op": "const", "dest": "i", "type": "int", "value": 0},
                {"label": "loop"},
                {"op": "lt", "dest": "cond", "type": "bool", "args": ["i", "n"]},
                {"op": "br", "args": ["cond"], "labels": ["body", "end"]},
                {"label": "body"},
                {"op": "const", "dest": "one", "type": "int", "value": 1},
                {"op": "add", "dest": "i", "type": "int", "args": ["i", "one"]},
                {"op": "jmp", "labels": ["loop"]},
                {"label": "end"},
                {"op": "print", "args": ["i"]},
            ],
        }]
    }
