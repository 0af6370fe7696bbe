"""Local value numbering and dead-code elimination for Bril-style JSON IR."""
from .cfg import Block, ControlFlowGraph, build_cfg, flatten
from .errors import InputError, IRError, MalformedIRError, SerializationError
from .ir import Argument, Function, Instruction, Program, dump_program, load_program
from .lvn import optimize_block, optimize_function, optimize_program

__version__ = "0.1.0"
