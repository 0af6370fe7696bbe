"""
Local value numbering combined with dead-code elimination.

Each basic block is handled on its own, in three passes:
  1. number every definition (constants and pure operations share numbers
     when they are structurally equal),
  2. close the set of used numbers over the operands of used expressions,
  3. rewrite arguments to the first producer of each number and drop
     definitions whose number is never used.
"""
import json
from collections import deque
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Set, Tuple, Union

from .cfg import Block, ControlFlowGraph, build_cfg, flatten
from .errors import MalformedIRError
from .ir import Function, Instruction, Program

# Value ops that read or change state; each occurrence gets its own number.
IMPURE_OPS = {"call", "alloc", "load"}
COMMUTATIVE = {"add", "mul", "and", "or", "eq"}


@dataclass(frozen=True)
class Constant:
    type: Optional[str]
    literal: str


@dataclass(frozen=True)
class Operation:
    op: str
    args: Tuple[int, ...]


Expression = Union[Constant, Operation]


def literal_key(value) -> str:
    # JSON text keeps `true` apart from `1`, and lists/objects hashable
    return json.dumps(value, sort_keys=True)


def normalize_value(instr: Instruction, arg_nums: List[int]) -> Expression:
    if instr.is_const():
        return Constant(instr.type, literal_key(instr.value))
    if instr.op in COMMUTATIVE:
        return Operation(instr.op, tuple(sorted(arg_nums)))
    return Operation(instr.op, tuple(arg_nums))


class NameSupply:
    """Fresh temporaries that collide with no name the function already uses."""

    def __init__(self, taken=()):
        self.taken: Set[str] = set(taken)
        self.counter = 0

    @classmethod
    def for_instrs(cls, instrs, params=()):
        taken = set(params)
        for instr in instrs:
            if instr.dest is not None:
                taken.add(instr.dest)
            taken.update(instr.args)
        return cls(taken)

    def fresh(self) -> str:
        while True:
            v = f"_lvn{self.counter}"
            self.counter += 1
            if v not in self.taken:
                self.taken.add(v)
                return v


class ValueTable:
    """Numbering state of a single block."""

    def __init__(self):
        self.var2num: Dict[str, int] = {}
        self.external: Dict[str, int] = {}
        self.table: Dict[Expression, int] = {}
        self.num2expr: Dict[int, Expression] = {}
        self.used: Set[int] = set()
        self.next_num = 0

    def fresh(self, expr: Optional[Expression] = None) -> int:
        num = self.next_num
        self.next_num += 1
        if expr is not None:
            self.num2expr[num] = expr
        return num

    def number(self, expr: Expression) -> int:
        if expr not in self.table:
            self.table[expr] = self.fresh(expr)
        return self.table[expr]

    def resolve(self, var: str) -> int:
        if var in self.var2num:
            return self.var2num[var]
        # Read before any local definition: an incoming value.
        if var not in self.external:
            self.external[var] = self.fresh()
        return self.external[var]

    def close_used(self) -> None:
        queue = deque(self.used)
        while queue:
            expr = self.num2expr.get(queue.popleft())
            if not isinstance(expr, Operation):
                continue
            for n in expr.args:
                if n not in self.used:
                    self.used.add(n)
                    queue.append(n)


def check_instr(instr: Instruction) -> None:
    if instr.op is None:
        what = f"definition of {instr.dest!r}" if instr.has_dest() else "instruction"
        raise MalformedIRError(f"{what} has no opcode")
    if instr.is_branch() and instr.has_dest():
        raise MalformedIRError(f"{instr.op} cannot define {instr.dest!r}")
    if instr.is_const():
        if instr.value is None:
            raise MalformedIRError(f"const {instr.dest!r} has no value")
        if instr.args:
            raise MalformedIRError(f"const {instr.dest!r} cannot take arguments")
    if instr.op == "id" and instr.has_dest() and len(instr.args) != 1:
        raise MalformedIRError(f"id {instr.dest!r} needs exactly one argument")


def next_redefinition(instrs: List[Instruction], start_idx: int, name: str) -> Optional[int]:
    for j in range(start_idx + 1, len(instrs)):
        if instrs[j].dest == name:
            return j
    return None


def optimize_block(block: Block, names: Optional[NameSupply] = None) -> None:
    instrs = block.instrs
    if names is None:
        names = NameSupply.for_instrs(instrs)
    vt = ValueTable()
    numbers: List[Optional[int]] = []
    last_use: Dict[int, int] = {}
    last_def: Dict[str, int] = {}

    # Pass 1: number every definition.
    for i, instr in enumerate(instrs):
        if instr.is_label():
            numbers.append(None)
            continue
        check_instr(instr)
        arg_nums = [vt.resolve(a) for a in instr.args]
        for n in arg_nums:
            last_use[n] = i
        if not instr.has_dest():
            numbers.append(None)
            vt.used.update(arg_nums)
            continue
        if instr.op in IMPURE_OPS:
            num = vt.fresh(Operation(instr.op, tuple(arg_nums)))
            vt.used.add(num)
        elif instr.op == "id":
            # a copy is the value it copies
            num = arg_nums[0]
        else:
            num = vt.number(normalize_value(instr, arg_nums))
        numbers.append(num)
        vt.var2num[instr.dest] = num
        last_def[instr.dest] = i

    # Later blocks may read whatever this block assigned last.
    live_out: Set[int] = set()
    if block.successors:
        live_out = set(last_def.values())
        for i in live_out:
            vt.used.add(numbers[i])
            last_use[numbers[i]] = max(last_use.get(numbers[i], i), i)

    # Pass 2: liveness closure.
    vt.close_used()

    # Pass 3: rewrite and prune.
    # Incoming values already live in their own variable; a copy is only
    # needed when that variable is reassigned before the last read.
    pending = set(vt.used)
    for var, num in vt.external.items():
        k = next_redefinition(instrs, -1, var)
        if k is None or last_use.get(num, -1) <= k:
            pending.discard(num)
    var2num: Dict[str, int] = {}
    num2var: Dict[int, str] = {num: var for var, num in vt.external.items()}

    def canonical(var: str) -> str:
        num = var2num[var] if var in var2num else vt.external[var]
        return num2var[num]

    new_block: List[Instruction] = []
    for i, instr in enumerate(instrs):
        if instr.is_label():
            new_block.append(instr)
            continue
        if not instr.has_dest():
            new_block.append(replace(instr, args=[canonical(a) for a in instr.args]))
            continue

        num = numbers[i]
        if num in pending:
            dest = instr.dest
            j = next_redefinition(instrs, i, dest)
            if j is not None and last_use.get(num, -1) > j:
                dest = names.fresh()
            new_block.append(replace(instr, dest=dest, args=[canonical(a) for a in instr.args]))
            num2var[num] = dest
            pending.discard(num)
        elif i in live_out and num2var.get(num) != instr.dest:
            new_block.append(Instruction(op="id", dest=instr.dest, type=instr.type,
                                         args=[num2var[num]]))
        var2num[instr.dest] = num

    block.instrs[:] = new_block


def optimize_cfg(func: Function, cfg: ControlFlowGraph) -> None:
    """Optimize every block of `cfg` (built from `func`) and write the result back into `func`."""
    names = NameSupply.for_instrs(func.instrs, (a.name for a in func.args))
    for block in cfg.blocks:
        optimize_block(block, names)
    func.instrs = flatten(cfg)


def optimize_function(func: Function) -> None:
    optimize_cfg(func, build_cfg(func))


def optimize_program(prog: Program) -> Program:
    for func in prog.functions:
        optimize_function(func)
    return prog
