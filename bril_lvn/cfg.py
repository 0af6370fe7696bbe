from dataclasses import dataclass, field
from typing import Dict, Iterator, List

from .errors import MalformedIRError
from .ir import Function, Instruction


@dataclass
class Block:
    instrs: List[Instruction] = field(default_factory=list)
    successors: List[int] = field(default_factory=list)
    name: str = ""

    def label(self):
        if self.instrs and self.instrs[0].is_label():
            return self.instrs[0].label
        return None


@dataclass
class ControlFlowGraph:
    blocks: List[Block] = field(default_factory=list)

    def edges(self) -> Iterator[tuple]:
        for i, b in enumerate(self.blocks):
            for s in b.successors:
                yield i, s


def form_blocks(instrs: List[Instruction]) -> Iterator[List[Instruction]]:
    """
    Split `instrs` into basic blocks. A label starts a new block, a terminator
    ends the current one. Every instruction lands in exactly one block and no
    block is empty.
    """
    block: List[Instruction] = []
    for instr in instrs:
        if instr.is_label() and block:
            yield block
            block = []
        block.append(instr)
        if instr.is_terminator():
            yield block
            block = []
    if block:
        yield block


def label_to_block(blocks: List[Block]) -> Dict[str, int]:
    mapping: Dict[str, int] = {}
    for i, b in enumerate(blocks):
        name = b.label()
        if name is not None:
            mapping[name] = i
    return mapping


def block_successors(blocks: List[Block], label2block: Dict[str, int]) -> None:
    """
    Fill in `successors` for every block from its last instruction:
      - jmp / br: the blocks of its target labels, in label order
      - ret: none
      - anything else: fall through to the next block, if there is one
    """
    for i, b in enumerate(blocks):
        last = b.instrs[-1]
        b.successors = []
        if last.is_branch():
            if not last.labels:
                raise MalformedIRError(f"{last.op} in block {b.name} has no target labels")
            for L in last.labels:
                if L not in label2block:
                    raise MalformedIRError(f"undefined label {L!r} in block {b.name}")
                b.successors.append(label2block[L])
        elif last.op == "ret":
            pass
        elif i + 1 < len(blocks):
            b.successors.append(i + 1)


def build_cfg(func: Function) -> ControlFlowGraph:
    blocks = []
    for bi, instrs in enumerate(form_blocks(func.instrs)):
        b = Block(instrs=list(instrs))
        b.name = b.label() or f"B{bi}"
        blocks.append(b)
    block_successors(blocks, label_to_block(blocks))
    return ControlFlowGraph(blocks)


def flatten(cfg: ControlFlowGraph) -> List[Instruction]:
    return [instr for block in cfg.blocks for instr in block.instrs]
