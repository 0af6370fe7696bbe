import os
import re
from typing import List

from graphviz import Source

from .cfg import ControlFlowGraph


def cfg_summary(func_name: str, cfg: ControlFlowGraph) -> str:
    lines: List[str] = [f"Function: {func_name}", "Basic Blocks:"]
    start = 0
    for b in cfg.blocks:
        end = start + len(b.instrs) - 1
        lines.append(f"  {b.name}: instr[{start}..{end}]")
        start = end + 1
    lines.append("CFG successors:")
    for b in cfg.blocks:
        lines.append(f"  {b.name} -> {[cfg.blocks[s].name for s in b.successors]}")
    return "\n".join(lines)


def _escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"')


def cfg_to_dot(func_name: str, cfg: ControlFlowGraph) -> str:
    """
    DOT source for one function's CFG. Each node is labelled with its block's
    instructions; the entry block is drawn as a double octagon.
    """
    lines = [f'digraph "{_escape(func_name)}" {{', "  node [shape=box];"]
    for i, b in enumerate(cfg.blocks):
        body = "\\l".join(_escape(str(ins)) for ins in b.instrs)
        shape = ", shape=doubleoctagon" if i == 0 else ""
        lines.append(f'  "{_escape(b.name)}" [label="{_escape(b.name)}:\\l{body}\\l"{shape}];')
    for u, v in cfg.edges():
        lines.append(f'  "{_escape(cfg.blocks[u].name)}" -> "{_escape(cfg.blocks[v].name)}";')
    lines.append("}")
    return "\n".join(lines)


def output_stem(func_name: str) -> str:
    """File name for a function's graph; never leaves the output directory."""
    return re.sub(r"[^A-Za-z0-9_-]", "_", func_name) or "_"


def render_cfg(func_name: str, cfg: ControlFlowGraph, out_dir: str = ".",
               fmt: str = "png", view: bool = False) -> str:
    os.makedirs(out_dir, exist_ok=True)
    src = Source(cfg_to_dot(func_name, cfg))
    return src.render(os.path.join(out_dir, output_stem(func_name)), format=fmt, view=view,
                      cleanup=True)
