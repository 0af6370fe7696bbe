# tests/test_draw_cfg.py

import json

from bril_lvn import draw_cfg
from bril_lvn.cfg import build_cfg
from bril_lvn.ir import load_program


def _loop_cfg(doc):
    return build_cfg(load_program(json.dumps(doc)).functions[0])


def test_summary(loop_program_json):
    assert draw_cfg.cfg_summary("main", _loop_cfg(loop_program_json)).splitlines() == [
        "Function: main",
        "Basic Blocks:",
        "  B0: instr[0..1]",
        "  loop: instr[2..4]",
        "  body: instr[5..8]",
        "  end: instr[9..10]",
        "CFG successors:",
        "  B0 -> ['loop']",
        "  loop -> ['body', 'end']",
        "  body -> ['loop']",
        "  end -> []",
    ]


def test_dot_has_nodes_and_edges(loop_program_json):
    dot = draw_cfg.cfg_to_dot("main", _loop_cfg(loop_program_json))
    assert dot.startswith('digraph "main" {')
    assert '"B0" -> "loop";' in dot
    assert '"loop" -> "end";' in dot
    assert '"body" -> "loop";' in dot
    assert "cond: bool = lt i n" in dot
    assert "shape=doubleoctagon" in dot


def test_render_uses_graphviz_source(tmp_path, monkeypatch, loop_program_json):
    calls = []

    class FakeSource:
        def __init__(self, source):
            self.source = source

        def render(self, path, format, view, cleanup):
            calls.append((self.source, path, format, view, cleanup))
            return f"{path}.{format}"

    monkeypatch.setattr(draw_cfg, "Source", FakeSource)
    out_dir = tmp_path / "graphs"
    out = draw_cfg.render_cfg("main", _loop_cfg(loop_program_json), out_dir=str(out_dir), fmt="svg")

    assert out_dir.is_dir()
    assert out == str(out_dir / "main") + ".svg"
    (source, path, fmt, view, cleanup), = calls
    assert source.startswith('digraph "main"')
    assert (fmt, view, cleanup) == ("svg", False, True)


def test_render_keeps_files_inside_out_dir(tmp_path, monkeypatch, loop_program_json):
    paths = []

    class FakeSource:
        def __init__(self, source):
            pass

        def render(self, path, format, view, cleanup):
            paths.append(path)
            return f"{path}.{format}"

    monkeypatch.setattr(draw_cfg, "Source", FakeSource)
    draw_cfg.render_cfg("../up/evil", _loop_cfg(loop_program_json), out_dir=str(tmp_path))
    assert paths == [str(tmp_path / "___up_evil")]
    assert draw_cfg.output_stem("") == "_"
