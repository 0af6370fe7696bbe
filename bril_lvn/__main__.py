#!/usr/bin/env python3
import argparse
import sys

from .cfg import build_cfg
from .draw_cfg import cfg_summary, render_cfg
from .errors import IRError, InputError
from .ir import dump_program, load_program
from .lvn import optimize_cfg


def parse_args(argv=None):
    ap = argparse.ArgumentParser(
        prog="bril-lvn",
        description="Local value numbering and dead-code elimination for Bril JSON (stdin -> stdout).")
    ap.add_argument("--dump-cfg", action="store_true",
                    help="Print basic blocks and successors of each function to stderr")
    ap.add_argument("--render", metavar="DIR", help="Render each function's CFG into DIR")
    ap.add_argument("--fmt", default="png", choices=["png", "svg", "pdf"], help="Image format")
    ap.add_argument("--view", action="store_true", help="Open rendered images")
    return ap.parse_args(argv)


def run(data: bytes, args) -> str:
    try:
        text = data.decode("utf-8")
    except UnicodeDecodeError as e:
        raise InputError(f"input is not valid UTF-8: {e}") from e
    prog = load_program(text)
    for fn in prog.functions:
        cfg = build_cfg(fn)
        if args.dump_cfg:
            print(cfg_summary(fn.name, cfg), file=sys.stderr)
            print(file=sys.stderr)
        if args.render:
            render_cfg(fn.name, cfg, out_dir=args.render, fmt=args.fmt, view=args.view)
        optimize_cfg(fn, cfg)
    return dump_program(prog)


def main(argv=None):
    args = parse_args(argv)
    try:
        out = run(sys.stdin.buffer.read(), args)
    except IRError as e:
        sys.exit(f"error: {e}")
    print(out)


if __name__ == "__main__":
    main()
