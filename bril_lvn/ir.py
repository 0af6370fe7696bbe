import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import InputError, SerializationError

TERMINATORS = {"jmp", "br", "ret"}
BRANCHES = {"jmp", "br"}

_INSTR_FIELDS = {"label", "op", "dest", "type", "value", "args", "labels"}
_FUNCTION_FIELDS = {"name", "args", "instrs"}
_ARG_FIELDS = {"name", "type"}
_PROGRAM_FIELDS = {"functions"}


@dataclass
class Instruction:
    """
    One IR instruction. Which fields are set decides the kind:
      - label marker: only `label`
      - value instruction: `op` and `dest` (plus `type`, `args`, `value` or `labels`)
      - effect instruction: `op` without `dest`
    """
    op: Optional[str] = None
    dest: Optional[str] = None
    type: Optional[str] = None
    value: Any = None
    args: List[str] = field(default_factory=list)
    labels: List[str] = field(default_factory=list)
    label: Optional[str] = None

    def is_label(self) -> bool:
        return self.label is not None

    def is_terminator(self) -> bool:
        return self.op in TERMINATORS

    def is_branch(self) -> bool:
        return self.op in BRANCHES

    def is_const(self) -> bool:
        return self.op == "const"

    def has_dest(self) -> bool:
        return self.dest is not None

    def to_json(self) -> Dict[str, Any]:
        if self.is_label():
            return {"label": self.label}
        out: Dict[str, Any] = {}
        for key in ("op", "dest", "type", "value"):
            val = getattr(self, key)
            if val is not None:
                out[key] = val
        if self.args:
            out["args"] = list(self.args)
        if self.labels:
            out["labels"] = list(self.labels)
        return out

    def __str__(self) -> str:
        if self.is_label():
            return f".{self.label}:"
        parts = [self.op or "?"]
        if self.value is not None:
            parts.append(json.dumps(self.value))
        parts.extend(self.args)
        parts.extend(f".{L}" for L in self.labels)
        rhs = " ".join(parts)
        if self.dest is None:
            return rhs
        ty = f": {self.type}" if self.type else ""
        return f"{self.dest}{ty} = {rhs}"


@dataclass
class Argument:
    name: str
    type: str

    def to_json(self) -> Dict[str, Any]:
        return {"name": self.name, "type": self.type}


@dataclass
class Function:
    name: str
    instrs: List[Instruction] = field(default_factory=list)
    args: List[Argument] = field(default_factory=list)

    def to_json(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"name": self.name}
        if self.args:
            out["args"] = [a.to_json() for a in self.args]
        out["instrs"] = [i.to_json() for i in self.instrs]
        return out


@dataclass
class Program:
    functions: List[Function] = field(default_factory=list)

    def to_json(self) -> Dict[str, Any]:
        return {"functions": [f.to_json() for f in self.functions]}


# ------------------ strict JSON loading ------------------

def _expect_object(obj: Any, where: str, allowed, required=()) -> Dict[str, Any]:
    if not isinstance(obj, dict):
        raise InputError(f"{where}: expected an object, got {type(obj).__name__}")
    unknown = sorted(set(obj) - set(allowed))
    if unknown:
        raise InputError(f"{where}: unknown field(s) {', '.join(map(repr, unknown))}")
    for key in required:
        if key not in obj:
            raise InputError(f"{where}: missing required field {key!r}")
    return obj


def _opt_str(obj: Dict[str, Any], key: str, where: str) -> Optional[str]:
    val = obj.get(key)
    if val is not None and not isinstance(val, str):
        raise InputError(f"{where}: field {key!r} must be a string")
    return val


def _str(obj: Dict[str, Any], key: str, where: str) -> str:
    val = obj[key]
    if not isinstance(val, str):
        raise InputError(f"{where}: field {key!r} must be a string")
    return val


def _str_list(obj: Dict[str, Any], key: str, where: str) -> List[str]:
    val = obj.get(key)
    if val is None:
        return []
    if not isinstance(val, list) or not all(isinstance(v, str) for v in val):
        raise InputError(f"{where}: field {key!r} must be a list of strings")
    return list(val)


def instruction_from_json(obj: Any, where: str = "instruction") -> Instruction:
    obj = _expect_object(obj, where, _INSTR_FIELDS)
    label = _opt_str(obj, "label", where)
    if label is not None:
        extra = sorted(k for k in obj if k != "label" and obj[k] is not None)
        if extra:
            raise InputError(f"{where}: label marker cannot carry {', '.join(map(repr, extra))}")
        return Instruction(label=label)
    return Instruction(
        op=_opt_str(obj, "op", where),
        dest=_opt_str(obj, "dest", where),
        type=_opt_str(obj, "type", where),
        value=obj.get("value"),
        args=_str_list(obj, "args", where),
        labels=_str_list(obj, "labels", where),
    )


def function_from_json(obj: Any, where: str = "function") -> Function:
    obj = _expect_object(obj, where, _FUNCTION_FIELDS, required=("name", "instrs"))
    name = _str(obj, "name", where)
    where = f"function {name!r}"

    raw_args = obj.get("args")
    if raw_args is None:
        raw_args = []
    if not isinstance(raw_args, list):
        raise InputError(f"{where}: field 'args' must be a list")
    args = []
    for i, a in enumerate(raw_args):
        a_where = f"{where}, arg {i}"
        a = _expect_object(a, a_where, _ARG_FIELDS, required=("name", "type"))
        args.append(Argument(_str(a, "name", a_where), _str(a, "type", a_where)))

    if not isinstance(obj["instrs"], list):
        raise InputError(f"{where}: field 'instrs' must be a list")
    instrs = [instruction_from_json(ins, f"{where}, instr {i}")
              for i, ins in enumerate(obj["instrs"])]
    return Function(name=name, instrs=instrs, args=args)


def program_from_json(obj: Any) -> Program:
    obj = _expect_object(obj, "program", _PROGRAM_FIELDS, required=("functions",))
    if not isinstance(obj["functions"], list):
        raise InputError("program: field 'functions' must be a list")
    return Program([function_from_json(f, f"function {i}")
                    for i, f in enumerate(obj["functions"])])


def load_program(text: str) -> Program:
    try:
        obj = json.loads(text)
    except json.JSONDecodeError as e:
        raise InputError(f"invalid JSON: {e}") from e
    return program_from_json(obj)


def dump_program(prog: Program) -> str:
    """Encode `prog` as a single compact JSON line."""
    try:
        return json.dumps(prog.to_json(), separators=(",", ":"), allow_nan=False)
    except (TypeError, ValueError) as e:
        raise SerializationError(f"cannot serialize program: {e}") from e
