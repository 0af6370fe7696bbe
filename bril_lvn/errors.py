class IRError(Exception):
    """Base class for every failure the pass reports."""


class InputError(IRError):
    """Input is not JSON, or does not match the program schema."""


class MalformedIRError(IRError):
    """Input parsed fine but breaks an IR invariant (undefined label, missing opcode, ...)."""


class SerializationError(IRError):
    """The transformed program could not be encoded as JSON."""
