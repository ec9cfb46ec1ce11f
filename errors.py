"""
errors.py

Exception types raised by the default circuit builder and the binary readers.

The harness synthesizer and the execution runner never raise or wrap these
themselves; they only let them travel up from the collaborator that failed.
"""

from typing import Optional


class CircuitError(Exception):
    """
    Base class for failures reported by the circom toolchain wrappers.
    """


class ToolNotFound(CircuitError):
    def __init__(self, what: str, how: str):
        super().__init__(f"tool not found: {what} ({how})")
        self.what = what
        self.how = how


class CompilationError(CircuitError):
    """
    circom rejected the circuit source (syntax, include resolution, types...).
    """

    def __init__(self, path: str, returncode: int, stderr: str = ""):
        msg = f"circom failed on {path} (exit {returncode})"
        if stderr:
            msg += f":\n{stderr.strip()}"
        super().__init__(msg)
        self.path = path
        self.returncode = returncode
        self.stderr = stderr


class WitnessError(CircuitError):
    """
    The input assignment could not be turned into a witness.
    """

    def __init__(self, message: str, stderr: Optional[str] = None):
        if stderr:
            message = f"{message}:\n{stderr.strip()}"
        super().__init__(message)
        self.stderr = stderr


class ConstraintError(CircuitError):
    """
    A computed witness does not satisfy the circuit's constraints.
    """

    def __init__(self, message: str, index: Optional[int] = None):
        super().__init__(message)
        self.index = index


class FormatError(ValueError):
    """
    A .r1cs / .wtns / .sym file is malformed.
    """
