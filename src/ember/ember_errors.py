"""
Exception hierarchy shared by the Ember parser, lowering pass and backend.

Every failure in the pipeline is raised as a `LangError` subclass and reported
once by the unit driver. Errors carry an optional source position so that the
driver can point at the offending construct.

Classes:
    - LangError: Base class; message plus line/col.
    - ParseError: Wrong or missing token at a grammar point.
    - UnknownNameError: Unknown variable or function.
    - ArityError: Argument count mismatch, or redefinition with a different count.
    - RedefinitionError: A function body already exists.
    - OperatorError: Unsupported binary operator reached lowering.
    - ExecutionError: The backend failed while running compiled code.
    - IRError: Malformed IR detected by the backend verifier.
    - NestingError: An expression tree too deep to lower.
"""


class LangError(Exception):
    """Base class for all Ember diagnostics.

    Attributes:
        message (str): Human-readable description.
        line (int): 1-based source line, 0 when unknown.
        col (int): 1-based source column, 0 when unknown.
    """

    def __init__(self, message: str, line: int = 0, col: int = 0):
        super().__init__(message)
        self.message = message
        self.line = line
        self.col = col

    def __str__(self) -> str:
        if self.line:
            return f"{self.line}:{self.col}: {self.message}"
        return self.message


class ParseError(LangError):
    """Raised when the parser meets a token it cannot accept.

    Attributes:
        token_text (str): Text of the offending token.
    """

    def __init__(self, message: str, token_text: str, line: int = 0, col: int = 0):
        super().__init__(message, line, col)
        self.token_text = token_text

    def __str__(self) -> str:
        return f"{super().__str__()}. Got token '{self.token_text}' instead"


class UnknownNameError(LangError):
    """Raised for an unknown variable or an unknown function."""


class ArityError(LangError):
    """Raised when a parameter or argument count does not match."""


class RedefinitionError(LangError):
    """Raised when a function that already has a body is defined again."""


class OperatorError(LangError):
    """Raised when lowering meets an operator it has no instruction for."""


class ExecutionError(LangError):
    """Raised when the backend cannot run a compiled function."""


class IRError(LangError):
    """Raised when the backend verifier rejects a function."""


class NestingError(LangError):
    """Raised when an expression is nested deeper than lowering allows."""


__all__ = [
    "ArityError",
    "ExecutionError",
    "IRError",
    "LangError",
    "NestingError",
    "OperatorError",
    "ParseError",
    "RedefinitionError",
    "UnknownNameError",
]
