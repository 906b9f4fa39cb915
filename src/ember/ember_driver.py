"""
Unit driver for Ember: parse one top-level unit, lower it, optionally run it.

The driver is shared by the interactive loop (`ember_repl`) and whole-source
mode (`ember_cli`). It dispatches on the kind of the current token:

    DEF     → parse and lower a function definition
    IMPORT  → parse an external prototype, declare it, store it in the session
    EOF     → stop
    other   → top-level expression, lowered and, when execution is enabled,
              run, printed and discarded

A failing unit is reported once with an `[error] >>>` line and processing moves
on to the next unit. After a parse failure interactive mode drops the rest of
the chunk, and whole-source mode skips to the next `def`, `import` or past the
next `}`, so leftovers of a broken unit are never run on their own.
"""

from ember.ember_ast import Function, Prototype
from ember.ember_codegen import CodeGen, Session
from ember.ember_constants import DEF, EOF, IMPORT
from ember.ember_errors import LangError, ParseError
from ember.ember_ir import IRFunction
from ember.ember_parser import Parser


class Driver:
    """Sequences parse → lower → execute over a token stream.

    Attributes:
        session (Session): The compilation session shared by every unit.
        parser (Parser): The parser; its stream is replaced for each chunk.
        codegen (CodeGen): Lowering pass bound to `session`.
        errors (list[LangError]): Every diagnostic reported so far.
        verbose (bool): Print the IR of each executed expression.
    """

    def __init__(self, session: Session | None = None, verbose: bool = False) -> None:
        self.session = session if session is not None else Session()
        self.parser = Parser()
        self.codegen = CodeGen(self.session)
        self.errors: list[LangError] = []
        self.verbose = verbose

    def report(self, stage: str, err: LangError) -> None:
        self.errors.append(err)
        print(f"[error] >>> {stage}: {err}")

    def define(self, node: Function) -> IRFunction | None:
        try:
            return self.codegen.lower_function(node)
        except LangError as e:
            self.report("error compiling function definition", e)
            return None

    def declare(self, proto: Prototype) -> IRFunction | None:
        try:
            fn = self.codegen.lower_prototype(proto)
        except LangError as e:
            self.report("error compiling external function definition", e)
            return None
        self.session.prototypes[proto.name] = proto
        return fn

    def evaluate(self, node: Function, execute: bool) -> float | None:
        """Lowers an anonymous top-level function, runs it if asked, then drops it."""
        try:
            fn = self.codegen.lower_function(node)
        except LangError as e:
            self.report("error compiling top-level expression", e)
            return None

        try:
            if not execute:
                return None
            if self.verbose:
                print(f"[ir] >>>\n{fn}")
            value = self.session.backend.execute(fn)
        except LangError as e:
            self.report("execution failed", e)
            return None
        finally:
            self.codegen.discard(fn)

        print(value)
        return value

    def handle_unit(
        self, execute: bool = True, interactive: bool = False
    ) -> tuple[bool, float | None]:
        """Processes one unit.

        A parse failure discards the rest of the stream when `interactive`, else
        the parser resynchronizes at the next unit.

        Returns:
            (more, value): `more` is False once EOF is reached; `value` is the
            result of an executed top-level expression, else None.
        """
        kind = self.parser.peek().kind
        if kind == EOF:
            return False, None

        try:
            node = self.parser.parse_unit()
        except ParseError as e:
            self.report("parse failed", e)
            if interactive:
                self.parser.skip_to_end()
            else:
                self.parser.synchronize()
            return True, None

        if kind == DEF and isinstance(node, Function):
            self.define(node)
        elif kind == IMPORT and isinstance(node, Prototype):
            self.declare(node)
        elif isinstance(node, Function):
            return True, self.evaluate(node, execute)
        return True, None

    def run(self, execute: bool = True, interactive: bool = False) -> list[float]:
        """Processes units until EOF and returns every executed result."""
        results: list[float] = []
        while True:
            more, value = self.handle_unit(execute, interactive)
            if not more:
                return results
            if value is not None:
                results.append(value)

    def run_chunk(self, source: str) -> list[float]:
        """Interactive mode: retokenize `source` and execute its top-level expressions."""
        self.parser.tokenize(source)
        return self.run(execute=True, interactive=True)

    def run_source(self, source: str, execute: bool = False) -> list[float]:
        """Whole-source mode: tokenize once and process every unit."""
        self.parser.tokenize(source)
        return self.run(execute=execute)


__all__ = ["Driver"]
