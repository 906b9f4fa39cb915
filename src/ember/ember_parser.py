"""
Ember Language Parser

Parses Ember tokens into abstract syntax trees (ASTs).

The parser reads a `TokenStream` with one token of lookahead. Primary forms are
handled by recursive descent; binary operators by precedence climbing over
`BINOP_PRECEDENCE`.

Grammar
-------
    primary      ::= NUMBER
                   | IDENT [ "(" (expr ("," expr)*)? ")" ]
                   | "if" expr "," expr "else" expr
                   | "(" expr ")"
    expr         ::= primary binoprhs
    prototype    ::= IDENT ":" (IDENT ("," IDENT)*)? "{"
    definition   ::= "def" prototype expr "}"
    external     ::= "import" prototype "}"
    toplevelexpr ::= expr

Parser Behavior
---------------
- Every production either returns a complete node or raises `ParseError`;
  a partially built node never escapes.
- `/` is not in the precedence table, so the climbing loop never consumes it as
  an infix operator: `a / b` parses as `a` and leaves `/` current.
- A bare top-level expression is wrapped in a zero-parameter `Function` named
  with `ANON_PREFIX` and a per-parser counter so that it can be compiled and run.

Entry Points
------------
- `parse_unit()`: Parse one top-level unit (definition, external or expression).
- `parse()`: Parse every unit up to EOF (fail-fast).
- `parse_expression()`: Parse a single expression.
- `synchronize()`: After a ParseError, skip to the start of the next unit.

Expressions nested deeper than `MAX_NESTING` primaries are rejected with a
ParseError rather than recursing further.

Raises
------
ParseError
    When an unexpected token is met at a grammar point.
"""

from __future__ import annotations

from ember.ember_ast import (
    BinaryExpr,
    CallExpr,
    Expr,
    Function,
    IfExpr,
    NumberExpr,
    Prototype,
    VariableExpr,
)
from ember.ember_constants import (
    ANON_PREFIX,
    BINOP_PRECEDENCE,
    DEF,
    EOF,
    IDENT,
    IF,
    IMPORT,
    MAX_NESTING,
    NUMBER,
)
from ember.ember_errors import ParseError
from ember.ember_lexer import Token, TokenStream, tokenize


def token_precedence(tok: Token) -> int:
    """Returns the infix precedence of `tok`, or -1 when it is not a binary operator."""
    if tok.kind == NUMBER:
        return -1
    return BINOP_PRECEDENCE.get(tok.text, -1)


class Parser:
    """
    Ember Parser Class

    Attributes
    ----------
    stream : TokenStream
        The token stream being parsed; replaced wholesale by `tokenize()`.
    anon_count : int
        Counter used to name anonymous top-level expressions. Never reset, so
        names stay unique for the lifetime of the parser.
    depth : int
        Current primary-expression nesting, bounded by `MAX_NESTING`.
    """

    def __init__(self, stream: TokenStream | None = None) -> None:
        self.stream: TokenStream = stream if stream is not None else tokenize("")
        self.anon_count: int = 0
        self.depth: int = 0

    def tokenize(self, source: str) -> None:
        """Replaces the current stream with a fresh tokenization of `source`."""
        self.stream = tokenize(source)

    # Token primitives

    def peek(self) -> Token:
        return self.stream.current()

    def advance(self) -> Token:
        return self.stream.advance()

    def matches(self, expected: str) -> bool:
        return self.peek().text == expected

    def at_end(self) -> bool:
        return self.peek().kind == EOF

    def error(self, message: str) -> ParseError:
        tok = self.peek()
        return ParseError(message, tok.text, tok.line, tok.col)

    def require(self, expected: str, message: str | None = None) -> Token:
        """Consumes the current token if its text is `expected`, else raises ParseError."""
        if not self.matches(expected):
            raise self.error(message or f"Expected '{expected}'")
        return self.advance()

    # Expressions

    def parse_number_expr(self) -> NumberExpr:
        tok = self.advance()
        return NumberExpr(tok.value, line=tok.line, col=tok.col)

    def parse_paren_expr(self) -> Expr:
        """parenexpr ::= '(' expr ')'"""
        self.advance()
        expr = self.parse_expression()
        self.require(")", "Expected ')'")
        return expr

    def parse_identifier_expr(self) -> VariableExpr | CallExpr:
        """
        identifierexpr ::= IDENT
                         | IDENT '(' (expr (',' expr)*)? ')'
        """
        name_tok = self.advance()
        if not self.matches("("):
            return VariableExpr(name_tok.text, line=name_tok.line, col=name_tok.col)

        self.advance()
        args: list[Expr] = []
        if not self.matches(")"):
            while True:
                args.append(self.parse_expression())
                if self.matches(")"):
                    break
                if not self.matches(","):
                    raise self.error("Expected ')' or ',' in argument list")
                self.advance()
        self.advance()

        return CallExpr(
            name_tok.text, tuple(args), line=name_tok.line, col=name_tok.col
        )

    def parse_if_expr(self) -> IfExpr:
        """ifexpr ::= 'if' expr ',' expr 'else' expr"""
        if_tok = self.advance()
        cond = self.parse_expression()
        self.require(",", "Expected ',' after if condition")
        then = self.parse_expression()
        self.require("else", "Expected 'else' in if expression")
        orelse = self.parse_expression()
        return IfExpr(cond, then, orelse, line=if_tok.line, col=if_tok.col)

    def parse_primary(self) -> Expr:
        if self.depth >= MAX_NESTING:
            raise self.error("Expression nested too deeply")
        self.depth += 1
        try:
            tok = self.peek()
            if tok.kind == IDENT:
                return self.parse_identifier_expr()
            if tok.kind == NUMBER:
                return self.parse_number_expr()
            if tok.kind == IF:
                return self.parse_if_expr()
            if self.matches("("):
                return self.parse_paren_expr()
            raise self.error("Unknown token when expecting an expression")
        finally:
            self.depth -= 1

    def parse_bin_op_rhs(self, min_prec: int, lhs: Expr) -> Expr:
        """binoprhs ::= (op primary)*, climbing while operators bind at least `min_prec`."""
        while True:
            tok_prec = token_precedence(self.peek())
            if tok_prec < min_prec:
                return lhs

            op_tok = self.advance()
            rhs = self.parse_primary()

            # a tighter operator on the right takes `rhs` as its lhs first
            if tok_prec < token_precedence(self.peek()):
                rhs = self.parse_bin_op_rhs(tok_prec + 1, rhs)

            lhs = BinaryExpr(op_tok.text, lhs, rhs, line=op_tok.line, col=op_tok.col)

    def parse_expression(self) -> Expr:
        """expr ::= primary binoprhs"""
        lhs = self.parse_primary()
        return self.parse_bin_op_rhs(0, lhs)

    # Declarations

    def parse_prototype(self) -> Prototype:
        """prototype ::= IDENT ':' (IDENT (',' IDENT)*)? '{'"""
        name_tok = self.peek()
        if name_tok.kind != IDENT:
            raise self.error("Expected function name in prototype")
        self.advance()

        self.require(":", "Expected ':' in prototype")

        params: list[str] = []
        if not self.matches("{"):
            while True:
                param_tok = self.peek()
                if param_tok.kind != IDENT:
                    raise self.error("Expected parameter name in prototype")
                if param_tok.text in params:
                    raise self.error(f"Duplicate parameter name '{param_tok.text}'")
                params.append(self.advance().text)
                if self.matches("{"):
                    break
                self.require(",", "Expected ',' or '{' in prototype")

        self.require("{", "Expected '{' in prototype")
        return Prototype(
            name_tok.text, tuple(params), line=name_tok.line, col=name_tok.col
        )

    def parse_definition(self) -> Function:
        """definition ::= 'def' prototype expr '}'"""
        def_tok = self.require("def")
        proto = self.parse_prototype()
        body = self.parse_expression()
        self.require("}", "Expected '}' after function body")
        return Function(proto, body, line=def_tok.line, col=def_tok.col)

    def parse_extern(self) -> Prototype:
        """external ::= 'import' prototype '}'"""
        self.require("import")
        proto = self.parse_prototype()
        self.require("}", "Expected '}' after external declaration")
        return proto

    def parse_top_level_expr(self) -> Function:
        """toplevelexpr ::= expr, wrapped as an anonymous zero-parameter function."""
        start = self.peek()
        body = self.parse_expression()
        self.anon_count += 1
        proto = Prototype(
            f"{ANON_PREFIX}{self.anon_count}", (), line=start.line, col=start.col
        )
        return Function(proto, body, line=start.line, col=start.col)

    # Units

    def parse_unit(self) -> Function | Prototype | None:
        """Parses one top-level unit; None at EOF."""
        kind = self.peek().kind
        if kind == EOF:
            return None
        if kind == DEF:
            return self.parse_definition()
        if kind == IMPORT:
            return self.parse_extern()
        return self.parse_top_level_expr()

    def synchronize(self) -> None:
        """Skips the rest of a broken unit.

        Stops before the next 'def' or 'import', or just after the first '}'.
        """
        while not self.at_end() and self.peek().kind not in (DEF, IMPORT):
            if self.advance().text == "}":
                return

    def skip_to_end(self) -> None:
        """Drops every remaining token up to EOF."""
        while not self.at_end():
            self.advance()

    def parse(self) -> list[Function | Prototype]:
        """Parse every unit up to EOF and return them in order."""
        units: list[Function | Prototype] = []
        while True:
            unit = self.parse_unit()
            if unit is None:
                return units
            units.append(unit)


__all__ = ["Parser", "token_precedence"]
