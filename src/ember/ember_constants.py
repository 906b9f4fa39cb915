"""
Token kinds, reserved words and the operator precedence table for Ember.

Exports:
    - Token kind names (EOF, DEF, IMPORT, IF, ELSE, IDENT, NUMBER, SYMBOL)
    - token_hashmap: reserved text → token kind
    - SYMBOLS: single-character punctuation recognised as SYMBOL tokens
    - BINOP_PRECEDENCE: infix operator precedence used by the parser
    - ANON_PREFIX: reserved name prefix for anonymous top-level expressions
    - MAX_NESTING, MAX_LOWERING_DEPTH: expression depth limits for parser and lowering
"""

EOF = "EOF"
DEF = "DEF"
IMPORT = "IMPORT"
IF = "IF"
ELSE = "ELSE"
IDENT = "IDENT"
NUMBER = "NUMBER"
SYMBOL = "SYMBOL"

TOKEN_KINDS: tuple[str, ...] = (EOF, DEF, IMPORT, IF, ELSE, IDENT, NUMBER, SYMBOL)

KEYWORDS: dict[str, str] = {
    "def": DEF,
    "import": IMPORT,
    "if": IF,
    "else": ELSE,
}

SYMBOLS: frozenset[str] = frozenset("(),+-/*:;=")

token_hashmap: dict[str, str] = {**KEYWORDS, **{s: SYMBOL for s in SYMBOLS}}

# "/" is intentionally absent: the climbing loop never accepts it as infix.
BINOP_PRECEDENCE: dict[str, int] = {
    "=": 9,
    "<": 10,
    "+": 20,
    "-": 20,
    "*": 40,
}

ANON_PREFIX = "__anon_expr"

# expression depth limits for parsing and lowering
MAX_NESTING = 128
MAX_LOWERING_DEPTH = 200

__all__ = [
    "ANON_PREFIX",
    "BINOP_PRECEDENCE",
    "DEF",
    "ELSE",
    "EOF",
    "IDENT",
    "IF",
    "IMPORT",
    "KEYWORDS",
    "MAX_LOWERING_DEPTH",
    "MAX_NESTING",
    "NUMBER",
    "SYMBOL",
    "SYMBOLS",
    "TOKEN_KINDS",
    "token_hashmap",
]
