"""
Lexical analyzer for the Ember programming language.

This module converts raw source text into a finite stream of typed tokens:

Classes:
    CharacterStream: Stream abstraction for reading characters with line/column tracking.
    Token: A single immutable token with kind, text, position and numeric value.
    TokenStream: An ordered token sequence with a cursor, always ending in one EOF token.
    Lexer: A general-purpose scanner that classifies raw tokens into Ember token kinds.

Features:
    - Skips whitespace, `//` line comments and `/* */` block comments
    - Groups identifiers, numbers and double-quoted strings; any other character
      becomes a one-character token
    - Classifies each raw token by exact match against reserved words and
      punctuation, by a successful float parse, and otherwise as an identifier

The lexer never raises: text it does not recognise is handed to the parser as an
IDENT token and rejected there.

Example:
    >>> stream = tokenize("def add : x, y { x + y }")
    >>> stream.current()
    Token(DEF, 'def')

Exports:
    - CharacterStream
    - Token
    - TokenStream
    - Lexer
    - classify
    - tokenize
"""

from collections.abc import Iterator
from dataclasses import dataclass, field

from ember.ember_constants import EOF, IDENT, NUMBER, token_hashmap


class CharacterStream:
    """
    A utility for reading characters from a string source with line and column tracking.

    Attributes:
        source (str): The input source string.
        position (int): Current index in the source.
        line (int): Current line number (1-indexed).
        column (int): Current column number (1-indexed).
    """

    def __init__(self, source: str, position: int = 0, line: int = 1, column: int = 1):
        self.source = source
        self.position = position
        self.line = line
        self.column = column

    def next(self) -> str:
        """
        Consumes and returns the next character in the stream.

        Raises:
            EOFError: If reading past the end of the source.
        """
        if self.position >= len(self.source):
            raise EOFError(
                f"Attempted to read past end of source at position=<{self.position}>, line=<{self.line}>"
            )
        char = self.source[self.position]
        if char == "\n":
            self.line += 1
            self.column = 1
        else:
            self.column += 1
        self.position += 1
        return char

    def peek(self, offset: int = 0) -> str:
        """Returns the character at `offset` without advancing, or "" when out of bounds."""
        index = self.position + offset
        if index < 0 or index >= len(self.source):
            return ""
        return self.source[index]

    def end_of_file(self) -> bool:
        return self.position >= len(self.source)


@dataclass(frozen=True)
class Token:
    """Represents a single lexical token.

    Attributes:
        kind (str): The token kind (e.g. 'IDENT', 'NUMBER', 'EOF').
        text (str): The raw source text of the token.
        line (int): The 1-based line number where the token starts.
        col (int): The 1-based column number where the token starts.
        value (float): The parsed literal, meaningful only for NUMBER tokens.
    """

    kind: str
    text: str
    line: int = 0
    col: int = 0
    value: float = field(default=0.0, compare=False)

    def __repr__(self) -> str:
        return f"Token({self.kind}, {self.text!r})"


class TokenStream:
    """An ordered sequence of tokens plus a cursor.

    The sequence always ends with exactly one EOF token and the cursor always
    points at a valid index: advancing past the last token keeps it on EOF.

    Attributes:
        tokens (list[Token]): The tokens, terminated by EOF.
        position (int): Index of the current token.
    """

    def __init__(self, tokens: list[Token]) -> None:
        if not tokens or tokens[-1].kind != EOF:
            raise ValueError("TokenStream must end with an EOF token")
        if any(tok.kind == EOF for tok in tokens[:-1]):
            raise ValueError("TokenStream must contain exactly one EOF token")
        self.tokens: list[Token] = tokens
        self.position: int = 0

    def current(self) -> Token:
        return self.tokens[self.position]

    def peek(self, offset: int = 1) -> Token:
        index = min(self.position + offset, len(self.tokens) - 1)
        return self.tokens[max(index, 0)]

    def advance(self) -> Token:
        """Consumes the current token and returns it."""
        tok = self.tokens[self.position]
        if self.position < len(self.tokens) - 1:
            self.position += 1
        return tok

    def at_end(self) -> bool:
        return self.current().kind == EOF

    def __len__(self) -> int:
        return len(self.tokens)

    def __iter__(self) -> Iterator[Token]:
        return iter(self.tokens)

    def __repr__(self) -> str:
        return f"TokenStream(position={self.position}, tokens={self.tokens!r})"


def classify(text: str) -> tuple[str, float]:
    """Classifies raw token text into a token kind and its numeric value.

    Reserved words and punctuation win; anything `float()` accepts is a NUMBER;
    everything else is an IDENT.
    """
    if text in token_hashmap:
        return token_hashmap[text], 0.0
    try:
        return NUMBER, float(text)
    except ValueError:
        return IDENT, 0.0


class Lexer:
    """General-purpose scanner for Ember source.

    Attributes:
        stream (CharacterStream): The source stream to tokenize.
    """

    def __init__(self, stream: CharacterStream) -> None:
        self.stream = stream

    def peek(self, offset: int = 0) -> str:
        return self.stream.peek(offset)

    def advance(self) -> str:
        return self.stream.next()

    def skip_whitespace(self) -> None:
        """Skips whitespace and both comment styles."""
        while not self.stream.end_of_file():
            ch = self.peek()
            if ch.isspace():
                self.advance()
            elif ch == "/" and self.peek(1) == "/":
                self.skip_line_comment()
            elif ch == "/" and self.peek(1) == "*":
                self.skip_block_comment()
            else:
                break

    def skip_line_comment(self) -> None:
        while not self.stream.end_of_file() and self.peek() != "\n":
            self.advance()

    def skip_block_comment(self) -> None:
        self.advance()
        self.advance()
        while not self.stream.end_of_file():
            if self.peek() == "*" and self.peek(1) == "/":
                self.advance()
                self.advance()
                return
            self.advance()

    def scan_number(self) -> str:
        num = ""
        while self.peek().isdigit():
            num += self.advance()
        if self.peek() == ".":
            num += self.advance()
            while self.peek().isdigit():
                num += self.advance()
        # exponent only when digits follow, so "2e" stays NUMBER then IDENT
        if self.peek() in ("e", "E"):
            sign = self.peek(1) if self.peek(1) in ("+", "-") else ""
            if self.peek(1 + len(sign)).isdigit():
                num += self.advance()
                if sign:
                    num += self.advance()
                while self.peek().isdigit():
                    num += self.advance()
        return num

    def scan_string(self) -> str:
        text = self.advance()
        while not self.stream.end_of_file():
            ch = self.advance()
            text += ch
            if ch == "\\" and not self.stream.end_of_file():
                text += self.advance()
            elif ch == '"':
                break
        return text

    def next_token(self) -> Token:
        """Consumes and returns the next Token from the stream."""
        self.skip_whitespace()

        line, col = self.stream.line, self.stream.column
        if self.stream.end_of_file():
            return Token(EOF, "EOF", line, col)

        ch = self.peek()

        # 1. Identifier or keyword
        if ch.isalpha() or ch == "_":
            text = ""
            while not self.stream.end_of_file() and (
                self.peek().isalnum() or self.peek() == "_"
            ):
                text += self.advance()

        # 2. Number
        elif ch.isdigit() or (ch == "." and self.peek(1).isdigit()):
            text = self.scan_number()

        # 3. String, handed on as a single token
        elif ch == '"':
            text = self.scan_string()

        # 4. Any other single character
        else:
            text = self.advance()

        kind, value = classify(text)
        return Token(kind, text, line, col, value)

    def tokenize(self) -> TokenStream:
        """Scans the whole stream and returns it as a TokenStream."""
        tokens: list[Token] = []
        while True:
            tok = self.next_token()
            tokens.append(tok)
            if tok.kind == EOF:
                return TokenStream(tokens)


def tokenize(source: str) -> TokenStream:
    """Tokenizes `source` from scratch; no state is shared between calls."""
    return Lexer(CharacterStream(source, 0, 1, 1)).tokenize()


__all__ = ["CharacterStream", "Lexer", "Token", "TokenStream", "classify", "tokenize"]
