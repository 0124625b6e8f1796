from __future__ import annotations

import re
from dataclasses import dataclass

from ..errors import SqlSyntaxError

"""Tokenizer for the sheetql SQL dialect.

Comments (``--`` to end of line and ``/* */``) are dropped here so nothing
downstream can match a table reference inside them. Identifiers are Unicode
word runs so non-English sheet names work unquoted; a name segment after a dot
may be all digits (``Sales.2023``) and is emitted as a NUMBER token that the
parser accepts as a name segment.
"""

__all__ = [
    "Token",
    "TOKEN_PATTERN",
    "KEYWORDS",
    "tokenize",
]


@dataclass(frozen=True)
class Token:
    """A lexical token.

    ``value`` holds the decoded text: STRING without quotes and with ``''``
    unescaped, QUOTED identifiers without their delimiters.
    """

    type: str
    value: str

    def is_keyword(self, *keywords: str) -> bool:
        return self.type == "IDENT" and self.value.upper() in keywords

    @property
    def is_name(self) -> bool:
        """True for tokens usable as an identifier segment."""
        return self.type in ("IDENT", "QUOTED", "NUMBER")

    def render(self) -> str:
        if self.type == "STRING":
            return "'" + self.value.replace("'", "''") + "'"
        if self.type == "QUOTED":
            return '"' + self.value.replace('"', '""') + '"'
        return self.value


TOKEN_PATTERN = re.compile(
    r"(?P<SPACE>\s+)"
    r"|(?P<LINE_COMMENT>--[^\n]*)"
    r"|(?P<BLOCK_COMMENT>/\*.*?\*/)"
    r"|(?P<STRING>'(?:''|[^'])*')"
    r"|(?P<QUOTED>\"(?:\"\"|[^\"])*\"|`(?:``|[^`])*`|\[[^\]]*\])"
    r"|(?P<NUMBER>\d+(?:\.\d+)?(?:[eE][+-]?\d+)?(?!\w))"
    r"|(?P<IDENT>\w+)"
    r"|(?P<PARAM>\?\d*|[:@$]\w+)"
    r"|(?P<OP>->>|->|<>|!=|<=|>=|==|\|\||[=<>+\-/%&|~])"
    r"|(?P<STAR>\*)"
    r"|(?P<COMMA>,)"
    r"|(?P<DOT>\.)"
    r"|(?P<LPAREN>\()"
    r"|(?P<RPAREN>\))"
    r"|(?P<SEMI>;)",
    re.DOTALL,
)

KEYWORDS = frozenset({
    "ALL", "AND", "AS", "ASC", "BETWEEN", "BY", "CASE", "COLLATE", "CROSS",
    "DESC", "DISTINCT", "ELSE", "END", "ESCAPE", "EXCEPT", "EXISTS", "FALSE",
    "FILTER", "FROM", "FULL", "GLOB", "GROUP", "HAVING", "IN", "INNER",
    "INTERSECT", "IS", "JOIN", "LEFT", "LIKE", "LIMIT", "NATURAL", "NOT",
    "NULL", "NULLS", "OFFSET", "ON", "OR", "ORDER", "OUTER", "OVER",
    "PARTITION", "RECURSIVE", "REGEXP", "RIGHT", "SELECT", "THEN", "TRUE",
    "UNION", "USING", "VALUES", "WHEN", "WHERE", "WINDOW", "WITH",
})


def tokenize(sql: str) -> list[Token]:
    """Tokenize a query string into a list of :class:`Token` objects."""
    tokens: list[Token] = []
    position = 0
    length = len(sql)

    while position < length:
        match = TOKEN_PATTERN.match(sql, position)
        if not match:
            char = sql[position]
            if char == "'":
                raise SqlSyntaxError(f"Unterminated string literal at position {position}")
            if char == "/" and sql.startswith("/*", position):
                raise SqlSyntaxError(f"Unterminated comment at position {position}")
            raise SqlSyntaxError(f"Unexpected character at position {position}: {char!r}")

        kind = match.lastgroup
        text = match.group()
        position = match.end()

        if kind in ("SPACE", "LINE_COMMENT", "BLOCK_COMMENT"):
            continue
        if kind == "STRING":
            tokens.append(Token("STRING", text[1:-1].replace("''", "'")))
            continue
        if kind == "QUOTED":
            opener = text[0]
            inner = text[1:-1]
            if opener == '"':
                inner = inner.replace('""', '"')
            elif opener == "`":
                inner = inner.replace("``", "`")
            tokens.append(Token("QUOTED", inner))
            continue
        tokens.append(Token(str(kind), text))

    return tokens
