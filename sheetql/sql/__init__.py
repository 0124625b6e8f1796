"""SQL front end: tokenizer, minimal AST, parser, serializer and AST transforms."""

from .ast import Fragment, Join, SelectItem, SelectStatement, TableSource, UnnestSource
from .parser import QueryParser, parse_sql
from .serializer import render_fragment, to_sql
from .tokens import Token, tokenize
from .transforms import qualified_columns, replace_array_alias, replace_qualifier

__all__ = [
    "Fragment",
    "Join",
    "QueryParser",
    "SelectItem",
    "SelectStatement",
    "TableSource",
    "Token",
    "UnnestSource",
    "parse_sql",
    "qualified_columns",
    "render_fragment",
    "replace_array_alias",
    "replace_qualifier",
    "to_sql",
    "tokenize",
]
