from __future__ import annotations

from collections.abc import Sequence

from ..errors import SqlSyntaxError
from .ast import (
    And,
    CommonTableExpression,
    Condition,
    Fragment,
    FunctionSource,
    Group,
    Join,
    Not,
    Or,
    Predicate,
    SelectItem,
    SelectStatement,
    Source,
    SubquerySource,
    TableSource,
    UnnestSource,
)
from .tokens import KEYWORDS, Token, tokenize

"""Recursive-descent parser producing the minimal SQL AST.

Clause structure (sources, joins, WHERE/HAVING boolean shape, ORDER BY, LIMIT)
is parsed properly; scalar expressions are captured as bracket-aware token
runs. Keywords inside parentheses, string literals or CASE ... END never end a
clause early.
"""

__all__ = [
    "QueryParser",
    "parse_sql",
]

COMPOUND_KEYWORDS = ("UNION", "INTERSECT", "EXCEPT")
CLAUSE_KEYWORDS = frozenset({
    "FROM", "WHERE", "GROUP", "HAVING", "ORDER", "LIMIT", "OFFSET", "WINDOW",
    *COMPOUND_KEYWORDS,
})
JOIN_KEYWORDS = frozenset({"JOIN", "INNER", "LEFT", "RIGHT", "FULL", "CROSS", "NATURAL"})
ALIAS_STOP = KEYWORDS | {"UNNEST"}

# 別名として扱わない直前トークン (演算子の右辺など)
_ALIAS_PREV_KEYWORDS = frozenset({"END", "NULL", "TRUE", "FALSE"})


def parse_sql(sql: str) -> SelectStatement:
    """Parse a SELECT statement (optionally with WITH) into a :class:`SelectStatement`."""
    return QueryParser.parse(sql)


class QueryParser:
    """Parse sheetql statements into :class:`SelectStatement` objects."""

    def __init__(self, tokens: Sequence[Token]):
        self._tokens = list(tokens)
        self._index = 0

    @classmethod
    def parse(cls, sql: str) -> SelectStatement:
        tokens = tokenize(sql)
        while tokens and tokens[-1].type == "SEMI":
            tokens.pop()
        if not tokens:
            raise SqlSyntaxError("Empty query")
        parser = cls(tokens)
        statement = parser._parse_statement()
        if parser._peek() is not None:
            raise SqlSyntaxError(f"Unexpected token {parser._peek().value!r} at end of query")  # type: ignore[union-attr]
        return statement

    # Basic token helpers ---------------------------------------------------

    def _peek(self, offset: int = 0) -> Token | None:
        index = self._index + offset
        if index >= len(self._tokens):
            return None
        return self._tokens[index]

    def _advance(self) -> Token:
        token = self._peek()
        if token is None:
            raise SqlSyntaxError("Unexpected end of input")
        self._index += 1
        return token

    def _match_type(self, token_type: str) -> Token | None:
        token = self._peek()
        if token and token.type == token_type:
            self._advance()
            return token
        return None

    def _expect_type(self, token_type: str) -> Token:
        token = self._match_type(token_type)
        if not token:
            found = self._peek()
            where = repr(found.value) if found else "end of input"
            raise SqlSyntaxError(f"Expected {token_type} but found {where}")
        return token

    def _match_keyword(self, *keywords: str) -> Token | None:
        token = self._peek()
        if token is not None and token.is_keyword(*keywords):
            self._advance()
            return token
        return None

    def _expect_keyword(self, keyword: str) -> None:
        if not self._match_keyword(keyword):
            found = self._peek()
            where = repr(found.value) if found else "end of input"
            raise SqlSyntaxError(f"Expected keyword {keyword} but found {where}")

    def _at_keyword(self, *keywords: str) -> bool:
        token = self._peek()
        return token is not None and token.is_keyword(*keywords)

    def _at_subquery(self) -> bool:
        token = self._peek()
        following = self._peek(1)
        return bool(
            token is not None
            and token.type == "LPAREN"
            and following is not None
            and following.is_keyword("SELECT", "WITH")
        )

    def _at_function_call(self) -> bool:
        """``LEFT(`` / ``RIGHT(`` are string functions, not join keywords."""
        token = self._peek()
        following = self._peek(1)
        return bool(
            token is not None
            and token.is_keyword("LEFT", "RIGHT")
            and following is not None
            and following.type == "LPAREN"
        )

    # Statements ------------------------------------------------------------

    def _parse_statement(self) -> SelectStatement:
        ctes: list[CommonTableExpression] = []
        recursive = False
        if self._match_keyword("WITH"):
            recursive = bool(self._match_keyword("RECURSIVE"))
            while True:
                ctes.append(self._parse_cte())
                if not self._match_type("COMMA"):
                    break
        statement = self._parse_select()
        statement.ctes = ctes
        statement.recursive = recursive
        return statement

    def _parse_cte(self) -> CommonTableExpression:
        name = self._advance()
        if not name.is_name:
            raise SqlSyntaxError(f"Invalid CTE name {name.value!r}")
        columns: list[Token] | None = None
        if self._match_type("LPAREN"):
            columns = [self._advance()]
            while self._match_type("COMMA"):
                columns.append(self._advance())
            self._expect_type("RPAREN")
        self._expect_keyword("AS")
        self._expect_type("LPAREN")
        body = self._parse_statement()
        self._expect_type("RPAREN")
        return CommonTableExpression(name=name, statement=body, columns=columns)

    def _parse_select(self) -> SelectStatement:
        token = self._peek()
        if token is None or not token.is_keyword("SELECT"):
            found = repr(token.value) if token else "end of input"
            raise SqlSyntaxError(f"Only SELECT statements are supported (found {found})")
        self._advance()

        statement = SelectStatement()
        modifier = self._match_keyword("DISTINCT", "ALL")
        if modifier is not None:
            statement.distinct = modifier.value.upper()
        statement.select_items = self._parse_select_list()

        if self._match_keyword("FROM"):
            statement.from_source = self._parse_source()
            statement.joins = self._parse_joins()

        if self._match_keyword("WHERE"):
            statement.where = self._parse_condition(CLAUSE_KEYWORDS)

        if self._at_keyword("GROUP"):
            self._advance()
            self._expect_keyword("BY")
            statement.group_by = self._parse_fragment_list(CLAUSE_KEYWORDS)

        if self._match_keyword("HAVING"):
            statement.having = self._parse_condition(CLAUSE_KEYWORDS)

        if self._at_keyword("ORDER"):
            self._advance()
            self._expect_keyword("BY")
            statement.order_by = self._parse_fragment_list(CLAUSE_KEYWORDS)

        if self._match_keyword("LIMIT"):
            statement.limit = self._parse_fragment(CLAUSE_KEYWORDS, stop_at_comma=False)
            if self._match_keyword("OFFSET"):
                statement.offset = self._parse_fragment(CLAUSE_KEYWORDS, stop_at_comma=False)

        compound = self._match_keyword(*COMPOUND_KEYWORDS)
        if compound is not None:
            operator = compound.value.upper()
            if self._match_keyword("ALL"):
                operator += " ALL"
            statement.compound = (operator, self._parse_select())

        return statement

    def _parse_select_list(self) -> list[SelectItem]:
        items: list[SelectItem] = []
        while True:
            fragment = self._parse_fragment(CLAUSE_KEYWORDS)
            items.append(_split_alias(fragment))
            if not self._match_type("COMMA"):
                break
        return items

    def _parse_fragment_list(self, stops: frozenset[str]) -> list[Fragment]:
        fragments = [self._parse_fragment(stops)]
        while self._match_type("COMMA"):
            fragments.append(self._parse_fragment(stops))
        return fragments

    # Sources ---------------------------------------------------------------

    def _parse_source(self) -> Source:
        token = self._peek()
        if token is None:
            raise SqlSyntaxError("Unexpected end of input in FROM clause")

        if token.type == "LPAREN":
            if not self._at_subquery():
                raise SqlSyntaxError("Parenthesized join groups are not supported")
            self._advance()
            statement = self._parse_statement()
            self._expect_type("RPAREN")
            return SubquerySource(statement=statement, alias=self._parse_optional_alias())

        following = self._peek(1)
        if token.type == "IDENT" and following is not None and following.type == "LPAREN":
            name = self._advance()
            self._advance()
            if self._peek() is not None and self._peek().type == "RPAREN":  # type: ignore[union-attr]
                arguments = Fragment()
            else:
                arguments = self._parse_fragment(frozenset(), stop_at_comma=False)
            self._expect_type("RPAREN")
            alias = self._parse_optional_alias()
            if name.value.upper() == "UNNEST":
                return UnnestSource(argument=arguments, alias=alias)
            return FunctionSource(name=name, arguments=arguments, alias=alias)

        if not token.is_name or token.is_keyword(*ALIAS_STOP):
            raise SqlSyntaxError(f"Expected table reference but found {token.value!r}")
        parts = [self._advance()]
        while self._match_type("DOT"):
            segment = self._advance()
            if not segment.is_name:
                raise SqlSyntaxError(f"Invalid table reference segment {segment.value!r}")
            parts.append(segment)
        return TableSource(parts=parts, alias=self._parse_optional_alias())

    def _parse_optional_alias(self) -> Token | None:
        if self._match_keyword("AS"):
            alias = self._advance()
            if not alias.is_name and alias.type != "STRING":
                raise SqlSyntaxError(f"Invalid alias {alias.value!r}")
            return alias
        token = self._peek()
        if token is not None and token.type in ("IDENT", "QUOTED") and not token.is_keyword(*ALIAS_STOP):
            return self._advance()
        return None

    def _parse_joins(self) -> list[Join]:
        joins: list[Join] = []
        while True:
            if self._match_type("COMMA"):
                joins.append(Join(kind=",", source=self._parse_source()))
                continue
            if not self._at_keyword(*JOIN_KEYWORDS):
                break

            words: list[str] = []
            if self._match_keyword("NATURAL"):
                words.append("NATURAL")
            side = self._match_keyword("INNER", "CROSS", "LEFT", "RIGHT", "FULL")
            if side is not None:
                words.append(side.value.upper())
                if side.value.upper() in ("LEFT", "RIGHT", "FULL") and self._match_keyword("OUTER"):
                    words.append("OUTER")
            self._expect_keyword("JOIN")
            words.append("JOIN")

            join = Join(kind=" ".join(words), source=self._parse_source())
            if self._match_keyword("ON"):
                join.on = self._parse_fragment(CLAUSE_KEYWORDS | JOIN_KEYWORDS)
            elif self._match_keyword("USING"):
                self._expect_type("LPAREN")
                columns = [self._advance()]
                while self._match_type("COMMA"):
                    columns.append(self._advance())
                self._expect_type("RPAREN")
                join.using = columns
            joins.append(join)
        return joins

    # Conditions ------------------------------------------------------------

    def _parse_condition(self, stops: frozenset[str]) -> Condition:
        items = [self._parse_and(stops)]
        while self._match_keyword("OR"):
            items.append(self._parse_and(stops))
        return items[0] if len(items) == 1 else Or(items)

    def _parse_and(self, stops: frozenset[str]) -> Condition:
        items = [self._parse_not(stops)]
        while self._match_keyword("AND"):
            items.append(self._parse_not(stops))
        return items[0] if len(items) == 1 else And(items)

    def _parse_not(self, stops: frozenset[str]) -> Condition:
        following = self._peek(1)
        if self._at_keyword("NOT") and following is not None and not following.is_keyword("EXISTS"):
            self._advance()
            return Not(self._parse_not(stops))
        return self._parse_primary(stops)

    def _parse_primary(self, stops: frozenset[str]) -> Condition:
        if self._at_boolean_group(stops):
            self._advance()
            inner = self._parse_condition(frozenset())
            self._expect_type("RPAREN")
            return Group(inner)
        return Predicate(self._parse_fragment(stops | {"AND", "OR"}, between_aware=True))

    def _at_boolean_group(self, stops: frozenset[str]) -> bool:
        """True when a '(' opens a whole boolean sub-condition, not a scalar operand."""
        token = self._peek()
        if token is None or token.type != "LPAREN" or self._at_subquery():
            return False
        depth = 0
        index = self._index
        while index < len(self._tokens):
            current = self._tokens[index]
            if current.type == "LPAREN":
                depth += 1
            elif current.type == "RPAREN":
                depth -= 1
                if depth == 0:
                    break
            index += 1
        after = self._tokens[index + 1] if index + 1 < len(self._tokens) else None
        return (
            after is None
            or after.type in ("RPAREN", "SEMI")
            or after.is_keyword("AND", "OR", *stops)
        )

    # Fragments -------------------------------------------------------------

    def _parse_fragment(
        self,
        stops: frozenset[str],
        *,
        stop_at_comma: bool = True,
        between_aware: bool = False,
    ) -> Fragment:
        """Collect a scalar expression up to a top-level stop keyword, comma or ')'."""
        items: list[Token | SelectStatement] = []
        depth = 0
        case_depth = 0
        pending_between = False

        while True:
            token = self._peek()
            if token is None:
                break
            if depth == 0:
                if token.type in ("RPAREN", "SEMI"):
                    break
                if stop_at_comma and token.type == "COMMA":
                    break
                if case_depth == 0 and token.is_keyword(*stops) and not self._at_function_call():
                    if not (pending_between and token.is_keyword("AND")):
                        break
                    pending_between = False
                    items.append(self._advance())
                    continue
                if between_aware and token.is_keyword("BETWEEN"):
                    pending_between = True

            if self._at_subquery():
                self._advance()
                items.append(self._parse_statement())
                self._expect_type("RPAREN")
                continue
            if token.is_keyword("CASE"):
                case_depth += 1
            elif token.is_keyword("END") and case_depth > 0:
                case_depth -= 1
            elif token.type == "LPAREN":
                depth += 1
            elif token.type == "RPAREN":
                depth -= 1
            items.append(self._advance())

        if not items:
            found = self._peek()
            where = repr(found.value) if found else "end of input"
            raise SqlSyntaxError(f"Expected expression but found {where}")
        return Fragment(items)


def _split_alias(fragment: Fragment) -> SelectItem:
    """Peel a trailing ``[AS] alias`` off a select-list expression."""
    items = fragment.items
    if len(items) >= 3 and _is_token(items[-2]) and items[-2].is_keyword("AS"):  # type: ignore[union-attr]
        alias = items[-1]
        if _is_token(alias) and (alias.is_name or alias.type == "STRING"):  # type: ignore[union-attr]
            return SelectItem(expr=Fragment(items[:-2]), alias=alias)  # type: ignore[arg-type]
    if len(items) >= 2:
        last, prev = items[-1], items[-2]
        if (
            _is_token(last)
            and last.type in ("IDENT", "QUOTED")  # type: ignore[union-attr]
            and not last.is_keyword(*KEYWORDS)  # type: ignore[union-attr]
            and _can_precede_alias(prev)
        ):
            return SelectItem(expr=Fragment(items[:-1]), alias=last)  # type: ignore[arg-type]
    return SelectItem(expr=fragment)


def _is_token(item: object) -> bool:
    return isinstance(item, Token)


def _can_precede_alias(item: Token | SelectStatement) -> bool:
    if isinstance(item, SelectStatement):
        return True
    if item.type in ("QUOTED", "STRING", "NUMBER", "RPAREN", "PARAM"):
        return True
    if item.type == "IDENT":
        return not item.is_keyword(*KEYWORDS) or item.value.upper() in _ALIAS_PREV_KEYWORDS
    return False
