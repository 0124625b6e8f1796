from __future__ import annotations

from dataclasses import dataclass, field

"""Table reference models produced by the reference resolver.

A ``file.sheet`` token in a query becomes a TableReference. An
``alias.field`` (UNNEST argument) or ``alias.field.arrayField`` token whose
first segment is an alias bound earlier in the same query becomes an
ArrayFieldReference instead.
"""

__all__ = [
    "TableReference",
    "ArrayFieldReference",
    "ResolvedReferences",
]


@dataclass(frozen=True)
class TableReference:
    """A spreadsheet table addressed by its composite ``file.sheet`` key."""
    raw_text: str  # 元のクエリ上の表記 (例: Sales.2023)
    file_name: str
    sheet_name: str
    alias: str | None = None

    @property
    def key(self) -> str:
        return f"{self.file_name}.{self.sheet_name}"


@dataclass(frozen=True)
class ArrayFieldReference:
    """An array-valued field expanded into rows (UNNEST source)."""
    raw_text: str
    base_alias: str
    path: tuple[str, ...]  # field, optionally followed by nested object keys
    array_alias: str

    @property
    def field(self) -> str:
        return self.path[0]


@dataclass
class ResolvedReferences:
    """Resolver output: distinct tables, alias bindings and array references."""
    tables: list[TableReference] = field(default_factory=list)
    aliases: dict[str, TableReference] = field(default_factory=dict)
    array_fields: dict[str, ArrayFieldReference] = field(default_factory=dict)

    @property
    def table_keys(self) -> set[str]:
        return {t.key for t in self.tables}
