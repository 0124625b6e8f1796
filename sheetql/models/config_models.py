from __future__ import annotations

from dataclasses import dataclass, field

"""Config dataclasses for sheetql.

These are built by ``sheetql.config.loader.load_config`` after the YAML file has
been validated against the packaged JSON schema.
"""


@dataclass(frozen=True)
class SheetQLConfig:
    """Root configuration object.

    ``excluded_columns`` applies to every table loaded, whatever the query shape.
    """
    source_directory: str  # .xlsx を探索するディレクトリ
    excluded_columns: frozenset[str] = field(default_factory=frozenset)
    parse_json_strings: bool = True  # '[' / '{' で始まる文字列を JSON として解釈
    keep_na_strings: list[str] | None = None  # pandas の NaN 変換から除外する文字列
    strict_expressions: bool = False  # 評価式のフォールバックを WARN として記録
    validation_rules: list[str] = field(default_factory=list)  # 既定の検証ルール
    error_log_dir: str = "logs"
