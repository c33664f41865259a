"""Schema provider reconstructed from Alembic migration files.

Parses the Python AST of each migration's ``upgrade()`` to detect:
- op.create_table() calls, with sa.Column(), sa.ForeignKey(),
  sa.ForeignKeyConstraint(), sa.PrimaryKeyConstraint() and
  sa.UniqueConstraint() arguments
- op.add_column() / op.drop_column() calls
- op.create_foreign_key() / op.drop_constraint() calls
- op.drop_table() calls

Migrations are applied in file name order on top of an in-memory schema.
"""

from __future__ import annotations

import ast
import dataclasses
import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from schemagraph_core.providers.base import ColumnInfo, ForeignKeyInfo
from schemagraph_core.providers.memory import InMemorySchemaProvider, TableDef

logger = logging.getLogger(__name__)


@dataclass
class MigrationOp:
    """One schema operation found in a migration."""

    kind: str
    table: str
    columns: list[ColumnInfo] = field(default_factory=list)
    foreign_keys: list[ForeignKeyInfo] = field(default_factory=list)
    target: str | None = None  # dropped column or constraint name


@dataclass
class MigrationExtraction:
    """Result of parsing one migration file."""

    file_path: str
    operations: list[MigrationOp] = field(default_factory=list)
    error: str | None = None


def _call_name(node: ast.Call) -> str | None:
    if isinstance(node.func, ast.Name):
        return node.func.id
    if isinstance(node.func, ast.Attribute):
        return node.func.attr
    return None


def _string(node: ast.expr) -> str | None:
    if isinstance(node, ast.Constant) and isinstance(node.value, str):
        return node.value
    return None


def _strings(node: ast.expr) -> list[str]:
    if isinstance(node, (ast.List, ast.Tuple)):
        return [v for v in (_string(elt) for elt in node.elts) if v]
    return []


def _constant(node: ast.expr) -> Any:
    if isinstance(node, ast.Constant):
        return node.value
    return None


def _keyword(node: ast.Call, name: str) -> ast.expr | None:
    for kw in node.keywords:
        if kw.arg == name:
            return kw.value
    return None


def _string_keyword(node: ast.Call, name: str) -> str | None:
    value = _keyword(node, name)
    return _string(value) if value is not None else None


def _split_reference(reference: str) -> tuple[str, str] | None:
    """Split a ``table.column`` (or ``schema.table.column``) reference."""
    parts = reference.split(".")
    if len(parts) < 2:
        return None
    return parts[-2], parts[-1]


class MigrationVisitor(ast.NodeVisitor):
    """AST visitor collecting Alembic operations in source order."""

    def __init__(self) -> None:
        self.operations: list[MigrationOp] = []

    def visit_Call(self, node: ast.Call) -> None:
        """Visit function calls to detect ``op.<operation>()`` calls."""
        if (
            isinstance(node.func, ast.Attribute)
            and isinstance(node.func.value, ast.Name)
            and node.func.value.id == "op"
        ):
            handler = getattr(self, f"_handle_{node.func.attr}", None)
            if handler is not None:
                handler(node)

        self.generic_visit(node)

    def _handle_create_table(self, node: ast.Call) -> None:
        if not node.args:
            return
        table_name = _string(node.args[0])
        if not table_name:
            return

        columns: list[ColumnInfo] = []
        foreign_keys: list[ForeignKeyInfo] = []
        primary_keys: set[str] = set()
        unique_columns: set[str] = set()

        for arg in node.args[1:]:
            if not isinstance(arg, ast.Call):
                continue
            name = _call_name(arg)
            if name == "Column":
                parsed = self._parse_column(arg)
                if parsed:
                    column, column_fks = parsed
                    columns.append(column)
                    foreign_keys.extend(column_fks)
            elif name == "ForeignKeyConstraint":
                foreign_keys.extend(self._parse_fk_constraint(arg))
            elif name == "PrimaryKeyConstraint":
                primary_keys.update(v for v in (_string(a) for a in arg.args) if v)
            elif name == "UniqueConstraint":
                names = [v for v in (_string(a) for a in arg.args) if v]
                if len(names) == 1:
                    unique_columns.add(names[0])

        fk_columns = {fk.column for fk in foreign_keys}
        columns = [
            dataclasses.replace(
                column,
                is_primary_key=column.is_primary_key or column.name in primary_keys,
                is_unique=column.is_unique or column.name in unique_columns,
                is_foreign_key=column.is_foreign_key or column.name in fk_columns,
            )
            for column in columns
        ]
        self.operations.append(
            MigrationOp(kind="create_table", table=table_name, columns=columns, foreign_keys=foreign_keys)
        )

    def _handle_add_column(self, node: ast.Call) -> None:
        if len(node.args) < 2:
            return
        table_name = _string(node.args[0])
        if not table_name or not isinstance(node.args[1], ast.Call):
            return

        parsed = self._parse_column(node.args[1])
        if parsed:
            column, column_fks = parsed
            self.operations.append(
                MigrationOp(kind="add_column", table=table_name, columns=[column], foreign_keys=column_fks)
            )

    def _handle_drop_column(self, node: ast.Call) -> None:
        if len(node.args) < 2:
            return
        table_name = _string(node.args[0])
        column_name = _string(node.args[1])
        if table_name and column_name:
            self.operations.append(MigrationOp(kind="drop_column", table=table_name, target=column_name))

    def _handle_drop_table(self, node: ast.Call) -> None:
        if node.args and (table_name := _string(node.args[0])):
            self.operations.append(MigrationOp(kind="drop_table", table=table_name))

    def _handle_create_foreign_key(self, node: ast.Call) -> None:
        # op.create_foreign_key(name, source_table, referent_table, local_cols, remote_cols)
        if len(node.args) < 5:
            return

        fk_name = _string(node.args[0])
        source_table = _string(node.args[1])
        target_table = _string(node.args[2])
        source_cols = _strings(node.args[3])
        target_cols = _strings(node.args[4])
        if not (source_table and target_table and source_cols):
            return

        options = self._fk_options(node)
        foreign_keys = [
            ForeignKeyInfo(
                column=column,
                to_table=target_table,
                to_column=target_cols[i] if i < len(target_cols) else None,
                constraint_name=fk_name,
                **options,
            )
            for i, column in enumerate(source_cols)
        ]
        self.operations.append(
            MigrationOp(kind="create_foreign_key", table=source_table, foreign_keys=foreign_keys)
        )

    def _handle_drop_constraint(self, node: ast.Call) -> None:
        if len(node.args) < 2:
            return
        constraint_name = _string(node.args[0])
        table_name = _string(node.args[1])
        if constraint_name and table_name:
            self.operations.append(
                MigrationOp(kind="drop_constraint", table=table_name, target=constraint_name)
            )

    def _parse_column(self, node: ast.Call) -> tuple[ColumnInfo, list[ForeignKeyInfo]] | None:
        """Parse a sa.Column() call into a column and its inline foreign keys."""
        if _call_name(node) != "Column" or not node.args:
            return None

        column_name = _string(node.args[0])
        if not column_name:
            return None

        type_name = "unknown"
        if len(node.args) > 1:
            type_name = self._get_type_name(node.args[1])

        nullable = True
        primary_key = False
        unique = False
        default = None
        for kw in node.keywords:
            if kw.arg == "nullable":
                nullable = bool(_constant(kw.value)) if isinstance(kw.value, ast.Constant) else True
            elif kw.arg == "primary_key":
                primary_key = _constant(kw.value) is True
            elif kw.arg == "unique":
                unique = _constant(kw.value) is True
            elif kw.arg in ("default", "server_default") and default is None:
                default = _constant(kw.value)

        foreign_keys: list[ForeignKeyInfo] = []
        for arg in node.args[1:]:
            if isinstance(arg, ast.Call) and _call_name(arg) == "ForeignKey" and arg.args:
                reference = _string(arg.args[0])
                target = _split_reference(reference) if reference else None
                if target:
                    foreign_keys.append(
                        ForeignKeyInfo(
                            column=column_name,
                            to_table=target[0],
                            to_column=target[1],
                            constraint_name=_string_keyword(arg, "name"),
                            **self._fk_options(arg),
                        )
                    )

        column = ColumnInfo(
            name=column_name,
            type=type_name,
            nullable=nullable and not primary_key,
            default=default,
            is_primary_key=primary_key,
            is_unique=unique,
            is_foreign_key=bool(foreign_keys),
        )
        return column, foreign_keys

    def _parse_fk_constraint(self, node: ast.Call) -> list[ForeignKeyInfo]:
        """Parse sa.ForeignKeyConstraint(["col"], ["table.col"], name=...)."""
        if len(node.args) < 2:
            return []

        local_columns = _strings(node.args[0])
        references = _strings(node.args[1])
        constraint_name = _string_keyword(node, "name")
        options = self._fk_options(node)

        foreign_keys = []
        for column, reference in zip(local_columns, references):
            target = _split_reference(reference)
            if target:
                foreign_keys.append(
                    ForeignKeyInfo(
                        column=column,
                        to_table=target[0],
                        to_column=target[1],
                        constraint_name=constraint_name,
                        **options,
                    )
                )
        return foreign_keys

    def _fk_options(self, node: ast.Call) -> dict[str, str | None]:
        return {
            "on_delete": _string_keyword(node, "ondelete"),
            "on_update": _string_keyword(node, "onupdate"),
        }

    def _get_type_name(self, node: ast.expr) -> str:
        """Get the type name from a type expression."""
        if isinstance(node, ast.Call):
            return _call_name(node) or "unknown"
        if isinstance(node, ast.Name):
            return node.id
        if isinstance(node, ast.Attribute):
            return node.attr
        return "unknown"


def extract_from_migration(file_path: str, content: str) -> MigrationExtraction:
    """Extract schema operations from an Alembic migration file.

    Only the module-level ``upgrade()`` function is visited when present, so
    the inverse operations in ``downgrade()`` are not applied.

    Args:
        file_path: Path to the migration file
        content: File content

    Returns:
        MigrationExtraction with the operations in source order
    """
    result = MigrationExtraction(file_path=file_path)

    try:
        tree = ast.parse(content)
    except SyntaxError as e:
        logger.warning("Failed to parse %s: %s", file_path, e)
        result.error = str(e)
        return result

    upgrade = next(
        (n for n in tree.body if isinstance(n, ast.FunctionDef) and n.name == "upgrade"),
        None,
    )
    visitor = MigrationVisitor()
    visitor.visit(upgrade if upgrade is not None else tree)
    result.operations = visitor.operations
    return result


class MigrationSchemaProvider(InMemorySchemaProvider):
    """Schema provider whose tables are rebuilt from migration history."""

    def __init__(self) -> None:
        super().__init__()
        self.sources: list[str] = []

    @classmethod
    def from_sources(cls, sources: Iterable[tuple[str, str]]) -> MigrationSchemaProvider:
        """Build a provider from ``(path, content)`` pairs.

        Migrations are applied in file name order; files that do not parse
        are logged and skipped.
        """
        provider = cls()
        for file_path, content in sorted(sources, key=lambda s: Path(s[0]).name):
            provider.apply(extract_from_migration(file_path, content))
        return provider

    @classmethod
    def from_directory(cls, migrations_dir: str | Path) -> MigrationSchemaProvider:
        """Build a provider from all migrations in a directory.

        Args:
            migrations_dir: Path to an alembic/versions directory
        """
        migrations_dir = Path(migrations_dir)
        if not migrations_dir.exists():
            logger.warning("Migrations directory not found: %s", migrations_dir)
            return cls()

        sources = [
            (str(path), path.read_text(encoding="utf-8", errors="replace"))
            for path in migrations_dir.glob("*.py")
            if not path.name.startswith("__")
        ]
        return cls.from_sources(sources)

    def apply(self, extraction: MigrationExtraction) -> None:
        """Apply one migration's operations to the schema."""
        if extraction.error is not None:
            return

        self.sources.append(extraction.file_path)
        for op in extraction.operations:
            if op.kind == "drop_table":
                self._tables.pop(op.table, None)
                continue

            table = self._tables.get(op.table)
            if table is None:
                if op.kind in ("drop_column", "drop_constraint"):
                    continue
                table = self.add_table(TableDef(name=op.table))

            if op.kind == "drop_column":
                table.columns = [c for c in table.columns if c.name != op.target]
                table.foreign_keys = [fk for fk in table.foreign_keys if fk.column != op.target]
            elif op.kind == "drop_constraint":
                table.foreign_keys = [
                    fk for fk in table.foreign_keys if fk.constraint_name != op.target
                ]
            else:
                self._merge(table, op)

        logger.debug(
            "Applied %d operations from %s", len(extraction.operations), extraction.file_path
        )

    def _merge(self, table: TableDef, op: MigrationOp) -> None:
        existing = {c.name for c in table.columns}
        table.columns.extend(c for c in op.columns if c.name not in existing)
        table.foreign_keys.extend(op.foreign_keys)

        fk_columns = {fk.column for fk in op.foreign_keys}
        if fk_columns:
            table.columns = [
                dataclasses.replace(c, is_foreign_key=True) if c.name in fk_columns else c
                for c in table.columns
            ]
