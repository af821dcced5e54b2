"""Ordered, reversible schema migrations for the key table.

Each step is a list of statements; a statement is either raw SQL that every
supported engine accepts, or a callable receiving an alembic ``Operations``
object so alembic renders the DDL for the connected dialect.

Applied steps are recorded in a bookkeeping table whose name is passed to the
registry, so separate stores (or separate tests) keep separate histories:

    registry = MigrationRegistry(engine, table_name="hydra_jwk_migration")
    registry.apply_schema()        # -> number of steps applied
    registry.rollback(max_steps=1) # -> number of steps reverted

The step sequence must stay exactly as released: deployments that already
applied a step will never run it again.
"""

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence, Tuple, Union

import sqlalchemy as sa
from alembic.migration import MigrationContext
from alembic.operations import Operations
from sqlalchemy.engine import Connection, Engine

from jwkstore.core.exceptions import MigrationError
from jwkstore.db.models import JWK_TABLE

logger = logging.getLogger(__name__)

DEFAULT_MIGRATION_TABLE = "hydra_jwk_migration"

# Set name whose rows were written by a bug in early releases
LEGACY_ID_TOKEN_SET = "hydra.openid.id-token"

Statement = Union[str, Callable[[Operations], None]]


@dataclass(frozen=True)
class MigrationStep:
    """One schema change. An empty ``down`` means the step is one-way."""

    id: str
    up: Tuple[Statement, ...]
    down: Tuple[Statement, ...] = ()
    description: str = ""

    @property
    def reversible(self) -> bool:
        return bool(self.down)


@dataclass(frozen=True)
class MigrationStatus:
    id: str
    description: str
    applied: bool
    applied_at: Optional[datetime] = None


def _batch_mode(op: Operations) -> str:
    # SQLite cannot ALTER a column with a non-constant default in place
    return "always" if op.get_context().dialect.name == "sqlite" else "auto"


def _create_jwk_table(op: Operations) -> None:
    op.create_table(
        JWK_TABLE,
        sa.Column("sid", sa.String(255), nullable=False),
        sa.Column("kid", sa.String(255), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("keydata", sa.Text(), nullable=False),
        sa.PrimaryKeyConstraint("sid", "kid"),
        if_not_exists=True,
    )


def _drop_jwk_table(op: Operations) -> None:
    op.drop_table(JWK_TABLE)


def _add_created_at(op: Operations) -> None:
    with op.batch_alter_table(JWK_TABLE, recreate=_batch_mode(op)) as batch:
        batch.add_column(
            sa.Column(
                "created_at",
                sa.DateTime(),
                nullable=False,
                server_default=sa.text("CURRENT_TIMESTAMP"),
            )
        )


def _drop_created_at(op: Operations) -> None:
    with op.batch_alter_table(JWK_TABLE, recreate=_batch_mode(op)) as batch:
        batch.drop_column("created_at")


MIGRATIONS: Tuple[MigrationStep, ...] = (
    MigrationStep(
        id="1",
        up=(_create_jwk_table,),
        down=(_drop_jwk_table,),
        description="create hydra_jwk",
    ),
    MigrationStep(
        id="2",
        up=(_add_created_at,),
        down=(_drop_created_at,),
        description="add hydra_jwk.created_at",
    ),
    # One-time cleanup of keys stored under the legacy ID token set name.
    # Deleted rows cannot be restored, so there is no down step.
    MigrationStep(
        id="3",
        up=(f"DELETE FROM {JWK_TABLE} WHERE sid='{LEGACY_ID_TOKEN_SET}'",),
        down=(),
        description="remove legacy id-token keys (irreversible)",
    ),
)


def _sort_key(step: MigrationStep) -> Tuple[int, int, str]:
    # "2" sorts before "10"; ids without a numeric prefix sort last
    match = re.match(r"^(\d+)", step.id)
    if match:
        return (0, int(match.group(1)), step.id)
    return (1, 0, step.id)


class MigrationRegistry:
    """Applies and reverts ``MigrationStep``s against one engine."""

    def __init__(
        self,
        engine: Engine,
        table_name: str = DEFAULT_MIGRATION_TABLE,
        steps: Sequence[MigrationStep] = MIGRATIONS,
    ):
        ids = [step.id for step in steps]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"Duplicate migration ids: {', '.join(duplicates)}")

        self.engine = engine
        self.table_name = table_name
        self.steps: List[MigrationStep] = sorted(steps, key=_sort_key)

        self._metadata = sa.MetaData()
        self._table = sa.Table(
            table_name,
            self._metadata,
            sa.Column("id", sa.String(255), primary_key=True),
            sa.Column("applied_at", sa.DateTime(), nullable=False),
        )

    # -----------------------------------------------------------------------
    # Bookkeeping
    # -----------------------------------------------------------------------

    def _ensure_table(self) -> None:
        with self.engine.begin() as conn:
            self._metadata.create_all(conn, tables=[self._table])

    def _applied_rows(self) -> Dict[str, datetime]:
        self._ensure_table()
        with self.engine.connect() as conn:
            rows = conn.execute(sa.select(self._table.c.id, self._table.c.applied_at)).all()
        return {row.id: row.applied_at for row in rows}

    def applied_ids(self) -> List[str]:
        """Ids of recorded steps, in application order."""
        applied = self._applied_rows()
        return [step.id for step in self.steps if step.id in applied]

    def pending(self) -> List[MigrationStep]:
        applied = self._applied_rows()
        return [step for step in self.steps if step.id not in applied]

    def status(self) -> List[MigrationStatus]:
        applied = self._applied_rows()
        return [
            MigrationStatus(
                id=step.id,
                description=step.description,
                applied=step.id in applied,
                applied_at=applied.get(step.id),
            )
            for step in self.steps
        ]

    # -----------------------------------------------------------------------
    # Execution
    # -----------------------------------------------------------------------

    @staticmethod
    def _run(conn: Connection, statements: Sequence[Statement]) -> None:
        op = Operations(MigrationContext.configure(connection=conn))
        for statement in statements:
            if isinstance(statement, str):
                op.execute(statement)
            else:
                statement(op)

    def apply_schema(self, max_steps: Optional[int] = None) -> int:
        """Apply pending steps in order, each in its own transaction.

        Returns the number of steps applied. On failure raises
        ``MigrationError`` whose ``applied`` holds the steps that did succeed.
        """
        todo = self.pending()
        if max_steps is not None:
            todo = todo[:max_steps]

        applied = 0
        for step in todo:
            try:
                with self.engine.begin() as conn:
                    self._run(conn, step.up)
                    conn.execute(
                        self._table.insert().values(
                            id=step.id,
                            applied_at=datetime.now(timezone.utc).replace(tzinfo=None),
                        )
                    )
            except Exception as exc:
                logger.error(
                    "Migration step %s failed after %d applied",
                    step.id,
                    applied,
                    extra={"migration_table": self.table_name},
                )
                raise MigrationError(
                    f"Could not migrate sql schema, applied {applied} migrations",
                    applied=applied,
                    step_id=step.id,
                ) from exc
            applied += 1
            logger.info("Applied migration step %s", step.id, extra={"migration_table": self.table_name})
        return applied

    def rollback(self, max_steps: Optional[int] = None) -> int:
        """Revert applied steps newest-first. Returns the number reverted.

        One-way steps are un-recorded without running any statements.
        """
        applied = set(self.applied_ids())
        todo = [step for step in reversed(self.steps) if step.id in applied]
        if max_steps is not None:
            todo = todo[:max_steps]

        reverted = 0
        for step in todo:
            try:
                with self.engine.begin() as conn:
                    if step.reversible:
                        self._run(conn, step.down)
                    else:
                        logger.warning("Migration step %s is irreversible; removing its record only", step.id)
                    conn.execute(self._table.delete().where(self._table.c.id == step.id))
            except Exception as exc:
                logger.error(
                    "Reverting migration step %s failed after %d reverted",
                    step.id,
                    reverted,
                    extra={"migration_table": self.table_name},
                )
                raise MigrationError(
                    f"Could not revert sql schema, reverted {reverted} migrations",
                    applied=reverted,
                    step_id=step.id,
                ) from exc
            reverted += 1
            logger.info("Reverted migration step %s", step.id, extra={"migration_table": self.table_name})
        return reverted
