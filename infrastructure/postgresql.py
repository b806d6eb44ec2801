"""
PostgreSQL Engine Repository - Direct Database Access

PostgreSQL implementation of IEngineRepository on psycopg 3 (async) with
a shared psycopg_pool.AsyncConnectionPool.

Storage:
    {app_schema}.translation_engines, one row per engine, the current
    build serialized as JSONB in current_build (NULL when idle).

Atomicity:
    update() is a single statement:

        WITH target AS (
            SELECT ... WHERE <filter> LIMIT 1 FOR UPDATE
        ), updated AS (
            UPDATE ... FROM target WHERE engine_id = target.engine_id RETURNING ...
        )
        SELECT ... FROM target | updated

    FOR UPDATE makes a concurrent writer wait and re-evaluates the filter
    against the row it committed, so of two racing conditional updates
    at most one matches.

Security:
    All SQL is composed with psycopg.sql; schema/table names are
    Identifiers, values are parameters.

Exports:
    PostgreSQLEngineRepository
"""

from contextlib import contextmanager
from typing import Any, List, Optional, Tuple

import psycopg
from psycopg import sql
from psycopg.types.json import Jsonb
from psycopg_pool import AsyncConnectionPool

from config.defaults import DatabaseDefaults
from core.models import BuildJobRunnerType, BuildJobState, TranslationEngine
from core.schema.ddl import build_engines_table_ddl
from core.schema.updates import EngineFilter, EngineUpdateModel
from exceptions import DatabaseError
from util_logger import LoggerFactory, ComponentType

from .interface_repository import IEngineRepository

_COLUMNS = (
    "engine_id", "engine_type", "name", "source_language", "target_language",
    "build_revision", "current_build", "created_at", "updated_at",
)


class PostgreSQLEngineRepository(IEngineRepository):
    """
    Engine repository backed by one PostgreSQL table.
    """

    def __init__(
        self,
        pool: AsyncConnectionPool,
        schema_name: str = DatabaseDefaults.APP_SCHEMA,
        table_name: str = DatabaseDefaults.ENGINES_TABLE
    ):
        self._pool = pool
        self.schema_name = schema_name
        self.table_name = table_name
        self.logger = LoggerFactory.create_logger(ComponentType.REPOSITORY, "PostgreSQLEngineRepository")

    # ========================================================================
    # INFRASTRUCTURE
    # ========================================================================

    @contextmanager
    def _error_context(self, operation: str, entity_id: Optional[str] = None):
        """
        Wrap driver errors in DatabaseError with the operation and entity
        in the message. The original exception is chained.
        """
        try:
            yield
        except psycopg.Error as e:
            target = f" for {entity_id}" if entity_id else ""
            self.logger.error(
                f"❌ {operation} failed{target}: {e}",
                extra={'custom_dimensions': {'sqlstate': getattr(e, 'sqlstate', None)}}
            )
            raise DatabaseError(f"{operation} failed{target}: {e}") from e

    @property
    def _table(self) -> sql.Composed:
        return sql.SQL("{}.{}").format(sql.Identifier(self.schema_name), sql.Identifier(self.table_name))

    @staticmethod
    def _columns(alias: Optional[str] = None) -> sql.Composed:
        if alias:
            return sql.SQL(", ").join(sql.Identifier(alias, c) for c in _COLUMNS)
        return sql.SQL(", ").join(sql.Identifier(c) for c in _COLUMNS)

    async def _execute(self, query: sql.Composed, params: Optional[Tuple] = None, fetch: Optional[str] = None) -> Any:
        """
        Execute one statement on a pooled (autocommit) connection.

        fetch: None | 'one' | 'all'
        """
        if not isinstance(query, sql.Composed):
            raise TypeError(f"❌ SECURITY: Query must be sql.Composed, got {type(query)}")
        if fetch not in (None, 'one', 'all'):
            raise ValueError(f"❌ INVALID FETCH MODE: {fetch}")

        async with self._pool.connection() as conn:
            async with conn.cursor() as cursor:
                await cursor.execute(query, params)
                if fetch == 'one':
                    return await cursor.fetchone()
                if fetch == 'all':
                    return await cursor.fetchall()
                return cursor.rowcount

    async def ensure_schema(self) -> None:
        """Create the schema, table and index if missing."""
        with self._error_context("schema deployment", f"{self.schema_name}.{self.table_name}"):
            for statement in build_engines_table_ddl(self.schema_name, self.table_name):
                await self._execute(statement)
        self.logger.info(f"✅ Engines table ready: {self.schema_name}.{self.table_name}")

    # ========================================================================
    # SQL COMPILATION
    # ========================================================================

    def _compile_filter(self, engine_filter: EngineFilter, alias: str) -> Tuple[sql.Composed, List[Any]]:
        """Translate an EngineFilter to a WHERE clause and parameters."""
        build = sql.Identifier(alias, "current_build")
        clauses: List[sql.Composable] = []
        params: List[Any] = []

        if engine_filter.engine_id is not None:
            clauses.append(sql.SQL("{} = %s").format(sql.Identifier(alias, "engine_id")))
            params.append(engine_filter.engine_id)
        if engine_filter.has_build is not None:
            clauses.append(sql.SQL("{} IS NOT NULL" if engine_filter.has_build else "{} IS NULL").format(build))
        if engine_filter.build_id is not None:
            clauses.append(sql.SQL("{}->>'build_id' = %s").format(build))
            params.append(engine_filter.build_id)
        if engine_filter.job_state is not None:
            if engine_filter.job_state == BuildJobState.NONE:
                clauses.append(sql.SQL("{} IS NULL").format(build))
            else:
                clauses.append(sql.SQL("{}->>'job_state' = %s").format(build))
                params.append(BuildJobState(engine_filter.job_state).value)
        if engine_filter.job_state_not is not None:
            if engine_filter.job_state_not == BuildJobState.NONE:
                clauses.append(sql.SQL("{} IS NOT NULL").format(build))
            else:
                clauses.append(sql.SQL("({0} IS NULL OR {0}->>'job_state' <> %s)").format(build))
                params.append(BuildJobState(engine_filter.job_state_not).value)
        if engine_filter.job_runner is not None:
            clauses.append(sql.SQL("{}->>'job_runner' = %s").format(build))
            params.append(BuildJobRunnerType(engine_filter.job_runner).value)

        if not clauses:
            return sql.SQL("TRUE"), params
        return sql.SQL(" AND ").join(clauses), params

    def _compile_update(self, update: EngineUpdateModel, alias: str) -> Tuple[sql.Composed, List[Any]]:
        """Translate an EngineUpdateModel to SET assignments and parameters."""
        assignments: List[sql.Composable] = []
        params: List[Any] = []

        if update.unset_current_build:
            assignments.append(sql.SQL("current_build = NULL"))
        elif update.current_build is not None:
            assignments.append(sql.SQL("current_build = %s"))
            params.append(Jsonb(update.current_build.model_dump(mode='json')))
        elif update.job_state is not None:
            assignments.append(
                sql.SQL("current_build = jsonb_set({}, '{{job_state}}', to_jsonb(%s::text))").format(
                    sql.Identifier(alias, "current_build")
                )
            )
            params.append(BuildJobState(update.job_state).value)

        if update.inc_build_revision:
            assignments.append(sql.SQL("build_revision = {} + 1").format(sql.Identifier(alias, "build_revision")))

        assignments.append(sql.SQL("updated_at = NOW()"))
        return sql.SQL(", ").join(assignments), params

    @staticmethod
    def _row_to_engine(row: dict) -> TranslationEngine:
        return TranslationEngine(**row)

    # ========================================================================
    # IEngineRepository
    # ========================================================================

    async def get(self, engine_filter: EngineFilter) -> Optional[TranslationEngine]:
        with self._error_context("engine retrieval", engine_filter.engine_id):
            where, params = self._compile_filter(engine_filter, "e")
            query = sql.SQL("SELECT {columns} FROM {table} AS e WHERE {where} LIMIT 1").format(
                columns=self._columns("e"), table=self._table, where=where
            )
            row = await self._execute(query, tuple(params), fetch='one')
            if not row:
                return None
            return self._row_to_engine(row)

    async def get_all(self, engine_filter: EngineFilter) -> List[TranslationEngine]:
        with self._error_context("engine listing"):
            where, params = self._compile_filter(engine_filter, "e")
            query = sql.SQL("SELECT {columns} FROM {table} AS e WHERE {where} ORDER BY e.created_at").format(
                columns=self._columns("e"), table=self._table, where=where
            )
            rows = await self._execute(query, tuple(params), fetch='all')
            return [self._row_to_engine(row) for row in rows]

    async def exists(self, engine_filter: EngineFilter) -> bool:
        with self._error_context("engine existence check", engine_filter.engine_id):
            where, params = self._compile_filter(engine_filter, "e")
            query = sql.SQL("SELECT EXISTS (SELECT 1 FROM {table} AS e WHERE {where}) AS found").format(
                table=self._table, where=where
            )
            row = await self._execute(query, tuple(params), fetch='one')
            return bool(row and row['found'])

    async def insert(self, engine: TranslationEngine) -> None:
        with self._error_context("engine creation", engine.engine_id):
            query = sql.SQL("INSERT INTO {table} ({columns}) VALUES ({values})").format(
                table=self._table,
                columns=self._columns(),
                values=(sql.Placeholder() * len(_COLUMNS)).join(", ")
            )
            current_build = engine.current_build.model_dump(mode='json') if engine.current_build else None
            params = (
                engine.engine_id,
                engine.engine_type.value,
                engine.name,
                engine.source_language,
                engine.target_language,
                engine.build_revision,
                Jsonb(current_build) if current_build is not None else None,
                engine.created_at,
                engine.updated_at,
            )
            await self._execute(query, params)
        self.logger.info(f"✅ Engine created: {engine.engine_id} ({engine.engine_type.value})")

    async def update(
        self,
        engine_filter: EngineFilter,
        update: EngineUpdateModel,
        return_original: bool = False
    ) -> Optional[TranslationEngine]:
        with self._error_context("engine update", engine_filter.engine_id):
            where, where_params = self._compile_filter(engine_filter, "t")
            assignments, set_params = self._compile_update(update, "e")
            query = sql.SQL("""
                WITH target AS (
                    SELECT {target_columns} FROM {table} AS t
                    WHERE {where}
                    LIMIT 1
                    FOR UPDATE
                ), updated AS (
                    UPDATE {table} AS e
                    SET {assignments}
                    FROM target
                    WHERE e.engine_id = target.engine_id
                    RETURNING {returning}
                )
                SELECT * FROM {source}
            """).format(
                target_columns=self._columns("t"),
                table=self._table,
                where=where,
                assignments=assignments,
                returning=self._columns("e"),
                source=sql.Identifier("target" if return_original else "updated"),
            )
            row = await self._execute(query, tuple(where_params + set_params), fetch='one')

        if not row:
            self.logger.debug(f"⏭️ Update matched nothing: {engine_filter.to_dict()}")
            return None
        self.logger.debug(f"✏️ Updated engine {row['engine_id']}: {update.to_dict()}")
        return self._row_to_engine(row)

    async def delete(self, engine_filter: EngineFilter) -> Optional[TranslationEngine]:
        with self._error_context("engine deletion", engine_filter.engine_id):
            where, params = self._compile_filter(engine_filter, "t")
            query = sql.SQL("""
                WITH target AS (
                    SELECT t.engine_id FROM {table} AS t
                    WHERE {where}
                    LIMIT 1
                    FOR UPDATE
                )
                DELETE FROM {table} AS e
                USING target
                WHERE e.engine_id = target.engine_id
                RETURNING {returning}
            """).format(
                table=self._table,
                where=where,
                returning=self._columns("e"),
            )
            row = await self._execute(query, tuple(params), fetch='one')

        if not row:
            return None
        self.logger.info(f"🗑️ Engine deleted: {row['engine_id']}")
        return self._row_to_engine(row)
