"""
DDL for the translation engines table.

All statements are psycopg.sql.Composed objects; schema and table names
are composed as identifiers, never interpolated as strings.

Table layout:
    engine_id        VARCHAR PK
    engine_type      VARCHAR
    name             VARCHAR NULL
    source_language  VARCHAR
    target_language  VARCHAR
    build_revision   INTEGER >= 0
    current_build    JSONB NULL   (serialized Build)
    created_at       TIMESTAMPTZ
    updated_at       TIMESTAMPTZ

Exports:
    build_engines_table_ddl: CREATE SCHEMA / TABLE / INDEX statements
"""

from typing import List
from psycopg import sql


def build_engines_table_ddl(schema: str, table: str) -> List[sql.Composed]:
    """
    Generate idempotent DDL for the engines table.

    Args:
        schema: Target schema (APP_SCHEMA)
        table: Table name

    Returns:
        Statements to execute in order
    """
    schema_id = sql.Identifier(schema)
    table_id = sql.Identifier(table)

    return [
        sql.SQL("CREATE SCHEMA IF NOT EXISTS {schema}").format(schema=schema_id),
        sql.SQL("""
            CREATE TABLE IF NOT EXISTS {schema}.{table} (
                engine_id VARCHAR PRIMARY KEY,
                engine_type VARCHAR NOT NULL,
                name VARCHAR NULL,
                source_language VARCHAR NOT NULL DEFAULT '',
                target_language VARCHAR NOT NULL DEFAULT '',
                build_revision INTEGER NOT NULL DEFAULT 0 CHECK (build_revision >= 0),
                current_build JSONB NULL,
                created_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW(),
                updated_at TIMESTAMP WITH TIME ZONE NOT NULL DEFAULT NOW()
            )
        """).format(schema=schema_id, table=table_id),
        # Cluster monitor scans building engines by runner
        sql.SQL("""
            CREATE INDEX IF NOT EXISTS {index} ON {schema}.{table}
            ((current_build->>'job_runner'))
            WHERE current_build IS NOT NULL
        """).format(
            index=sql.Identifier(f"idx_{table}_building_runner"),
            schema=schema_id,
            table=table_id
        ),
    ]
