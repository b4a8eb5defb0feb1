"""PostgreSQL query constants shared by the SQL adapters."""

# Basic health check
BASIC_HEALTH_CHECK = "SELECT 1"

# Namespace listing
LIST_SCHEMAS = "SELECT schema_name FROM information_schema.schemata ORDER BY schema_name"
LIST_DATABASES = "SELECT datname FROM pg_database WHERE datistemplate = false ORDER BY datname"

# Namespace DDL templates, identifiers are quoted by the caller
CREATE_SCHEMA = "CREATE SCHEMA {name}"
DROP_SCHEMA = "DROP SCHEMA IF EXISTS {name} CASCADE"
CREATE_DATABASE = "CREATE DATABASE {name}"
DROP_DATABASE = "DROP DATABASE IF EXISTS {name}"

# Template cloning
LIST_SCHEMA_TABLES = "SELECT tablename FROM pg_tables WHERE schemaname = $1 ORDER BY tablename"
LIST_SCHEMA_TABLES_NAMED = "SELECT tablename FROM pg_tables WHERE schemaname = :schema ORDER BY tablename"
CLONE_TABLE = "CREATE TABLE {target}.{table} (LIKE {source}.{table} INCLUDING ALL)"

# Session termination before DROP DATABASE
TERMINATE_SESSIONS = """
    SELECT pg_terminate_backend(pid)
    FROM pg_stat_activity
    WHERE datname = $1 AND pid <> pg_backend_pid()
"""
TERMINATE_SESSIONS_NAMED = """
    SELECT pg_terminate_backend(pid)
    FROM pg_stat_activity
    WHERE datname = :database AND pid <> pg_backend_pid()
"""

# Statements that return rows when executed raw
ROW_RETURNING_PREFIXES = ("SELECT", "WITH", "SHOW", "VALUES", "EXPLAIN", "TABLE")


def quote_catalog_name(name: str) -> str:
    """Quote a name read back from the catalog, escaping embedded quotes."""
    return '"' + name.replace('"', '""') + '"'


def returns_rows(command: str) -> bool:
    statement = command.lstrip().upper()
    return statement.startswith(ROW_RETURNING_PREFIXES) or " RETURNING " in f"{statement} "
