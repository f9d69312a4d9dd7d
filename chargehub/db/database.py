"""
Core database functionality for the charging backend.
This module provides the basic data store operations used throughout the application.
"""
import logging
import sqlite3
from contextlib import contextmanager
from pathlib import Path

from chargehub.config.database_config import database_settings

logger = logging.getLogger("chargehub.db.core")

SCHEMA_FILE = Path(__file__).with_name("schema.sql")


class DataStoreError(Exception):
    """Raised when the data store rejects or fails a statement."""


class DataStoreIntegrityError(DataStoreError):
    """Raised when a write violates a constraint or unique index."""


def _wrap_error(e):
    if isinstance(e, sqlite3.IntegrityError):
        return DataStoreIntegrityError(str(e))
    return DataStoreError(str(e))


def _log_failure(kind, e, query, params):
    logger.error(f"❌ DATABASE {kind} ERROR: {str(e)}")
    logger.error(f"❌ FAILED QUERY: {query}")
    logger.error(f"❌ PARAMS: {params}")


def _connect(isolation_level=""):
    connection = sqlite3.connect(database_settings.database_path, isolation_level=isolation_level)
    # Enable dictionary access to rows
    connection.row_factory = sqlite3.Row
    connection.execute("PRAGMA foreign_keys = ON")
    return connection


@contextmanager
def get_db_connection():
    """
    Context manager for database connections.

    Yields:
        sqlite3.Connection: An open database connection
    """
    connection = None
    try:
        connection = _connect()
        yield connection
    except sqlite3.Error as e:
        logger.error(f"❌ DATABASE CONNECTION ERROR: {str(e)}")
        raise _wrap_error(e) from e
    finally:
        if connection:
            connection.close()


def execute_query(query, params=()):
    """
    Execute a SELECT query and return the results.

    Args:
        query (str): SQL query to execute
        params (tuple): Parameters for the query

    Returns:
        list: List of rows as dictionaries

    Raises:
        DataStoreError: If the query fails
    """
    try:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return [dict(row) for row in cursor.fetchall()]
    except DataStoreError as e:
        _log_failure("QUERY", e, query, params)
        raise


def execute_query_one(query, params=()):
    """Execute a SELECT query and return the first row, or None."""
    rows = execute_query(query, params)
    return rows[0] if rows else None


def execute_update(query, params=()):
    """
    Execute an UPDATE query.

    Args:
        query (str): SQL query to execute
        params (tuple): Parameters for the query

    Returns:
        int: Number of rows affected

    Raises:
        DataStoreError: If the update fails
    """
    try:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            conn.commit()
            return cursor.rowcount
    except DataStoreError as e:
        _log_failure("UPDATE", e, query, params)
        raise


def execute_insert(query, params=()):
    """
    Execute an INSERT query.

    Args:
        query (str): SQL query to execute
        params (tuple): Parameters for the query

    Returns:
        int: Last inserted row ID

    Raises:
        DataStoreError: If the insert fails
    """
    try:
        with get_db_connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            conn.commit()
            return cursor.lastrowid
    except DataStoreError as e:
        _log_failure("INSERT", e, query, params)
        raise


@contextmanager
def transaction():
    """
    Run several statements as one atomic unit.

    Opens the transaction with BEGIN IMMEDIATE so the write lock is taken
    before the first read; concurrent writers queue behind it. Commits when
    the block exits normally, rolls back on any exception.

    Yields:
        sqlite3.Cursor: Cursor bound to the open transaction
    """
    connection = None
    try:
        connection = _connect(isolation_level=None)
        cursor = connection.cursor()
        cursor.execute("BEGIN IMMEDIATE")
        try:
            yield cursor
        except BaseException:
            connection.execute("ROLLBACK")
            raise
        connection.execute("COMMIT")
    except sqlite3.Error as e:
        logger.error(f"❌ DATABASE TRANSACTION ERROR: {str(e)}")
        raise _wrap_error(e) from e
    finally:
        if connection:
            connection.close()


def init_db():
    """
    Initialize the database with schema if needed.

    Returns:
        bool: True if initialization was successful, False otherwise
    """
    schema_path = Path(database_settings.schema_path) if database_settings.schema_path else SCHEMA_FILE
    try:
        schema = schema_path.read_text(encoding="utf-8")
        with get_db_connection() as conn:
            conn.executescript(schema)
        logger.info(f"✅ Database schema applied to {database_settings.database_path}")
        return True
    except (DataStoreError, OSError) as e:
        logger.error(f"❌ DATABASE INITIALIZATION ERROR: {str(e)}")
        return False
