"""Database engine, sessions and transactions."""

from .session import check_database, get_engine, get_session_factory, init_db, transaction

__all__ = ["check_database", "get_engine", "get_session_factory", "init_db", "transaction"]
