"""Database engine, session factory and declarative base."""

from dealflow.db.session import Base, SessionLocal, check_db_connection, engine

__all__ = ["Base", "SessionLocal", "check_db_connection", "engine"]
