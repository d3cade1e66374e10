"""SQLAlchemy-backed content store."""

from .sqlalchemy_store import SQLAlchemyContentStore, SQLAlchemyTransaction, translate_errors
from .tables import TABLES, Base, TableSpec

__all__ = [
    "SQLAlchemyContentStore",
    "SQLAlchemyTransaction",
    "translate_errors",
    "Base",
    "TABLES",
    "TableSpec",
]
