"""deepdocs database layer."""

from deepdocs.db.backup import export_database, import_database, validate_backup
from deepdocs.db.connection import Database
from deepdocs.db.migrations import MIGRATIONS, run_migrations
from deepdocs.db.repository import Repository
from deepdocs.db.schema import initialize, open_db
from deepdocs.db.vectors import cosine_similarity, mean_vector

__all__ = [
    "Database",
    "export_database",
    "import_database",
    "validate_backup",
    "initialize",
    "open_db",
    "run_migrations",
    "MIGRATIONS",
    "Repository",
    "cosine_similarity",
    "mean_vector",
]
