import sqlite3

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy import event
from sqlalchemy.engine import Engine

# Extensions are created unbound and attached in create_app()

# Database
db = SQLAlchemy()


# SQLite ignores FOREIGN KEY clauses unless asked on every connection.
# Facility deletes rely on the constraint rejecting a delete before detach.
@event.listens_for(Engine, "connect")
def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    if isinstance(dbapi_connection, sqlite3.Connection):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()
