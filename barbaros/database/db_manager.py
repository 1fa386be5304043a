import sqlite3
import threading
from pathlib import Path
from contextlib import contextmanager
from barbaros.config.paths import DB_PATH
from barbaros.utils.logging import setup_logger

class DatabaseManager:
    """
    Owns the SQLite connection used by the repository models.

    The connection is opened explicitly at startup and closed at shutdown;
    it can also be used as a context manager.
    """

    def __init__(self, db_path=None):
        self.db_path = Path(db_path) if db_path else DB_PATH
        self.logger = setup_logger()
        self._conn = None
        self._lock = threading.RLock()
        self._depth = 0

    def open(self):
        """
        Open the connection. Calling it on an open manager does nothing.
        """
        with self._lock:
            if self._conn is not None:
                return self
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(self.db_path), check_same_thread=False)
            self._conn.row_factory = sqlite3.Row  # Enable column access by name
            self._conn.execute("PRAGMA foreign_keys = ON")  # Enable foreign keys
            self.logger.info(f"Database opened: {self.db_path}")
        return self

    def close(self):
        with self._lock:
            if self._conn is None:
                return
            self._conn.close()
            self._conn = None
            self.logger.info("Database closed")

    @property
    def is_open(self):
        return self._conn is not None

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @contextmanager
    def get_connection(self):
        """
        Context manager for database work.
        The outermost block commits on success and rolls back on errors,
        so nested blocks share one transaction.
        """
        with self._lock:
            if self._conn is None:
                raise RuntimeError("Database is not open")
            self._depth += 1
            try:
                yield self._conn
                if self._depth == 1:
                    self._conn.commit()
            except sqlite3.Error as e:
                if self._depth == 1:
                    self._conn.rollback()
                self.logger.error(f"Database error: {e}")
                raise
            except Exception:
                if self._depth == 1:
                    self._conn.rollback()
                raise
            finally:
                self._depth -= 1

    def initialize_db(self):
        """
        Initialize database by creating tables from schema.sql
        """
        schema_path = Path(__file__).parent / "schema.sql"

        if not schema_path.exists():
            self.logger.error(f"Schema file not found: {schema_path}")
            raise FileNotFoundError(f"Schema file not found: {schema_path}")

        try:
            with self.get_connection() as conn:
                conn.executescript(schema_path.read_text())
            self.logger.info("Database initialized successfully")
        except sqlite3.Error as e:
            self.logger.error(f"Failed to initialize database: {e}")
            raise

    def execute_query(self, query, params=None):
        """
        Execute a query and return results.
        """
        with self.get_connection() as conn:
            cursor = conn.execute(query, params or ())
            return cursor.fetchall()

    def execute_update(self, query, params=None):
        """
        Execute an update/insert/delete query.
        Returns the number of affected rows.
        """
        with self.get_connection() as conn:
            cursor = conn.execute(query, params or ())
            return cursor.rowcount

    def table_exists(self, table_name):
        """
        Check if a table exists in the database.
        """
        query = """
            SELECT name FROM sqlite_master
            WHERE type='table' AND name=?
        """
        result = self.execute_query(query, (table_name,))
        return len(result) > 0

    def is_initialized(self):
        """
        Check if database is initialized (has required tables).
        """
        required_tables = ['clients', 'admins', 'visits', 'rewards', 'services', 'service_categories']
        return all(self.table_exists(table) for table in required_tables)
