"""Record stores: unordered collections of (key, value) string records, one
sqlite file per store.
"""
import os
import sqlite3

from mrdb.errors import StorageError


SCHEMA = 'create table pairs (key text, value text)'

# the journal is kept in memory rather than switched off so that a failed
# merge can still be rolled back.
PRAGMAS = [
    'pragma journal_mode = memory',
    'pragma synchronous = off',
    'pragma case_sensitive_like = off',
]

BUSY_TIMEOUT_SEC = 10


def _connect(path):
    conn = sqlite3.connect(path, timeout=BUSY_TIMEOUT_SEC)
    for pragma in PRAGMAS:
        conn.execute(pragma)
    return conn


class RecordStore(object):

    def __init__(self, path, conn):
        self.path = path
        self._conn = conn

    @classmethod
    def open(cls, path):
        """Open an existing store."""
        if not os.path.isfile(path):
            raise StorageError('no such store: %s' % path)
        try:
            conn = _connect(path)
            conn.execute('select count(*) from pairs').fetchone()
        except sqlite3.Error as e:
            raise StorageError('cannot open store %s: %s' % (path, e)) from e
        return cls(path, conn)

    @classmethod
    def create(cls, path):
        """Create a new, empty store, replacing whatever was at `path`."""
        try:
            if os.path.exists(path):
                os.remove(path)
            conn = _connect(path)
            with conn:
                conn.execute(SCHEMA)
        except (sqlite3.Error, OSError) as e:
            raise StorageError(
                'cannot create store %s: %s' % (path, e)) from e
        return cls(path, conn)

    def insert(self, key, value):
        self.insert_many([(key, value)])

    def insert_many(self, records):
        """Insert records in a single transaction; all or nothing."""
        try:
            with self._conn:
                self._conn.executemany(
                    'insert into pairs (key, value) values (?, ?)', records)
        except sqlite3.Error as e:
            raise StorageError(
                'cannot insert into %s: %s' % (self.path, e)) from e

    def scan(self, ordered=False):
        """Yield every record.

        Records come in no particular order unless `ordered` is set, in which
        case they are sorted by (key, value).
        """
        query = 'select key, value from pairs'
        if ordered:
            query += ' order by key, value'
        try:
            cursor = self._conn.execute(query)
            for row in cursor:
                yield row
        except sqlite3.Error as e:
            raise StorageError('cannot scan %s: %s' % (self.path, e)) from e

    def count(self):
        try:
            return self._conn.execute(
                'select count(*) from pairs').fetchone()[0]
        except sqlite3.Error as e:
            raise StorageError('cannot count %s: %s' % (self.path, e)) from e

    def merge(self, other_path):
        """Append every record of the store at `other_path`."""
        if not os.path.isfile(other_path):
            raise StorageError('no such store: %s' % other_path)
        conn = self._conn
        try:
            conn.execute('attach database ? as other', (other_path,))
        except sqlite3.Error as e:
            raise StorageError('cannot attach %s: %s' % (other_path, e)) from e
        try:
            with conn:
                conn.execute('insert into pairs (key, value) '
                             'select key, value from other.pairs')
        except sqlite3.Error as e:
            raise StorageError(
                'cannot merge %s into %s: %s' % (other_path, self.path, e)
            ) from e
        finally:
            conn.execute('detach database other')

    def close(self):
        self._conn.close()

    def __enter__(self):
        return self

    def __exit__(self, *args):
        self.close()


def open_store(path):
    return RecordStore.open(path)


def create_store(path):
    return RecordStore.create(path)


def delete_store(path):
    """Remove a store file; a missing file is not an error."""
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        raise StorageError('cannot delete store %s: %s' % (path, e)) from e
