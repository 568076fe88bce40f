# washconnect/database.py
"""
Storage backends behind the order, history and service-type stores.

Both backends expose the same small capability set, so the stores never
care where rows live:

    storage.get_record("orders", "id", 3)
    storage.list_records("order_status_updates", "order_id", 3)
    storage.create_record("orders", {...})      # assigns the next integer id
    storage.update_record("orders", "id", 3, {"status": "confirmed"})
    with storage.atomic():
        ...                                     # all-or-nothing

Rows are plain dicts of primitives; the models serialize datetimes to ISO
strings before handing rows over. Ids are allocated per table from a counter
that only ever moves forward, so an id is never handed out twice.
"""

import logging
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Callable, ContextManager, Dict, Iterator, List, Optional, Protocol

import pandas as pd
from filelock import FileLock

from washconnect.config import Settings, settings

logger = logging.getLogger(__name__)

ORDERS = "orders"
STATUS_UPDATES = "order_status_updates"
SERVICE_TYPES = "service_types"

Row = Dict[str, Any]


class Storage(Protocol):
    def get_record(self, table: str, key: str, value: Any) -> Optional[Row]: ...

    def list_records(self, table: str, key: Optional[str] = None, value: Any = None) -> List[Row]: ...

    def create_record(self, table: str, data: Row, id_field: str = "id") -> Row: ...

    def update_record(self, table: str, key: str, value: Any, updates: Row) -> Optional[Row]: ...

    def atomic(self) -> ContextManager[Any]: ...


def _matches(row: Row, key: str, value: Any) -> bool:
    # compare as strings so "3" (CSV) and 3 (memory) behave the same
    return str(row.get(key)) == str(value)


class MemoryStorage:
    """
    In-process tables: {table: {id: row}} plus one id counter per table.
    A re-entrant lock guards every access; `atomic()` keeps an undo journal
    and replays it backwards if the block raises.
    """

    def __init__(self):
        self._tables: Dict[str, Dict[int, Row]] = {}
        self._counters: Dict[str, int] = {}
        self._lock = threading.RLock()
        self._local = threading.local()

    def _journal(self) -> Optional[List[Callable[[], None]]]:
        return getattr(self._local, "journal", None)

    def get_record(self, table: str, key: str, value: Any) -> Optional[Row]:
        with self._lock:
            rows = self._tables.get(table, {})
            if key == "id":
                try:
                    row = rows.get(int(value))
                except (TypeError, ValueError):
                    row = None
                return dict(row) if row is not None else None
            for row in rows.values():
                if _matches(row, key, value):
                    return dict(row)
        return None

    def list_records(self, table: str, key: Optional[str] = None, value: Any = None) -> List[Row]:
        with self._lock:
            rows = list(self._tables.get(table, {}).values())
        return [dict(r) for r in rows if key is None or _matches(r, key, value)]

    def create_record(self, table: str, data: Row, id_field: str = "id") -> Row:
        with self._lock:
            rows = self._tables.setdefault(table, {})
            new_id = self._counters.get(table, 0) + 1
            self._counters[table] = new_id
            row = dict(data)
            row[id_field] = new_id
            rows[new_id] = row
            journal = self._journal()
            if journal is not None:
                journal.append(lambda: rows.pop(new_id, None))
            return dict(row)

    def update_record(self, table: str, key: str, value: Any, updates: Row) -> Optional[Row]:
        with self._lock:
            rows = self._tables.get(table, {})
            matched = [rid for rid, r in rows.items() if _matches(r, key, value)]
            if not matched:
                return None
            journal = self._journal()
            for rid in matched:
                previous = rows[rid]
                rows[rid] = {**previous, **updates}
                if journal is not None:
                    journal.append(lambda rid=rid, previous=previous: rows.__setitem__(rid, previous))
            return dict(rows[matched[0]])

    @contextmanager
    def atomic(self) -> Iterator["MemoryStorage"]:
        with self._lock:
            if self._journal() is not None:
                # nested block joins the outer unit of work
                yield self
                return
            self._local.journal = []
            try:
                yield self
            except Exception:
                for undo in reversed(self._local.journal):
                    undo()
                raise
            finally:
                self._local.journal = None


class FileBackedStorage:
    """
    One CSV file per table inside `data_dir`, read and written with pandas.
    Every file has a sibling `.lock` (filelock) held for read-modify-write
    cycles. `atomic()` takes a directory-wide lock and snapshots the bytes of
    each file before its first write, restoring them if the block raises.
    """

    def __init__(self, data_dir: Path, table_files: Optional[Dict[str, str]] = None):
        self.data_dir = Path(data_dir)
        self.data_dir.mkdir(parents=True, exist_ok=True)
        self.table_files = dict(table_files or {})
        self._locks: Dict[str, FileLock] = {}
        self._locks_guard = threading.Lock()
        self._local = threading.local()
        self._atomic_lock = FileLock(str(self.data_dir / ".atomic.lock"))

    def _file_path(self, table: str) -> Path:
        """
        Resolve table -> file path. Explicit filenames (ending in .csv) are
        used as-is, known tables go through the configured mapping, anything
        else falls back to `<table>.csv`.
        """
        if table.endswith(".csv"):
            return self.data_dir / Path(table)
        filename = self.table_files.get(table, f"{table}.csv")
        return self.data_dir / Path(filename)

    def _lock_for(self, path: Path) -> FileLock:
        # one FileLock object per file so nested acquisitions re-enter instead of deadlocking
        with self._locks_guard:
            lock = self._locks.get(str(path))
            if lock is None:
                lock = FileLock(str(path) + ".lock")
                self._locks[str(path)] = lock
            return lock

    def _read_df(self, path: Path) -> pd.DataFrame:
        if not path.exists():
            return pd.DataFrame()
        return pd.read_csv(path, dtype=str, keep_default_na=False).fillna("")

    def _write_df(self, path: Path, df: pd.DataFrame) -> None:
        """Write `df` to `path`; the caller must already hold the file lock."""
        journal = getattr(self._local, "journal", None)
        if journal is not None and path not in journal:
            journal[path] = path.read_bytes() if path.exists() else None
        path.parent.mkdir(parents=True, exist_ok=True)
        df.to_csv(path, index=False)

    def _next_id(self, path: Path, df: pd.DataFrame, id_field: str) -> int:
        # the sequence file is never journaled: a rolled back insert still burns its id
        seq_path = path.parent / (path.name + ".seq")
        last = 0
        if seq_path.exists():
            try:
                last = int(seq_path.read_text().strip() or 0)
            except ValueError:
                logger.warning("Corrupt sequence file %s, rebuilding from table", seq_path)
        if not df.empty and id_field in df.columns:
            ids = pd.to_numeric(df[id_field], errors="coerce").dropna()
            if not ids.empty:
                last = max(last, int(ids.max()))
        new_id = last + 1
        seq_path.write_text(str(new_id))
        return new_id

    @staticmethod
    def _clean(row: Row) -> Row:
        return {k: (None if v is None or (isinstance(v, float) and pd.isna(v)) else v) for k, v in row.items()}

    # --- capability set ---

    def get_record(self, table: str, key: str, value: Any) -> Optional[Row]:
        path = self._file_path(table)
        with self._lock_for(path):
            df = self._read_df(path)
        if df.empty or key not in df.columns:
            return None
        mask = df[key].astype(str) == str(value)
        if not mask.any():
            return None
        return self._clean(df[mask].iloc[0].to_dict())

    def list_records(self, table: str, key: Optional[str] = None, value: Any = None) -> List[Row]:
        path = self._file_path(table)
        with self._lock_for(path):
            df = self._read_df(path)
        if df.empty:
            return []
        if key is not None:
            if key not in df.columns:
                return []
            df = df[df[key].astype(str) == str(value)]
        return [self._clean(r) for r in df.to_dict(orient="records")]

    def create_record(self, table: str, data: Row, id_field: str = "id") -> Row:
        """
        Append a row. The id is always allocated here; any id passed in `data`
        is overwritten. Returns the saved record (with id).
        """
        path = self._file_path(table)
        with self._lock_for(path):
            df = self._read_df(path)
            row = dict(data)
            row[id_field] = self._next_id(path, df, id_field)
            new_row = {k: ("" if v is None else v) for k, v in row.items()}
            if df.empty:
                df = pd.DataFrame([new_row], columns=list(dict.fromkeys(list(df.columns) + list(new_row))))
            else:
                df = pd.concat([df, pd.DataFrame([new_row])], ignore_index=True, sort=False)
            self._write_df(path, df)
        return row

    def update_record(self, table: str, key: str, value: Any, updates: Row) -> Optional[Row]:
        """
        Update rows where df[key] == value with fields in updates. Returns the updated first row dict or None.
        """
        path = self._file_path(table)
        with self._lock_for(path):
            df = self._read_df(path)
            if df.empty or key not in df.columns:
                return None
            mask = df[key].astype(str) == str(value)
            if not mask.any():
                return None
            for k, v in updates.items():
                if k not in df.columns:
                    df[k] = ""
                df.loc[mask, k] = "" if v is None else str(v)
            self._write_df(path, df)
            return self._clean(df[mask].iloc[0].to_dict())

    @contextmanager
    def atomic(self) -> Iterator["FileBackedStorage"]:
        if getattr(self._local, "journal", None) is not None:
            yield self
            return
        with self._atomic_lock:
            self._local.journal = {}
            try:
                yield self
            except Exception:
                for path, content in self._local.journal.items():
                    if content is None:
                        path.unlink(missing_ok=True)
                    else:
                        path.write_bytes(content)
                if self._local.journal:
                    logger.warning("Rolled back %d table file(s) in %s", len(self._local.journal), self.data_dir)
                raise
            finally:
                self._local.journal = None


def build_storage(cfg: Settings = settings) -> Storage:
    """Construct the storage backend selected by STORAGE_BACKEND."""
    backend = (cfg.STORAGE_BACKEND or "memory").strip().lower()
    if backend == "memory":
        return MemoryStorage()
    if backend == "file":
        return FileBackedStorage(
            cfg.DATA_DIR,
            table_files={
                ORDERS: cfg.ORDERS_FILE,
                STATUS_UPDATES: cfg.STATUS_UPDATES_FILE,
                SERVICE_TYPES: cfg.SERVICE_TYPES_FILE,
            },
        )
    raise ValueError(f"Unknown STORAGE_BACKEND {cfg.STORAGE_BACKEND!r} (expected 'memory' or 'file')")
