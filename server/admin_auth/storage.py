"""Document storage backing the challenge, credential and session stores.

Documents are plain JSON-compatible dicts grouped into named collections and
addressed by a string id. Every public operation touches one collection
under a lock, which gives the single-document atomicity the stores rely on.
The JSON-file backend also takes a per-collection file lock, so a server and
a separately running purge job can share one storage directory.
"""
from __future__ import annotations

import copy
import json
import os
import secrets
import tempfile
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

from filelock import FileLock, Timeout

__all__ = [
    "DocumentStore",
    "JsonFileDocumentStore",
    "MemoryDocumentStore",
    "StorageError",
    "create_document_store",
]

Filter = Tuple[str, str, Any]
Document = Dict[str, Any]

DEFAULT_LOCK_TIMEOUT = 10.0

_OPERATORS = {
    "==": lambda left, right: left == right,
    "!=": lambda left, right: left != right,
    "<": lambda left, right: left < right,
    "<=": lambda left, right: left <= right,
    ">": lambda left, right: left > right,
    ">=": lambda left, right: left >= right,
    "in": lambda left, right: left in right,
}


class StorageError(Exception):
    """Raised when the backing store cannot be read or written."""


def _matches(document: Mapping[str, Any], filters: Sequence[Filter]) -> bool:
    for field_name, operator, expected in filters:
        if field_name not in document:
            return False
        try:
            if not _OPERATORS[operator](document[field_name], expected):
                return False
        except TypeError:
            return False
    return True


def _validate_filters(filters: Sequence[Filter]) -> None:
    for _field_name, operator, _expected in filters:
        if operator not in _OPERATORS:
            raise ValueError(f"unsupported query operator {operator!r}")


class DocumentStore:
    """Collection/document store with atomic single-document operations."""

    def __init__(self) -> None:
        self._lock = threading.RLock()

    @contextmanager
    def _locked(self, collection: str) -> Iterator[None]:
        with self._lock:
            yield

    def _load(self, collection: str) -> Dict[str, Document]:
        raise NotImplementedError

    def _save(self, collection: str, documents: Dict[str, Document]) -> None:
        raise NotImplementedError

    def get(self, collection: str, doc_id: str) -> Optional[Document]:
        with self._locked(collection):
            document = self._load(collection).get(doc_id)
            return copy.deepcopy(document) if document is not None else None

    def set(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> None:
        """Create or overwrite ``doc_id``."""

        with self._locked(collection):
            documents = self._load(collection)
            documents[doc_id] = copy.deepcopy(dict(data))
            self._save(collection, documents)

    def create(self, collection: str, doc_id: str, data: Mapping[str, Any]) -> bool:
        """Write ``doc_id`` only if it does not exist yet."""

        with self._locked(collection):
            documents = self._load(collection)
            if doc_id in documents:
                return False
            documents[doc_id] = copy.deepcopy(dict(data))
            self._save(collection, documents)
            return True

    def add(self, collection: str, data: Mapping[str, Any]) -> str:
        """Insert ``data`` under a generated id and return the id."""

        with self._locked(collection):
            documents = self._load(collection)
            doc_id = secrets.token_hex(10)
            while doc_id in documents:
                doc_id = secrets.token_hex(10)
            documents[doc_id] = copy.deepcopy(dict(data))
            self._save(collection, documents)
            return doc_id

    def update(self, collection: str, doc_id: str, changes: Mapping[str, Any]) -> bool:
        """Merge ``changes`` into an existing document."""

        with self._locked(collection):
            documents = self._load(collection)
            document = documents.get(doc_id)
            if document is None:
                return False
            document.update(copy.deepcopy(dict(changes)))
            self._save(collection, documents)
            return True

    def delete(self, collection: str, doc_id: str, filters: Sequence[Filter] = ()) -> bool:
        """Remove ``doc_id``; ``True`` only for the caller that removed it.

        With ``filters`` the document is removed only while it still matches.
        """

        _validate_filters(filters)
        with self._locked(collection):
            documents = self._load(collection)
            if doc_id not in documents or not _matches(documents[doc_id], filters):
                return False
            del documents[doc_id]
            self._save(collection, documents)
            return True

    def query(
        self,
        collection: str,
        filters: Sequence[Filter] = (),
        *,
        limit: Optional[int] = None,
    ) -> List[Tuple[str, Document]]:
        _validate_filters(filters)
        with self._locked(collection):
            results: List[Tuple[str, Document]] = []
            for doc_id, document in self._load(collection).items():
                if not _matches(document, filters):
                    continue
                results.append((doc_id, copy.deepcopy(document)))
                if limit is not None and len(results) >= limit:
                    break
            return results

    def delete_where(self, collection: str, filters: Sequence[Filter]) -> int:
        _validate_filters(filters)
        with self._locked(collection):
            documents = self._load(collection)
            doomed = [doc_id for doc_id, document in documents.items() if _matches(document, filters)]
            if not doomed:
                return 0
            for doc_id in doomed:
                del documents[doc_id]
            self._save(collection, documents)
            return len(doomed)


class MemoryDocumentStore(DocumentStore):
    """Process-local store used for tests and single-instance deployments."""

    def __init__(self, initial: Optional[Mapping[str, Mapping[str, Document]]] = None) -> None:
        super().__init__()
        self._collections: Dict[str, Dict[str, Document]] = {
            name: {doc_id: dict(doc) for doc_id, doc in docs.items()}
            for name, docs in (initial or {}).items()
        }

    def _load(self, collection: str) -> Dict[str, Document]:
        return self._collections.setdefault(collection, {})

    def _save(self, collection: str, documents: Dict[str, Document]) -> None:
        self._collections[collection] = documents


class JsonFileDocumentStore(DocumentStore):
    """Store each collection as ``<collection>.json`` below ``basepath``.

    Every load-modify-save holds ``<collection>.json.lock``, so instances in
    other processes see each change whole.
    """

    def __init__(self, basepath: str, *, lock_timeout: float = DEFAULT_LOCK_TIMEOUT) -> None:
        super().__init__()
        self.basepath = os.path.abspath(basepath)
        self._lock_timeout = lock_timeout
        self._file_locks: Dict[str, FileLock] = {}
        os.makedirs(self.basepath, exist_ok=True)

    def _path(self, collection: str) -> str:
        if not collection or os.sep in collection or collection.startswith("."):
            raise ValueError(f"invalid collection name {collection!r}")
        return os.path.join(self.basepath, f"{collection}.json")

    @contextmanager
    def _locked(self, collection: str) -> Iterator[None]:
        path = self._path(collection)
        with self._lock:
            file_lock = self._file_locks.get(collection)
            if file_lock is None:
                file_lock = FileLock(f"{path}.lock", timeout=self._lock_timeout)
                self._file_locks[collection] = file_lock
            try:
                file_lock.acquire()
            except Timeout as exc:
                raise StorageError(f"timed out waiting for collection {collection!r}") from exc
            try:
                yield
            finally:
                file_lock.release()

    def _load(self, collection: str) -> Dict[str, Document]:
        path = self._path(collection)
        try:
            with open(path, "r", encoding="utf-8") as handle:
                documents = json.load(handle)
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            raise StorageError(f"unable to read collection {collection!r}") from exc

        if not isinstance(documents, dict):
            raise StorageError(f"collection {collection!r} is corrupted")
        return documents

    def _save(self, collection: str, documents: Dict[str, Document]) -> None:
        path = self._path(collection)
        fd, temp_path = tempfile.mkstemp(prefix=f".{collection}-", suffix=".json", dir=self.basepath)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(documents, handle, sort_keys=True)
            os.replace(temp_path, path)
        except (OSError, TypeError, ValueError) as exc:
            try:
                os.remove(temp_path)
            except OSError:
                pass
            raise StorageError(f"unable to write collection {collection!r}") from exc


def create_document_store(storage_path: Optional[str]) -> DocumentStore:
    """Return a JSON-file store when a path is configured, else an in-memory one."""

    if storage_path:
        return JsonFileDocumentStore(storage_path)
    return MemoryDocumentStore()
