"""Annotation document cache guarded by one mutex per context.

Every document access must happen inside :meth:`AnnotationContext.run_in_context`;
anything else raises :class:`ContractViolationError` immediately.
"""

from __future__ import annotations

import logging
import os
import tempfile
import threading
from collections.abc import Callable, Iterator
from enum import Enum
from pathlib import Path
from typing import TypeVar

from ..competition.types import TargetKey
from ..core.exceptions import (
    AnnotationSaveError,
    ContractViolationError,
    DocumentKindError,
    ValidationError,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")
D = TypeVar("D", bound="AnnotationDocument")

UNKNOWN_ORIGIN = "<Unknown>"


class ContentKind(str, Enum):
    LINES = "lines"
    TREE = "tree"


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Write ``data`` to a temp file next to ``path`` and rename it into place."""
    path.parent.mkdir(parents=True, exist_ok=True)
    temp_fd, temp_path = tempfile.mkstemp(suffix=".tmp", dir=path.parent, prefix=path.name)
    try:
        with os.fdopen(temp_fd, "wb") as stream:
            stream.write(data)
        os.replace(temp_path, path)
    except Exception:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise


class AnnotationDocument:
    """A cached file (or resource) holding limits, owned by exactly one context."""

    kind: ContentKind = ContentKind.LINES

    def __init__(self, origin: str):
        self.origin = origin
        self._context: AnnotationContext | None = None
        self._parsed = False
        self._dirty = False

    @property
    def context(self) -> AnnotationContext | None:
        return self._context

    @property
    def parsed(self) -> bool:
        return self._parsed

    @property
    def dirty(self) -> bool:
        return self._dirty

    def _attach(self, context: AnnotationContext) -> None:
        if self._context is not None and self._context is not context:
            raise ContractViolationError(
                f"document {self.origin!r} already belongs to another annotation context"
            )
        self._context = context

    def _assert_in_lock(self) -> None:
        if self._context is None:
            raise ContractViolationError(
                f"document {self.origin!r} is not attached to an annotation context"
            )
        self._context.assert_in_lock()

    def _mark_parsed(self) -> None:
        self._parsed = True

    def mark_dirty(self) -> None:
        self._assert_in_lock()
        self._dirty = True

    def save(self) -> bool:
        """Persist pending changes; a clean document is a no-op returning ``False``."""
        self._assert_in_lock()
        if not self._dirty:
            return False
        self._write()
        self._dirty = False
        logger.info("Saved annotation document %s", self.origin)
        return True

    def _write(self) -> None:
        raise NotImplementedError

    def dispose(self) -> None:
        self._dirty = False
        self._parsed = False


class UnknownOriginDocument(AnnotationDocument):
    """Stub used when a target's source cannot be resolved; it can never be saved."""

    def __init__(self) -> None:
        super().__init__(UNKNOWN_ORIGIN)
        self._mark_parsed()

    def _write(self) -> None:
        raise DocumentKindError("Cannot save a document with unknown origin.")


class AnnotationContext:
    """Per-pass cache of annotation documents keyed by origin and by target.

    All access is serialized behind one coarse mutex. Use :meth:`run_in_context`
    to acquire it; nested calls from the same thread are allowed.
    """

    def __init__(self) -> None:
        self._lock = threading.RLock()
        self._owner: int | None = None
        self._depth = 0
        self._documents: dict[str, AnnotationDocument] = {}
        self._documents_by_target: dict[TargetKey, AnnotationDocument] = {}
        self._unknown_document: UnknownOriginDocument | None = None
        self._disposed = False

    def run_in_context(self, callback: Callable[[AnnotationContext], T]) -> T:
        with self._lock:
            if self._disposed:
                raise ContractViolationError("annotation context is disposed")
            self._owner = threading.get_ident()
            self._depth += 1
            try:
                return callback(self)
            finally:
                self._depth -= 1
                if self._depth == 0:
                    self._owner = None

    @property
    def in_lock(self) -> bool:
        return self._owner == threading.get_ident()

    def assert_in_lock(self) -> None:
        if not self.in_lock:
            raise ContractViolationError("Please run the code using run_in_context().")

    def documents(self) -> Iterator[AnnotationDocument]:
        self.assert_in_lock()
        return iter(list(self._documents.values()))

    def try_get_document(self, origin: str) -> AnnotationDocument | None:
        self.assert_in_lock()
        return self._documents.get(origin)

    def try_get_document_for(self, key: TargetKey) -> AnnotationDocument | None:
        self.assert_in_lock()
        return self._documents_by_target.get(key)

    def get_or_load(self, origin: str, kind: type[D], loader: Callable[[], D]) -> D:
        """Return the cached document for ``origin`` or load it once with ``loader``.

        The content kind of an origin is fixed by its first load.
        """
        self.assert_in_lock()
        document = self._documents.get(origin)
        if document is None:
            document = loader()
            if document.origin != origin:
                raise ContractViolationError(
                    f"loader returned document {document.origin!r} for origin {origin!r}"
                )
            document._attach(self)
            self._documents[origin] = document
            logger.debug("Loaded %s document %s", document.kind.value, origin)
        if not isinstance(document, kind):
            raise DocumentKindError(
                f"document {origin!r} was loaded as {document.kind.value}, "
                f"cannot access it as {kind.kind.value}"
            )
        return document

    def get_unknown_origin_document(self) -> UnknownOriginDocument:
        self.assert_in_lock()
        if self._unknown_document is None:
            self._unknown_document = UnknownOriginDocument()
            self._unknown_document._attach(self)
        return self._unknown_document

    def add_target_key(self, key: TargetKey, document: AnnotationDocument) -> None:
        self.assert_in_lock()
        if not document.parsed:
            raise ContractViolationError(f"document {document.origin!r} is not parsed yet")
        if document.context is not self:
            raise ContractViolationError(
                f"document {document.origin!r} is not owned by this annotation context"
            )
        existing = self._documents_by_target.get(key)
        if existing is not None and existing is not document:
            raise ContractViolationError(
                f"target {key} is already bound to document {existing.origin!r}"
            )
        self._documents_by_target[key] = document

    def save(self) -> int:
        """Flush every dirty document; return how many were written.

        All documents are attempted; failures are collected into one
        :class:`AnnotationSaveError`.
        """
        self.assert_in_lock()
        saved = 0
        failures: dict[str, Exception] = {}
        for document in list(self._documents.values()):
            try:
                if document.save():
                    saved += 1
            except (OSError, ValidationError, DocumentKindError) as exc:
                logger.error("Failed to save annotation document %s: %s", document.origin, exc)
                failures[document.origin] = exc
        if failures:
            raise AnnotationSaveError(failures)
        return saved

    def dispose(self) -> None:
        with self._lock:
            for document in self._documents.values():
                document.dispose()
            self._documents.clear()
            self._documents_by_target.clear()
            self._unknown_document = None
            self._disposed = True

    def __enter__(self) -> AnnotationContext:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.dispose()
