"""Reading XML annotation blocks embedded in a previous run's log."""

from __future__ import annotations

import logging
import threading
import xml.etree.ElementTree as ET
from pathlib import Path
from urllib import error, parse, request

from ..core.exceptions import AnnotationFormatError
from .xml_storage import parse_xml_text

logger = logging.getLogger(__name__)

LOG_ANNOTATION_START = "------ xml_annotation_begin ------"
LOG_ANNOTATION_END = "------- xml_annotation_end -------"
DEFAULT_TIMEOUT_SEC = 15


def format_log_block(xml_text: str) -> str:
    """Wrap an annotation document in the log markers."""
    return f"{LOG_ANNOTATION_START}\n{xml_text.rstrip()}\n{LOG_ANNOTATION_END}"


def parse_log_text(text: str, origin: str = "<log>") -> list[ET.Element]:
    """Extract every annotation document embedded in ``text``."""
    documents: list[ET.Element] = []
    buffer: list[str] | None = None
    for number, line in enumerate(text.splitlines(), start=1):
        if LOG_ANNOTATION_START in line:
            if buffer is not None:
                raise AnnotationFormatError(
                    f"The log is damaged: '{origin}' line {number} opens a new annotation "
                    "block before the previous one is closed."
                )
            buffer = []
        elif LOG_ANNOTATION_END in line:
            if buffer is None:
                raise AnnotationFormatError(
                    f"The log is damaged: '{origin}' line {number} closes an annotation "
                    "block that was never opened."
                )
            documents.append(parse_xml_text("\n".join(buffer), origin))
            buffer = None
        elif buffer is not None:
            buffer.append(line)
    if buffer is not None:
        raise AnnotationFormatError(
            f"The log is damaged: '{origin}' ends inside an annotation block."
        )
    return documents


def _is_http_uri(uri: str) -> bool:
    return parse.urlparse(uri).scheme in {"http", "https"}


def read_log_text(uri: str, *, timeout_sec: int = DEFAULT_TIMEOUT_SEC) -> str:
    if _is_http_uri(uri):
        parsed = parse.urlparse(uri)
        if not parsed.netloc:
            raise AnnotationFormatError(f"Invalid log URL: {uri!r}")
        try:
            with request.urlopen(uri, timeout=timeout_sec) as resp:  # nosec B310
                return resp.read().decode("utf-8", errors="replace")
        except error.URLError as exc:
            raise AnnotationFormatError(f"Could not download log {uri!r}: {exc}") from exc
    try:
        return Path(uri).read_text(encoding="utf-8")
    except OSError as exc:
        raise AnnotationFormatError(f"Could not read log {uri!r}: {exc}") from exc


class PreviousRunLogCache:
    """Parsed logs keyed by URI.

    Shared by every pass in the process; call :meth:`reset` between independent runs.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._documents: dict[str, tuple[ET.Element, ...]] = {}

    def get(self, uri: str, *, timeout_sec: int = DEFAULT_TIMEOUT_SEC) -> tuple[ET.Element, ...]:
        with self._lock:
            cached = self._documents.get(uri)
            if cached is not None:
                logger.debug("Using cached annotations of %s", uri)
                return cached
            documents = tuple(parse_log_text(read_log_text(uri, timeout_sec=timeout_sec), uri))
            self._documents[uri] = documents
            logger.info("Loaded %d annotation block(s) from %s", len(documents), uri)
            return documents

    def reset(self) -> None:
        with self._lock:
            self._documents.clear()

    def __len__(self) -> int:
        return len(self._documents)


LOG_CACHE = PreviousRunLogCache()


def reset_log_cache() -> None:
    LOG_CACHE.reset()
