"""XML sidecar annotations.

Schema::

    <CompetitionBenchmarks>
        <Competition Target="pkg.module.Class">
            <Candidate Target="bench_parse" MinRatio="1.80" MaxRatio="2.20" />
        </Competition>
    </CompetitionBenchmarks>

Absolute metrics add a unit attribute, e.g. ``MinTime="1.50" MaxTime="2.00" TimeUnit="us"``.
"""

from __future__ import annotations

import logging
import math
import re
import xml.etree.ElementTree as ET
from collections.abc import Iterable
from pathlib import Path

from ..competition.messages import MessageSeverity
from ..competition.state import CompetitionAnalysis
from ..competition.types import (
    CompetitionMetricValue,
    CompetitionTarget,
    MetricInfo,
    TargetKey,
)
from ..core.exceptions import AnnotationFormatError, ChecksumMismatchError
from ..metrics.formatting import format_value
from ..metrics.ranges import IGNORED, is_ignored_value
from ..metrics.units import MetricUnit
from .checksum import bytes_checksum, try_file_checksum
from .context import AnnotationDocument, ContentKind, atomic_write_bytes
from .source_storage import display_unit_for, metric_value_from_bounds

logger = logging.getLogger(__name__)

ROOT_TAG = "CompetitionBenchmarks"
COMPETITION_TAG = "Competition"
CANDIDATE_TAG = "Candidate"
TARGET_ATTRIBUTE = "Target"
IGNORED_LITERAL = "ignored"
DEFAULT_PROLOG = "<?xml version='1.0' encoding='utf-8'?>\n"
DEFAULT_EPILOG = "\n"
DEFAULT_INDENT = "\t"

_ROOT_START = re.compile(rf"<{ROOT_TAG}[\s/>]")


def new_root() -> ET.Element:
    return ET.Element(ROOT_TAG)


def parse_xml_text(text: str, origin: str) -> ET.Element:
    """Parse an annotation document; comments are kept and DTDs are rejected."""
    if "<!DOCTYPE" in text:
        raise AnnotationFormatError(f"XML annotation '{origin}': DTD is not allowed.")
    parser = ET.XMLParser(target=ET.TreeBuilder(insert_comments=True))
    try:
        root = ET.fromstring(text, parser=parser)
    except ET.ParseError as exc:
        raise AnnotationFormatError(f"XML annotation '{origin}' parse failed: {exc}") from exc
    if root.tag != ROOT_TAG:
        raise AnnotationFormatError(
            f"XML annotation '{origin}': root element must be <{ROOT_TAG}>, got <{root.tag}>."
        )
    return root


def serialize(
    root: ET.Element, prolog: str = DEFAULT_PROLOG, epilog: str = DEFAULT_EPILOG
) -> str:
    """Write ``root`` between the text that surrounded it on disk.

    Whitespace inside the tree is written as parsed.
    """
    return prolog + ET.tostring(root, encoding="unicode") + epilog


def split_envelope(text: str) -> tuple[str, str]:
    """Return the text around the root element, the XML declaration included."""
    start = _ROOT_START.search(text)
    if start is None:
        return DEFAULT_PROLOG, DEFAULT_EPILOG
    closing = f"</{ROOT_TAG}>"
    end = text.rfind(closing)
    if end >= 0:
        return text[: start.start()], text[end + len(closing) :]
    end = text.find("/>", start.start())
    return text[: start.start()], text[end + 2 :]


def _indent_unit(root: ET.Element) -> str:
    text = root.text or ""
    if "\n" not in text or text.strip():
        return DEFAULT_INDENT
    return text.rsplit("\n", 1)[1] or DEFAULT_INDENT


def _append_child(
    parent: ET.Element, tag: str, target: str, depth: int, unit: str
) -> ET.Element:
    """Append a new child laid out like its siblings; ``depth`` is the nesting of ``parent``."""
    siblings = list(parent)
    child = ET.SubElement(parent, tag, {TARGET_ATTRIBUTE: target})
    if siblings:
        last = siblings[-1]
        child.tail = last.tail
        last.tail = parent.text
    elif not (parent.text and parent.text.strip()):
        parent.text = "\n" + unit * (depth + 1)
        child.tail = "\n" + unit * depth
    return child


def _find_child(parent: ET.Element, tag: str, target: str) -> ET.Element | None:
    for child in parent.findall(tag):
        if child.get(TARGET_ATTRIBUTE) == target:
            return child
    return None


def find_candidate(root: ET.Element, key: TargetKey) -> ET.Element | None:
    competition = _find_child(root, COMPETITION_TAG, key.container)
    if competition is None:
        return None
    return _find_child(competition, CANDIDATE_TAG, key.name)


def ensure_candidate(root: ET.Element, key: TargetKey) -> ET.Element:
    """Find or add the ``<Candidate>`` of ``key``; only added elements get new whitespace."""
    unit = _indent_unit(root)
    competition = _find_child(root, COMPETITION_TAG, key.container)
    if competition is None:
        competition = _append_child(root, COMPETITION_TAG, key.container, 0, unit)
    candidate = _find_child(competition, CANDIDATE_TAG, key.name)
    if candidate is None:
        candidate = _append_child(competition, CANDIDATE_TAG, key.name, 1, unit)
    return candidate


def _parse_bound(text: str | None, attribute: str, origin: str) -> float | None:
    if text is None:
        return None
    if text.strip().lower() == IGNORED_LITERAL:
        return IGNORED
    try:
        return float(text)
    except ValueError:
        raise AnnotationFormatError(
            f"XML annotation '{origin}': attribute {attribute}={text!r} is not a number."
        ) from None


def read_candidate_value(
    candidate: ET.Element,
    metric: MetricInfo,
    analysis: CompetitionAnalysis,
    *,
    target: object,
    origin: str,
) -> CompetitionMetricValue | None:
    """Read one metric from a ``<Candidate>``.

    Both bounds missing means an empty limit; one missing bound is unbounded.
    Returns ``None`` when the value cannot be used.
    """
    raw_min = candidate.get(metric.xml_min_attribute)
    raw_max = candidate.get(metric.xml_max_attribute)
    if raw_min is None and raw_max is None:
        return CompetitionMetricValue(metric)
    try:
        min_value = _parse_bound(raw_min, metric.xml_min_attribute, origin)
        max_value = _parse_bound(raw_max, metric.xml_max_attribute, origin)
    except AnnotationFormatError as exc:
        analysis.write_message(MessageSeverity.WARNING, f"{exc} Target skipped.", target=target)
        return None
    return metric_value_from_bounds(
        metric,
        min_value,
        max_value,
        candidate.get(metric.xml_unit_attribute),
        analysis,
        target,
    )


def _render_bound(value: float, unit: MetricUnit) -> str | None:
    if is_ignored_value(value):
        return IGNORED_LITERAL
    if math.isinf(value):
        return None
    return format_value(value, unit)


def write_candidate_value(candidate: ET.Element, value: CompetitionMetricValue) -> None:
    """Set (or remove) the attributes of one metric, leaving all others untouched."""
    metric = value.metric
    values = value.values_range
    for attribute in (
        metric.xml_min_attribute,
        metric.xml_max_attribute,
        metric.xml_unit_attribute,
    ):
        candidate.attrib.pop(attribute, None)
    if values.is_empty:
        return
    unit = display_unit_for(value)
    min_text = _render_bound(values.min, unit)
    max_text = _render_bound(values.max, unit)
    if min_text is None and max_text is None:
        max_text = "inf"
    if min_text is not None:
        candidate.set(metric.xml_min_attribute, min_text)
    if max_text is not None:
        candidate.set(metric.xml_max_attribute, max_text)
    if not unit.is_empty:
        candidate.set(metric.xml_unit_attribute, unit.display_name)


def render_annotation_document(targets: Iterable[CompetitionTarget]) -> str:
    """Serialize all non-empty limits of ``targets`` into a fresh XML document."""
    root = new_root()
    for target in targets:
        non_empty = [v for v in target.metric_values.values() if not v.values_range.is_empty]
        if not non_empty:
            continue
        candidate = ensure_candidate(root, target.key)
        for value in non_empty:
            write_candidate_value(candidate, value)
    return serialize(root)


def resolve_xml_path(source_path: Path, resource_path: str | None) -> Path:
    if not resource_path:
        return source_path.with_suffix(".xml")
    resource = Path(resource_path)
    if resource.is_absolute():
        return resource
    return source_path.parent / resource


class XmlDocument(AnnotationDocument):
    """XML sidecar held as an element tree.

    A missing file loads as an empty document; a malformed one loads with ``error``
    set and no tree.
    """

    kind = ContentKind.TREE

    def __init__(
        self,
        path: Path,
        root: ET.Element | None,
        checksum: str | None,
        error: str | None = None,
        envelope: tuple[str, str] = (DEFAULT_PROLOG, DEFAULT_EPILOG),
    ):
        super().__init__(str(path))
        self.path = path
        self.checksum = checksum
        self.error = error
        self._root = root
        self._prolog, self._epilog = envelope
        self._mark_parsed()

    @classmethod
    def load(cls, path: str | Path) -> XmlDocument:
        path = Path(path)
        if not path.exists():
            return cls(path, new_root(), None)
        data = path.read_bytes()
        checksum = bytes_checksum(data)
        try:
            text = data.decode("utf-8")
            root = parse_xml_text(text, str(path))
        except (AnnotationFormatError, UnicodeDecodeError) as exc:
            logger.warning("Cannot parse %s: %s", path, exc)
            return cls(path, None, checksum, error=str(exc))
        return cls(path, root, checksum, envelope=split_envelope(text))

    @property
    def root(self) -> ET.Element | None:
        self._assert_in_lock()
        return self._root

    def verify_unchanged(self) -> None:
        """Raise :class:`ChecksumMismatchError` if the file changed since it was read."""
        actual = try_file_checksum(self.path)
        if actual != self.checksum:
            raise ChecksumMismatchError(str(self.path), self.checksum, actual)

    def update_candidate(self, key: TargetKey, values: Iterable[CompetitionMetricValue]) -> None:
        self._assert_in_lock()
        if self._root is None:
            raise AnnotationFormatError(f"XML annotation '{self.path}' is not usable: {self.error}")
        candidate = ensure_candidate(self._root, key)
        for value in values:
            write_candidate_value(candidate, value)
        self.mark_dirty()

    def _write(self) -> None:
        if self._root is None:
            raise AnnotationFormatError(f"XML annotation '{self.path}' is not usable: {self.error}")
        self.verify_unchanged()
        data = serialize(self._root, self._prolog, self._epilog).encode("utf-8")
        atomic_write_bytes(self.path, data)
        self.checksum = bytes_checksum(data)

    def dispose(self) -> None:
        super().dispose()
        self._root = None
