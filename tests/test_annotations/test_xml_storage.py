"""Tests for XML sidecar annotations."""

from __future__ import annotations

import xml.etree.ElementTree as ET
from pathlib import Path

import pytest

from perflimits.annotations.context import AnnotationContext
from perflimits.annotations.xml_storage import (
    XmlDocument,
    ensure_candidate,
    find_candidate,
    new_root,
    parse_xml_text,
    read_candidate_value,
    resolve_xml_path,
    serialize,
    write_candidate_value,
)
from perflimits.competition.state import CompetitionAnalysis
from perflimits.competition.types import (
    ALLOCATIONS,
    RELATIVE_TIME,
    TIME,
    CompetitionMetricValue,
    TargetKey,
)
from perflimits.core.exceptions import AnnotationFormatError, ChecksumMismatchError
from perflimits.metrics.ranges import MetricRange
from perflimits.metrics.units import TIME_SCALE, TimeUnit

KEY = TargetKey("bench_parse", "ParseSuite.bench_json")


def _read(candidate: ET.Element, metric=RELATIVE_TIME) -> CompetitionMetricValue | None:
    return read_candidate_value(
        candidate, metric, CompetitionAnalysis(max_runs_allowed=1), target=KEY, origin="test"
    )


def test_ratio_limits_round_trip_through_text() -> None:
    root = new_root()
    value = CompetitionMetricValue(RELATIVE_TIME, MetricRange(0.95, 1.20))
    write_candidate_value(ensure_candidate(root, KEY), value)
    text = serialize(root)
    assert 'MinRatio="0.95"' in text
    assert 'MaxRatio="1.20"' in text

    candidate = find_candidate(parse_xml_text(text, "test"), KEY)
    assert candidate is not None
    value = _read(candidate)
    assert value is not None
    assert value.values_range == MetricRange(0.95, 1.20)


def test_candidate_is_nested_under_container() -> None:
    root = new_root()
    ensure_candidate(root, KEY)
    competition = root.find("Competition")
    assert competition is not None
    assert competition.get("Target") == "bench_parse.ParseSuite"
    assert competition.find("Candidate").get("Target") == "bench_json"
    assert ensure_candidate(root, KEY) is find_candidate(root, KEY)


def test_missing_attributes_read_as_empty_and_unbounded() -> None:
    candidate = ET.Element("Candidate", {"Target": "bench_json"})
    value = _read(candidate)
    assert value is not None and value.values_range.is_empty

    candidate.set("MaxRatio", "2.5")
    value = _read(candidate)
    assert value is not None
    assert value.values_range.min_is_infinite
    assert value.values_range.max == 2.5


def test_ignored_literal_is_parsed() -> None:
    candidate = ET.Element("Candidate", {"MinRatio": "ignored", "MaxRatio": "3"})
    value = _read(candidate)
    assert value is not None
    assert value.values_range.min_is_ignored


def test_non_numeric_bound_skips_target() -> None:
    candidate = ET.Element("Candidate", {"MinRatio": "fast", "MaxRatio": "3"})
    assert _read(candidate) is None


def test_time_limits_use_unit_attribute() -> None:
    candidate = ET.Element("Candidate", {"MinTime": "1.5", "MaxTime": "2", "TimeUnit": "ms"})
    value = _read(candidate, TIME)
    assert value is not None
    assert value.values_range == MetricRange(1.5e6, 2e6)
    assert value.display_unit == TIME_SCALE[TimeUnit.MILLISECOND]

    assert _read(ET.Element("Candidate", {"MinTime": "1.5"}), TIME) is None
    unknown_unit = ET.Element("Candidate", {"MinBytes": "1", "BytesUnit": "parsecs"})
    assert _read(unknown_unit, ALLOCATIONS) is None


def test_write_removes_limits_for_empty_value() -> None:
    candidate = ET.Element("Candidate", {"Target": "x", "MinRatio": "1", "MaxRatio": "2"})
    write_candidate_value(candidate, CompetitionMetricValue(RELATIVE_TIME))
    assert candidate.attrib == {"Target": "x"}


def test_fully_unbounded_range_is_written_as_inf() -> None:
    candidate = ET.Element("Candidate")
    write_candidate_value(
        candidate, CompetitionMetricValue(RELATIVE_TIME, MetricRange.create(None, None))
    )
    assert candidate.attrib == {"MaxRatio": "inf"}
    value = _read(candidate)
    assert value is not None
    assert value.values_range.min_is_infinite and value.values_range.max_is_infinite


def test_dtd_is_rejected() -> None:
    text = '<!DOCTYPE x [<!ENTITY a "b">]><CompetitionBenchmarks/>'
    with pytest.raises(AnnotationFormatError, match="DTD"):
        parse_xml_text(text, "evil.xml")


def test_wrong_root_is_rejected() -> None:
    with pytest.raises(AnnotationFormatError, match="root element"):
        parse_xml_text("<Benchmarks/>", "other.xml")


def test_resolve_xml_path(tmp_path: Path) -> None:
    source = tmp_path / "bench_parse.py"
    assert resolve_xml_path(source, None) == tmp_path / "bench_parse.xml"
    assert resolve_xml_path(source, "limits/parse.xml") == tmp_path / "limits" / "parse.xml"


def test_document_keeps_comments_and_foreign_attributes(tmp_path: Path) -> None:
    path = tmp_path / "bench_parse.xml"
    path.write_text(
        "<CompetitionBenchmarks>"
        "<!-- keep me -->"
        '<Competition Target="bench_parse.ParseSuite">'
        '<Candidate Target="bench_json" Owner="perf-team" MinRatio="1" MaxRatio="1.1" />'
        "</Competition>"
        "</CompetitionBenchmarks>",
        encoding="utf-8",
    )
    document = XmlDocument.load(path)

    def update(ctx: AnnotationContext) -> None:
        ctx.get_or_load(str(path), XmlDocument, lambda: document)
        document.update_candidate(
            KEY, [CompetitionMetricValue(RELATIVE_TIME, MetricRange(0.95, 1.20))]
        )
        ctx.save()

    AnnotationContext().run_in_context(update)
    text = path.read_text(encoding="utf-8")
    assert "<!-- keep me -->" in text
    assert 'Owner="perf-team"' in text
    assert 'MinRatio="0.95"' in text


def test_document_refuses_to_overwrite_changed_file(tmp_path: Path) -> None:
    path = tmp_path / "bench_parse.xml"
    path.write_text("<CompetitionBenchmarks />", encoding="utf-8")
    document = XmlDocument.load(path)
    path.write_text("<CompetitionBenchmarks></CompetitionBenchmarks>", encoding="utf-8")

    with pytest.raises(ChecksumMismatchError):
        document.verify_unchanged()


def test_malformed_document_loads_with_error(tmp_path: Path) -> None:
    path = tmp_path / "broken.xml"
    path.write_text("<CompetitionBenchmarks>", encoding="utf-8")
    document = XmlDocument.load(path)
    assert document.error is not None

    def update(ctx: AnnotationContext) -> None:
        ctx.get_or_load(str(path), XmlDocument, lambda: document)
        assert document.root is None
        document.update_candidate(KEY, [])

    with pytest.raises(AnnotationFormatError, match="not usable"):
        AnnotationContext().run_in_context(update)


TWO_SPACE_SIDECAR = """\
<?xml version="1.0" encoding="UTF-8"?>
<!-- limits for the parser suite -->
<CompetitionBenchmarks>
  <!-- keep -->
  <Competition Target="bench_parse.ParseSuite">
    <Candidate Target="bench_json" MinRatio="1.00" MaxRatio="1.10" />
  </Competition>
</CompetitionBenchmarks>
"""


def _save(path: Path, updates: list[tuple[TargetKey, MetricRange]]) -> None:
    def update(ctx: AnnotationContext) -> None:
        document = ctx.get_or_load(str(path), XmlDocument, lambda: XmlDocument.load(path))
        for key, values in updates:
            document.update_candidate(key, [CompetitionMetricValue(RELATIVE_TIME, values)])
        ctx.save()

    AnnotationContext().run_in_context(update)


def test_document_save_changes_only_patched_attributes(tmp_path: Path) -> None:
    path = tmp_path / "bench_parse.xml"
    path.write_text(TWO_SPACE_SIDECAR, encoding="utf-8")

    _save(path, [(KEY, MetricRange(0.95, 1.20))])

    assert path.read_text(encoding="utf-8") == TWO_SPACE_SIDECAR.replace(
        'MinRatio="1.00" MaxRatio="1.10"', 'MinRatio="0.95" MaxRatio="1.20"'
    )


def test_added_elements_follow_sibling_indentation(tmp_path: Path) -> None:
    path = tmp_path / "bench_parse.xml"
    path.write_text(TWO_SPACE_SIDECAR, encoding="utf-8")

    _save(
        path,
        [
            (TargetKey("bench_parse", "ParseSuite.bench_yaml"), MetricRange(0.90, 1.30)),
            (TargetKey("bench_other", "OtherSuite.bench_x"), MetricRange(2.0, 2.5)),
        ],
    )

    assert path.read_text(encoding="utf-8") == (
        '<?xml version="1.0" encoding="UTF-8"?>\n'
        "<!-- limits for the parser suite -->\n"
        "<CompetitionBenchmarks>\n"
        "  <!-- keep -->\n"
        '  <Competition Target="bench_parse.ParseSuite">\n'
        '    <Candidate Target="bench_json" MinRatio="1.00" MaxRatio="1.10" />\n'
        '    <Candidate Target="bench_yaml" MinRatio="0.90" MaxRatio="1.30" />\n'
        "  </Competition>\n"
        '  <Competition Target="bench_other.OtherSuite">\n'
        '    <Candidate Target="bench_x" MinRatio="2.00" MaxRatio="2.50" />\n'
        "  </Competition>\n"
        "</CompetitionBenchmarks>\n"
    )


def test_new_document_is_tab_indented(tmp_path: Path) -> None:
    path = tmp_path / "bench_new.xml"

    _save(path, [(KEY, MetricRange(0.95, 1.20))])

    assert path.read_text(encoding="utf-8") == (
        "<?xml version='1.0' encoding='utf-8'?>\n"
        "<CompetitionBenchmarks>\n"
        '\t<Competition Target="bench_parse.ParseSuite">\n'
        '\t\t<Candidate Target="bench_json" MinRatio="0.95" MaxRatio="1.20" />\n'
        "\t</Competition>\n"
        "</CompetitionBenchmarks>\n"
    )
