"""Tests for cell recognition and record acceptance."""

import numpy as np
import pytest

from transcript_ocr.config import FilterConfig
from transcript_ocr.exceptions import CropError, RunCancelled
from transcript_ocr.orchestrator import CellRecognitionOrchestrator
from transcript_ocr.processors import DetectedRow, get_column
from transcript_ocr.records import CourseRecord
from transcript_ocr.state import CancellationToken

from conftest import FakeEngine, make_blank_image, script_rows


def make_row(top, bottom, marker_ratio=0.0):
    return DetectedRow(top=top, bottom=bottom, height=bottom - top, active_ratio=0.5, marker_ratio=marker_ratio)


@pytest.fixture
def orchestrator():
    return CellRecognitionOrchestrator(FakeEngine())


def test_accepts_complete_record(orchestrator):
    record = CourseRecord(id="t-0-1", term="t", course_number="1001", course_name="Calculus", score=90)
    assert orchestrator.accept_record(record)


@pytest.mark.parametrize("fields", [
    {"course_number": "12", "score": 90},
    {"course_number": "", "score": 90},
    {"course_number": "1001", "score": None},
    {"course_number": "10023", "score": 90, "course_name": "學期成績"},
    {"course_number": "1001", "score": 90, "remarks": "Total Credits 20"},
    {"course_number": "1001", "score": 90, "course_name": "總分"},
])
def test_rejects_incomplete_or_summary_rows(orchestrator, fields):
    record = CourseRecord(id="t-0-1", term="t", **fields)
    assert not orchestrator.accept_record(record)


def test_course_number_may_be_embedded(orchestrator):
    record = CourseRecord(id="t-0-1", term="t", course_number="A-10023", score=70)
    assert orchestrator.accept_record(record)


def test_skip_header_and_thin_rows(orchestrator):
    assert orchestrator.should_skip_row(make_row(0, 30, marker_ratio=0.5), table_height=400)
    assert orchestrator.should_skip_row(make_row(0, 17), table_height=400)
    assert not orchestrator.should_skip_row(make_row(0, 18), table_height=400)
    # 2% of a 1000px table is 20px
    assert orchestrator.should_skip_row(make_row(0, 19), table_height=1000)


def test_build_record_parses_numbers(orchestrator):
    record = orchestrator.build_record("t-0-3", "t", {
        "course_number": "1001",
        "credits": "3 學分",
        "score": "87.5 分",
        "remarks": "",
    })

    assert record.credits == 3.0
    assert record.score == 87.5
    assert record.stage == ""
    assert record.id == "t-0-3"


def test_build_record_keeps_missing_numbers_null(orchestrator):
    record = orchestrator.build_record("t-0-3", "t", {"credits": "", "score": "—"})
    assert record.credits is None
    assert record.score is None


def test_cell_region_geometry(orchestrator):
    table = make_blank_image(100, 200)
    table[10:30, 0:20] = (0, 0, 0, 255)

    cell = orchestrator.cell_region(table, make_row(10, 30), get_column("course_number"))

    assert cell.shape == (20, 20, 4)
    assert (cell[..., :3] == 0).all()


def test_cell_region_pads_with_white(orchestrator):
    table = np.zeros((40, 200, 4), dtype=np.uint8)

    cell = orchestrator.cell_region(table, make_row(30, 50), get_column("score"))

    assert cell.shape[0] == 20
    assert (cell[:10] == 0).all()
    assert (cell[10:] == 255).all()


def test_cell_region_of_empty_table(orchestrator):
    with pytest.raises(CropError):
        orchestrator.cell_region(np.zeros((0, 0, 4), dtype=np.uint8), make_row(0, 20), get_column("score"))


def test_recognize_rows_assigns_ids_and_cleans_text():
    engine = FakeEngine(script_rows(
        {"course_number": " 1001\n", "course_name": "Linear   Algebra ", "credits": "3", "score": "88"},
        {"course_number": "1002", "course_name": "Chemistry", "credits": "2", "score": ""},
    ))
    engine.open()
    orchestrator = CellRecognitionOrchestrator(engine)
    table = make_blank_image(200, 300)
    progress = []

    records = orchestrator.recognize_rows(
        table,
        [make_row(0, 30, marker_ratio=0.8), make_row(40, 70), make_row(80, 110)],
        term="fall",
        image_index=2,
        on_row=lambda done, total: progress.append((done, total)),
    )

    assert [r.id for r in records] == ["fall-2-1"]
    assert records[0].course_number == "1001"
    assert records[0].course_name == "Linear Algebra"
    assert progress == [(1, 3), (2, 3), (3, 3)]
    assert len(engine.regions) == 18


def test_recognize_rows_honours_cancellation():
    token = CancellationToken()
    engine = FakeEngine(cancel_on_call=0, cancel_token=token)
    engine.open()
    orchestrator = CellRecognitionOrchestrator(engine, FilterConfig(), cancel_token=token)

    with pytest.raises(RunCancelled):
        orchestrator.recognize_rows(make_blank_image(100, 100), [make_row(0, 40)], "t", 0)

    assert len(engine.regions) == 1
