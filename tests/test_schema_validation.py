"""
Tests for Schema Validation Utilities
====================================
"""

import json
from unittest.mock import patch

import pytest

import pbcorrect.utils.schema_validation as schema_validation
from pbcorrect.utils.schema_validation import (
    validate_against_schema,
    validate_library_assignment,
    validate_run_record,
)


def _valid_assignment():
    return {
        "schema_version": "1.0",
        "library_count": 3,
        "target": 3,
        "reference_min": 1,
        "reference_max": 2,
    }


def _valid_record():
    return {
        "schema_version": "1.0",
        "run_id": "abc123",
        "created_at": "2025-12-22T10:11:12+00:00",
        "work_dir": "/data/run",
        "library": "pacbioLib",
        "success": True,
        "errors": [],
        "checkpoints": {"start": "2025-12-22T10:11:12+00:00"},
        "stage_results": {"convert": {"state": "complete"}},
        "plan": None,
    }


@pytest.mark.unit
def test_validate_library_assignment_accepts_valid_payload():
    validate_library_assignment(_valid_assignment())


@pytest.mark.unit
def test_validate_library_assignment_rejects_missing_required_field():
    payload = _valid_assignment()
    payload.pop("target")
    with pytest.raises(ValueError, match="target"):
        validate_library_assignment(payload)


@pytest.mark.unit
def test_validate_library_assignment_rejects_additional_properties():
    payload = _valid_assignment()
    payload["unexpected"] = "nope"
    with pytest.raises(ValueError, match="Additional properties"):
        validate_library_assignment(payload)


@pytest.mark.unit
def test_validate_library_assignment_rejects_reversed_range():
    payload = _valid_assignment()
    payload["reference_min"], payload["reference_max"] = 2, 1
    with pytest.raises(ValueError, match="reference_max"):
        validate_library_assignment(payload)


@pytest.mark.unit
def test_validate_library_assignment_rejects_schema_version_mismatch():
    payload = _valid_assignment()
    payload["schema_version"] = "2.0"
    with pytest.raises(ValueError, match="schema_version"):
        validate_library_assignment(payload)


@pytest.mark.unit
def test_validate_run_record_accepts_valid_payload():
    validate_run_record(_valid_record())


@pytest.mark.unit
def test_validate_run_record_rejects_unknown_stage_state():
    payload = _valid_record()
    payload["stage_results"]["convert"]["state"] = "running"
    with pytest.raises(ValueError, match="stage_results/convert/state"):
        validate_run_record(payload)


@pytest.mark.unit
def test_validate_run_record_rejects_empty_run_id():
    payload = _valid_record()
    payload["run_id"] = ""
    with pytest.raises(ValueError, match="run_id"):
        validate_run_record(payload)


@pytest.mark.unit
def test_validate_against_schema_raises_when_schema_missing():
    with pytest.raises(FileNotFoundError, match="Schema not found"):
        validate_against_schema({"x": 1}, "definitely_missing.schema.json")


@pytest.mark.unit
def test_validate_against_schema_rejects_path_traversal_schema_filename():
    with pytest.raises(ValueError, match="escapes schemas directory"):
        validate_against_schema({"x": 1}, "../evil.schema.json")


@pytest.mark.unit
def test_load_schema_raises_on_invalid_json():
    schema_validation._load_schema.cache_clear()
    with patch("pbcorrect.utils.schema_validation.json.load") as mock_load:
        mock_load.side_effect = json.JSONDecodeError("bad", "{", 1)
        with pytest.raises(ValueError, match="Failed to load schema"):
            validate_against_schema(_valid_assignment(), "library_assignment.schema.json")


@pytest.mark.unit
def test_load_schema_raises_when_schema_not_object():
    schema_validation._load_schema.cache_clear()
    with patch("pbcorrect.utils.schema_validation.json.load") as mock_load:
        mock_load.return_value = []
        with pytest.raises(ValueError, match="must be a JSON object"):
            validate_against_schema(_valid_assignment(), "library_assignment.schema.json")
