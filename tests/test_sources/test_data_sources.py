"""Tests for sources/base.py: in-memory source, snapshot fetch and JSON loading."""

from __future__ import annotations

import json

import pytest

from construction_forecaster.errors import DataNotFoundError
from construction_forecaster.sources.base import (
    InMemoryProjectDataSource,
    fetch_snapshot,
    load_snapshot_file,
)


class TestInMemorySource:
    def test_fetch_snapshot(self, source, rich_snapshot):
        snapshot = fetch_snapshot(source, "proj-1")

        assert snapshot.project == rich_snapshot.project
        assert snapshot.risks == rich_snapshot.risks
        assert len(snapshot.external_factors) == 3

    def test_unknown_project(self, source):
        with pytest.raises(DataNotFoundError):
            source.get_project("nope")
        with pytest.raises(DataNotFoundError):
            fetch_snapshot(source, "nope")

    def test_project_ids_sorted(self, source):
        assert source.project_ids() == ["proj-1", "proj-empty"]

    def test_factors_fall_back_to_first_snapshot(self, empty_snapshot, rich_snapshot):
        source = InMemoryProjectDataSource([empty_snapshot, rich_snapshot])
        assert source.get_external_factors() == rich_snapshot.external_factors

    def test_no_factors_anywhere(self, empty_snapshot):
        assert InMemoryProjectDataSource([empty_snapshot]).get_external_factors() == []

    def test_returned_lists_are_copies(self, source):
        source.get_risks("proj-1").clear()
        assert len(source.get_risks("proj-1")) == 20


class TestLoadSnapshotFile:
    def test_single_object(self, tmp_path, rich_snapshot):
        path = tmp_path / "one.json"
        path.write_text(json.dumps(rich_snapshot.model_dump(mode="json")), encoding="utf-8")

        source = load_snapshot_file(path)
        assert source.project_ids() == ["proj-1"]
        assert source.get_project("proj-1") == rich_snapshot.project

    def test_list_of_snapshots(self, tmp_path, rich_snapshot, empty_snapshot):
        path = tmp_path / "many.json"
        payload = [s.model_dump(mode="json") for s in (rich_snapshot, empty_snapshot)]
        path.write_text(json.dumps(payload), encoding="utf-8")

        assert load_snapshot_file(str(path)).project_ids() == ["proj-1", "proj-empty"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_snapshot_file(tmp_path / "absent.json")

    def test_invalid_json(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValueError, match="not valid JSON"):
            load_snapshot_file(path)

    def test_failed_validation(self, tmp_path):
        path = tmp_path / "invalid.json"
        path.write_text(json.dumps({"project": {"name": "no id"}}), encoding="utf-8")
        with pytest.raises(ValueError, match="failed validation"):
            load_snapshot_file(path)
