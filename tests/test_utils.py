"""Unit tests for shared helpers (platformgen.utils)."""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path

import pytest

from platformgen import utils
from platformgen.utils import (
    configure_logging,
    content_hash,
    dump_json,
    load_json,
    print_error,
    print_path_list,
    print_summary_table,
)


class TestContentHash:
    @pytest.mark.unit
    def test_text_and_bytes_agree(self):
        assert content_hash("abc") == content_hash(b"abc")
        assert content_hash("abc") == hashlib.sha256(b"abc").hexdigest()


class TestJson:
    @pytest.mark.unit
    def test_dump_keeps_order_and_ends_with_newline(self):
        text = dump_json({"b": 1, "a": "é"})
        assert text.endswith("}\n")
        assert text.index('"b"') < text.index('"a"')
        assert "é" in text

    @pytest.mark.unit
    def test_load_json(self, tmp_path: Path):
        path = tmp_path / "data.json"
        path.write_text(json.dumps({"files": {}}), encoding="utf-8")
        assert load_json(path) == {"files": {}}

    @pytest.mark.unit
    def test_load_json_rejects_non_objects(self, tmp_path: Path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2]", encoding="utf-8")
        with pytest.raises(ValueError, match="expected a JSON object"):
            load_json(path)


class TestLogging:
    @pytest.mark.unit
    def test_levels(self):
        configure_logging(verbose=True)
        assert logging.getLogger().level == logging.DEBUG
        configure_logging(verbose=False)
        assert logging.getLogger().level == logging.WARNING


class TestConsoleHelpers:
    @pytest.mark.unit
    def test_output(self, monkeypatch: pytest.MonkeyPatch):
        from rich.console import Console

        recording = Console(record=True, width=120)
        monkeypatch.setattr(utils, "console", recording)

        print_summary_table({"Written": 3}, title="Result")
        print_path_list(["k8s/base/deployment.yaml"], "Conflicts:")
        print_error("boom")

        text = recording.export_text()
        assert "Result" in text
        assert "Written" in text
        assert "k8s/base/deployment.yaml" in text
        assert "Error: boom" in text
