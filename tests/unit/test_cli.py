"""
Unit tests for the copyhelper command line.
"""

import json
from unittest.mock import patch

import cv2
import pytest
from PIL import Image

from copyhelper.cli import main, parse_args
from copyhelper.index.store import IndexStore


@pytest.fixture
def index_path(tmp_path, make_corpus, make_page):
    path = tmp_path / "pdf_index.json"
    page = make_page(1, texts=[("hydraulic pump", None)])
    IndexStore(path).save(make_corpus(("/docs/manual.pdf", [page])))
    return path


class TestParseArgs:
    def test_search_image_defaults(self):
        args = parse_args(["search-image", "cap.png"])
        assert args.command == "search-image"
        assert args.top == 8

    def test_command_is_required(self):
        with pytest.raises(SystemExit):
            parse_args([])


class TestCommands:
    def test_list_prints_stats(self, index_path, capsys):
        assert main(["--index", str(index_path), "list"]) == 0
        rows = json.loads(capsys.readouterr().out)
        assert rows[0]["path"] == "/docs/manual.pdf"
        assert rows[0]["text_chunks"] == 1

    def test_remove(self, index_path):
        assert main(["--index", str(index_path), "remove", "/docs/MANUAL.pdf"]) == 0
        assert IndexStore(index_path).load().documents == []

    def test_prune_drops_missing_files(self, index_path, capsys):
        assert main(["--index", str(index_path), "prune"]) == 0
        assert "Pruned 1" in capsys.readouterr().out

    def test_segment_prints_regions(self, tmp_path, draw_capture, capsys):
        path = tmp_path / "capture.png"
        cv2.imwrite(str(path), draw_capture())
        assert main(["segment", str(path)]) == 0
        kinds = sorted(r["kind"] for r in json.loads(capsys.readouterr().out))
        assert kinds == ["photo", "text"]

    @patch("copyhelper.capture.ocr.pytesseract.image_to_string", return_value="hydraulic pump")
    def test_lexical_search_image(self, _ocr, tmp_path, index_path, capsys):
        path = tmp_path / "capture.png"
        Image.new("RGB", (200, 100), (255, 255, 255)).save(path)
        assert main(["--index", str(index_path), "--lexical", "search-image", str(path)]) == 0
        payload = json.loads(capsys.readouterr().out)
        assert payload["text"] == "hydraulic pump"
        assert payload["results"][0]["document_path"] == "/docs/manual.pdf"

    def test_corrupt_index_exits_with_error(self, tmp_path, capsys):
        path = tmp_path / "pdf_index.json"
        path.write_text("not json")
        assert main(["--index", str(path), "list"]) == 1
        assert "error:" in capsys.readouterr().err

    def test_unreadable_image_exits_with_error(self, tmp_path):
        assert main(["segment", str(tmp_path / "missing.png")]) == 1
