"""
Unit tests for incremental document indexing.
"""

import os
from datetime import datetime
from unittest.mock import MagicMock

import numpy as np
import pytest

from copyhelper.errors import DocumentError, InferenceError
from copyhelper.index.store import IndexStore
from copyhelper.ingestion.indexer import DocumentIndexer, file_timestamp, prune_missing, remove
from copyhelper.ingestion.pdf_parser import ParsedImage, ParsedPage, ParsedWord
from copyhelper.models.index import CorpusIndex


@pytest.fixture
def pdf_file(tmp_path):
    path = tmp_path / "manual.pdf"
    path.write_bytes(b"%PDF")
    return path


@pytest.fixture
def parsed_pages(png_bytes):
    return [
        ParsedPage(
            number=1, width=400, height=800, text="Pump assembly\nTorque values",
            words=[
                ParsedWord("Pump", 10, 700, 40, 12),
                ParsedWord("assembly", 55, 700, 70, 12),
                ParsedWord("Torque", 10, 650, 50, 12),
                ParsedWord("values", 65, 650, 50, 12),
            ],
            images=[
                ParsedImage(png_bytes(80, 60), 100, 100, 200, 150),
                ParsedImage(png_bytes(20, 20), 10, 10, 20, 20),
                ParsedImage(b"not an image", 0, 0, 10, 10),
            ],
        ),
        ParsedPage(number=2, width=400, height=800, text=""),
    ]


@pytest.fixture
def parser(parsed_pages):
    mock = MagicMock()
    mock.parse.side_effect = lambda path: iter(parsed_pages)
    return mock


@pytest.fixture
def fake_engine():
    engine = MagicMock()
    engine.encode_text.side_effect = lambda text: np.array([1.0, 0.0, 0.0], dtype=np.float32)
    engine.encode_image.side_effect = lambda image: np.array([0.0, 1.0, 0.0], dtype=np.float32)
    return engine


def _bump_mtime(path, seconds=10):
    stat = os.stat(path)
    os.utime(path, (stat.st_atime, stat.st_mtime + seconds))


class TestFileTimestamp:
    def test_is_iso_utc(self, pdf_file):
        stamp = file_timestamp(pdf_file)
        assert datetime.fromisoformat(stamp).utcoffset().total_seconds() == 0


class TestIngest:
    def test_indexes_pages_chunks_and_images(self, pdf_file, parser, fake_engine):
        index = DocumentIndexer(fake_engine, parser).ingest([pdf_file], CorpusIndex())

        assert len(index.documents) == 1
        doc = index.documents[0]
        assert doc.path == str(pdf_file)
        assert doc.last_modified == file_timestamp(pdf_file)
        assert [p.page_number for p in doc.pages] == [1, 2]

        page = doc.pages[0]
        assert [c.text for c in page.text_chunks] == ["Pump assembly", "Torque values"]
        assert all(c.embedding == [1.0, 0.0, 0.0] for c in page.text_chunks)
        assert page.full_text == "Pump assembly\nTorque values"
        assert (page.page_width, page.page_height) == (400, 800)

        # undersized and undecodable images are dropped
        assert len(page.image_chunks) == 1
        assert page.image_chunks[0].embedding == [0.0, 1.0, 0.0]
        assert page.image_chunks[0].bounds.x == pytest.approx(0.25)
        assert fake_engine.encode_image.call_count == 1

    def test_missing_files_are_skipped(self, tmp_path, parser, fake_engine):
        start = CorpusIndex()
        result = DocumentIndexer(fake_engine, parser).ingest([tmp_path / "gone.pdf"], start)
        assert result is start
        parser.parse.assert_not_called()

    def test_unchanged_file_is_not_reparsed_or_reembedded(self, tmp_path, pdf_file, parser, fake_engine):
        indexer = DocumentIndexer(fake_engine, parser)
        store = IndexStore(tmp_path / "index.json")

        first = indexer.ingest([pdf_file], CorpusIndex())
        store.save(first)
        before = store.path.read_bytes()
        text_calls = fake_engine.encode_text.call_count

        second = indexer.ingest([pdf_file], store.load())
        store.save(second)

        assert parser.parse.call_count == 1
        assert fake_engine.encode_text.call_count == text_calls
        assert store.path.read_bytes() == before

    def test_changed_timestamp_replaces_entry(self, pdf_file, parser, fake_engine):
        indexer = DocumentIndexer(fake_engine, parser)
        first = indexer.ingest([pdf_file], CorpusIndex())
        _bump_mtime(pdf_file)

        second = indexer.ingest([pdf_file], first)
        assert parser.parse.call_count == 2
        assert len(second.documents) == 1
        assert second.documents[0].last_modified == file_timestamp(pdf_file)
        assert first.documents[0].last_modified != second.documents[0].last_modified

    def test_bad_document_does_not_abort_batch(self, tmp_path, pdf_file, parsed_pages, fake_engine):
        bad = tmp_path / "bad.pdf"
        bad.write_bytes(b"junk")

        def parse(path):
            if path.endswith("bad.pdf"):
                raise DocumentError(path, "cannot open")
            return iter(parsed_pages)

        parser = MagicMock()
        parser.parse.side_effect = parse
        index = DocumentIndexer(fake_engine, parser).ingest([bad, pdf_file], CorpusIndex())
        assert [d.path for d in index.documents] == [str(pdf_file)]

    def test_failed_reparse_keeps_previous_entry(self, pdf_file, parser, fake_engine):
        indexer = DocumentIndexer(fake_engine, parser)
        first = indexer.ingest([pdf_file], CorpusIndex())

        _bump_mtime(pdf_file)
        parser.parse.side_effect = DocumentError(str(pdf_file), "truncated")
        second = indexer.ingest([pdf_file], first)
        assert second.documents == first.documents

    def test_inference_failure_skips_document(self, pdf_file, parser):
        engine = MagicMock()
        engine.encode_text.side_effect = InferenceError("encoder crashed")
        index = DocumentIndexer(engine, parser).ingest([pdf_file], CorpusIndex())
        assert index.documents == []

    def test_without_engine_chunks_are_unembedded(self, pdf_file, parser):
        index = DocumentIndexer(None, parser).ingest([pdf_file], CorpusIndex())
        page = index.documents[0].pages[0]
        assert all(c.embedding is None for c in page.text_chunks)
        assert len(page.image_chunks) == 1
        assert page.image_chunks[0].embedding is None

    def test_blank_chunk_text_is_not_embedded(self, pdf_file, fake_engine):
        parser = MagicMock()
        parser.parse.side_effect = lambda path: iter([
            ParsedPage(number=1, width=100, height=100, words=[ParsedWord(" ", 1, 50, 5, 5)]),
        ])
        index = DocumentIndexer(fake_engine, parser).ingest([pdf_file], CorpusIndex())
        assert index.documents[0].pages[0].text_chunks[0].embedding is None
        fake_engine.encode_text.assert_not_called()


class TestReindexRemovePrune:
    def test_reindex_rebuilds_unchanged_file(self, pdf_file, parser, fake_engine):
        indexer = DocumentIndexer(fake_engine, parser)
        first = indexer.ingest([pdf_file], CorpusIndex())
        second = indexer.reindex(first, pdf_file)
        assert parser.parse.call_count == 2
        assert second is not first
        assert len(second.documents) == 1

    def test_reindex_of_deleted_file_removes_it(self, pdf_file, parser, fake_engine):
        indexer = DocumentIndexer(fake_engine, parser)
        first = indexer.ingest([pdf_file], CorpusIndex())
        pdf_file.unlink()
        assert indexer.reindex(first, pdf_file).documents == []

    def test_remove_is_case_insensitive(self, pdf_file, parser, fake_engine):
        index = DocumentIndexer(fake_engine, parser).ingest([pdf_file], CorpusIndex())
        assert remove(index, str(pdf_file).upper()).documents == []

    def test_remove_unknown_path_returns_same_index(self, make_corpus):
        index = make_corpus(("/docs/a.pdf", []))
        assert remove(index, "/docs/other.pdf") is index

    def test_prune_missing_drops_deleted_files(self, tmp_path, pdf_file, parser, fake_engine):
        other = tmp_path / "other.pdf"
        other.write_bytes(b"%PDF")
        index = DocumentIndexer(fake_engine, parser).ingest([pdf_file, other], CorpusIndex())
        other.unlink()
        assert [d.path for d in prune_missing(index).documents] == [str(pdf_file)]
