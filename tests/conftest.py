"""
Shared test fixtures for the copyhelper test suite.
"""

import io
import json
from pathlib import Path
from typing import List

import cv2
import numpy as np
import pytest
import torch
from PIL import Image

from copyhelper.embeddings.engine import EmbeddingEngine, create_image_encoder, create_text_encoder
from copyhelper.embeddings.tokenizer import Tokenizer, load_tokenizer_file
from copyhelper.models.index import CorpusIndex, DocumentIndex, ImageChunk, NormalizedRect, PageIndex, TextChunk

EMBED_DIM = 16

# "Ġ" is the private-alphabet character for a space byte.
TINY_VOCAB = {
    "<|startoftext|>": 1,
    "<|endoftext|>": 2,
    **{chr(ord("a") + i): 10 + i for i in range(26)},
    "he": 50,
    "ll": 51,
    "hell": 52,
    "hello": 53,
    "Ġw": 54,
    "or": 55,
    "Ġwor": 56,
    "ld": 57,
    "Ġworld": 58,
}

TINY_MERGES = [
    "h e",
    "l l",
    "he ll",
    "hell o",
    "Ġ w",
    "o r",
    "Ġw or",
    "l d",
    "Ġwor ld",
]


class BagOfIdsTextEncoder(torch.nn.Module):
    """Pooled text encoder: counts of (id mod dim) over unmasked positions."""

    def __init__(self, dim: int = EMBED_DIM):
        super().__init__()
        self.dim = dim

    def forward(self, input_ids, attention_mask):
        one_hot = torch.nn.functional.one_hot(input_ids % self.dim, self.dim).float()
        return (one_hot * attention_mask.unsqueeze(-1).float()).sum(dim=1)


class PerTokenTextEncoder(torch.nn.Module):
    """Per-token encoder whose padded positions carry large junk values."""

    def __init__(self, dim: int = EMBED_DIM):
        super().__init__()
        self.dim = dim

    def forward(self, input_ids, attention_mask):
        one_hot = torch.nn.functional.one_hot(input_ids % self.dim, self.dim).float()
        junk = (1 - attention_mask.unsqueeze(-1).float()) * 100.0
        return {"last_hidden_state": one_hot + junk}


class ChannelMeanImageEncoder(torch.nn.Module):
    """Pooled image encoder: per-channel means, shifted to stay positive."""

    def forward(self, pixel_values):
        means = pixel_values.mean(dim=(2, 3)) + 3.0
        return (means, "unused")


@pytest.fixture
def tokenizer_file(tmp_path: Path) -> Path:
    path = tmp_path / "tokenizer.json"
    path.write_text(json.dumps({"model": {"vocab": TINY_VOCAB, "merges": TINY_MERGES}}))
    return path


@pytest.fixture
def tokenizer(tokenizer_file: Path) -> Tokenizer:
    return Tokenizer(*load_tokenizer_file(tokenizer_file))


@pytest.fixture
def engine(tokenizer: Tokenizer) -> EmbeddingEngine:
    """EmbeddingEngine over tiny deterministic torch encoders."""
    return EmbeddingEngine(
        tokenizer=tokenizer,
        text_encoder=create_text_encoder(BagOfIdsTextEncoder()),
        image_encoder=create_image_encoder(ChannelMeanImageEncoder()),
    )


def _unit(values: List[float]) -> List[float]:
    v = np.asarray(values, dtype=np.float32)
    return (v / np.linalg.norm(v)).tolist()


def _rect(x=0.1, y=0.1, width=0.2, height=0.05) -> NormalizedRect:
    return NormalizedRect(x=x, y=y, width=width, height=height)


def _make_page(page_number=1, texts=(), images=(), full_text="") -> PageIndex:
    """Page with text chunks from (text, embedding) and image chunks from embeddings."""
    return PageIndex(
        page_number=page_number,
        page_width=612,
        page_height=792,
        full_text=full_text,
        text_chunks=[TextChunk(text=t, bounds=_rect(y=0.1 * (i + 1)), embedding=e) for i, (t, e) in enumerate(texts)],
        image_chunks=[ImageChunk(bounds=_rect(x=0.5, y=0.1 * (i + 1), width=0.3, height=0.2), embedding=e) for i, e in enumerate(images)],
    )


def _make_corpus(*documents) -> CorpusIndex:
    """Corpus from (path, [PageIndex, ...]) pairs."""
    return CorpusIndex(documents=[
        DocumentIndex(path=path, last_modified="2026-01-01T00:00:00+00:00", pages=list(pages))
        for path, pages in documents
    ])


def _png_bytes(width: int, height: int, color=(200, 30, 30)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buffer, format="PNG")
    return buffer.getvalue()


def _draw_capture(width: int = 800, height: int = 600) -> np.ndarray:
    """White BGR capture with one bordered box (left) and a text block (right)."""
    image = np.full((height, width, 3), 255, dtype=np.uint8)
    cv2.rectangle(image, (60, 60), (360, 300), (225, 225, 225), -1)
    cv2.rectangle(image, (60, 60), (360, 300), (150, 150, 150), 3)
    for i in range(4):
        cv2.putText(
            image, "lorem ipsum dolor sit amet", (440, 400 + 20 * i),
            cv2.FONT_HERSHEY_SIMPLEX, 0.5, (30, 30, 30), 1,
        )
    return image


@pytest.fixture
def capture_image() -> np.ndarray:
    return _draw_capture()


@pytest.fixture
def unit_vector():
    return _unit


@pytest.fixture
def make_page():
    return _make_page


@pytest.fixture
def make_corpus():
    return _make_corpus


@pytest.fixture
def png_bytes():
    return _png_bytes


@pytest.fixture
def draw_capture():
    return _draw_capture
