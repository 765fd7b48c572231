"""
Text and image embeddings from the two CLIP encoders.

Both paths end in L2-normalized float32 vectors so that cosine similarity
between any stored and query vector is a plain dot product.
"""

from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

import numpy as np
from PIL import Image

from copyhelper.config import get, models_dir
from copyhelper.embeddings.runtime import (
    EncoderOutput,
    EncoderOutputKind,
    TorchEncoder,
    input_names_of,
    load_torchscript,
)
from copyhelper.embeddings.tokenizer import Tokenizer
from copyhelper.imaging import ImageInput, is_empty, to_rgb_image
from copyhelper.logging_config import get_logger

logger = get_logger(__name__)

MAX_TOKENS = get("embedding", "max_tokens")
IMAGE_SIZE = get("embedding", "image_size")
MEAN = np.array(get("embedding", "mean"), dtype=np.float32)
STD = np.array(get("embedding", "std"), dtype=np.float32)

def empty_vector() -> np.ndarray:
    return np.zeros(0, dtype=np.float32)


def l2_normalize(vector: np.ndarray) -> np.ndarray:
    """Divide by the Euclidean norm; zero-norm vectors are returned unchanged."""
    vector = np.asarray(vector, dtype=np.float32)
    if vector.size == 0:
        return vector
    norm = float(np.linalg.norm(vector))
    if norm <= 0:
        return vector
    return (vector / norm).astype(np.float32)


def pool(output: EncoderOutput, attention: Optional[np.ndarray] = None) -> np.ndarray:
    """Reduce an encoder output to one vector.

    Pooled outputs pass through. Per-token outputs are mean-pooled over the
    positions whose attention bit is 1.
    """
    if output.kind is EncoderOutputKind.POOLED:
        return output.values.reshape(-1)

    hidden = output.values
    seq_len = hidden.shape[0]
    if attention is None:
        keep = np.ones(seq_len, dtype=bool)
    else:
        keep = np.zeros(seq_len, dtype=bool)
        mask = np.asarray(attention).reshape(-1)[:seq_len] != 0
        keep[: mask.shape[0]] = mask
        # positions beyond the mask length are not masked out
        keep[mask.shape[0]:] = True
    if not keep.any():
        return np.zeros(hidden.shape[1], dtype=np.float32)
    return hidden[keep].mean(axis=0).astype(np.float32)


def build_image_tensor(image: ImageInput, size: int = IMAGE_SIZE) -> np.ndarray:
    """(1, 3, size, size) float32, channel-first, normalized per channel."""
    rgb = to_rgb_image(image).resize((size, size), Image.Resampling.BICUBIC)
    pixels = np.asarray(rgb, dtype=np.float32) / 255.0
    pixels = (pixels - MEAN) / STD
    return np.ascontiguousarray(pixels.transpose(2, 0, 1)[np.newaxis, ...])


def text_inputs(input_names: Sequence[str], ids: np.ndarray, attention: np.ndarray) -> Dict[str, np.ndarray]:
    """Route ids/mask to encoder inputs by name ("attention" gets the mask)."""
    batch_ids = ids.reshape(1, -1)
    batch_mask = attention.reshape(1, -1)
    return {
        name: batch_mask if "attention" in name.lower() else batch_ids
        for name in input_names
    }


def create_text_encoder(module, output: str = "auto", max_tokens: int = MAX_TOKENS,
                        device: str = "cpu") -> TorchEncoder:
    names = input_names_of(module)
    probe = None
    if output == "auto":
        probe_ids = np.zeros(max_tokens, dtype=np.int64)
        probe = text_inputs(names, probe_ids, np.ones(max_tokens, dtype=np.int64))
    return TorchEncoder(module, output, names, probe, name="text", device=device)


def create_image_encoder(module, output: str = "auto", image_size: int = IMAGE_SIZE,
                         device: str = "cpu") -> TorchEncoder:
    names = input_names_of(module)[:1]
    probe = None
    if output == "auto":
        probe = {names[0]: np.zeros((1, 3, image_size, image_size), dtype=np.float32)}
    return TorchEncoder(module, output, names, probe, name="image", device=device)


class EmbeddingEngine:
    """Turns text and images into comparable unit-length vectors.

    Encoder failures propagate as InferenceError; they are never turned into
    zero vectors here.
    """

    def __init__(
        self,
        tokenizer: Tokenizer,
        text_encoder: TorchEncoder,
        image_encoder: TorchEncoder,
        max_tokens: int = MAX_TOKENS,
        image_size: int = IMAGE_SIZE,
    ):
        self.tokenizer = tokenizer
        self.text_encoder = text_encoder
        self.image_encoder = image_encoder
        self.max_tokens = max_tokens
        self.image_size = image_size

    @classmethod
    def from_config(cls, directory: Optional[Path] = None) -> "EmbeddingEngine":
        """Load tokenizer and both encoders; any missing file raises ResourceError."""
        directory = Path(directory) if directory else models_dir()
        device = get("models", "device")

        tokenizer = Tokenizer.from_file(directory / get("models", "tokenizer"))
        text_module = load_torchscript(directory / get("models", "text_encoder"), device)
        image_module = load_torchscript(directory / get("models", "image_encoder"), device)

        engine = cls(
            tokenizer=tokenizer,
            text_encoder=create_text_encoder(text_module, get("models", "text_output"), device=device),
            image_encoder=create_image_encoder(image_module, get("models", "image_output"), device=device),
        )
        logger.info(
            f"Embedding engine ready (text={engine.text_encoder.output_kind.value}, "
            f"image={engine.image_encoder.output_kind.value})"
        )
        return engine

    def encode_text(self, text: str) -> np.ndarray:
        if not text or not text.strip():
            return empty_vector()

        ids, attention = self.tokenizer.encode(text, self.max_tokens)
        output = self.text_encoder.run(text_inputs(self.text_encoder.input_names, ids, attention))
        return l2_normalize(pool(output, attention))

    def encode_image(self, image: ImageInput) -> np.ndarray:
        if image is None or is_empty(image):
            return empty_vector()

        pixels = build_image_tensor(image, self.image_size)
        output = self.image_encoder.run({self.image_encoder.input_names[0]: pixels})
        return l2_normalize(pool(output))

    def encode_images(self, images: Iterable[ImageInput]) -> List[np.ndarray]:
        """Encode a gallery, dropping images that produce no vector."""
        vectors = []
        for image in images:
            vector = self.encode_image(image)
            if vector.size > 0:
                vectors.append(vector)
        return vectors

