"""
Embedding generation: BPE tokenizer, encoder adapters and the engine.
"""

from copyhelper.embeddings.engine import EmbeddingEngine, l2_normalize, pool
from copyhelper.embeddings.runtime import (
    EncoderOutput,
    EncoderOutputKind,
    TorchEncoder,
    load_torchscript,
)
from copyhelper.embeddings.tokenizer import Tokenizer

__all__ = [
    "EmbeddingEngine",
    "EncoderOutput",
    "EncoderOutputKind",
    "Tokenizer",
    "TorchEncoder",
    "l2_normalize",
    "load_torchscript",
    "pool",
]
