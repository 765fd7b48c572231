"""
Byte-level BPE tokenizer for the CLIP text encoder.

Text is pre-tokenized with a fixed pattern, each pre-token's UTF-8 bytes are
mapped onto a printable private alphabet, and ranked merge rules fuse
adjacent symbols until no known pair remains. The vocabulary and merge
rules come from a HuggingFace-style tokenizer.json.
"""

import json
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np
import regex

from copyhelper.errors import ResourceError
from copyhelper.logging_config import get_logger

logger = get_logger(__name__)

START_TOKEN = "<|startoftext|>"
END_TOKEN = "<|endoftext|>"
END_OF_WORD = "</w>"

# Contractions, letter runs, number runs, punctuation runs, whitespace.
TOKEN_PATTERN = regex.compile(
    r"""'s|'t|'re|'ve|'m|'ll|'d| ?\p{L}+| ?\p{N}+| ?[^\s\p{L}\p{N}]+|\s+(?!\S)|\s+"""
)


def build_byte_encoder() -> Dict[int, str]:
    """Bijection byte -> unicode character.

    Printable ASCII and two Latin-1 ranges map to themselves; the remaining
    68 byte values map to code points starting at 256.
    """
    byte_values = (
        list(range(ord("!"), ord("~") + 1))
        + list(range(ord("¡"), ord("¬") + 1))
        + list(range(ord("®"), ord("ÿ") + 1))
    )
    code_points = list(byte_values)
    n = 0
    for b in range(256):
        if b not in byte_values:
            byte_values.append(b)
            code_points.append(256 + n)
            n += 1
    return {b: chr(c) for b, c in zip(byte_values, code_points)}


def load_tokenizer_file(path: Path) -> Tuple[Dict[str, int], Dict[Tuple[str, str], int]]:
    """Read vocab and ranked merges from tokenizer.json.

    Merges may be "a b" strings or ["a", "b"] pairs. Malformed entries are
    skipped without consuming a rank.
    """
    path = Path(path)
    if not path.exists():
        raise ResourceError(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
        model = data["model"]
        vocab = {str(k): int(v) for k, v in model["vocab"].items()}
        raw_merges = model.get("merges", [])
    except (OSError, ValueError, KeyError, TypeError) as e:
        raise ResourceError(path, f"unreadable tokenizer file ({e})") from e

    ranks: Dict[Tuple[str, str], int] = {}
    for merge in raw_merges:
        if isinstance(merge, str):
            parts = merge.split()
        elif isinstance(merge, (list, tuple)):
            parts = [str(p) for p in merge]
        else:
            continue
        if len(parts) != 2:
            continue
        pair = (parts[0], parts[1])
        if pair not in ranks:
            ranks[pair] = len(ranks)
    return vocab, ranks


class Tokenizer:
    """Greedy BPE encoder producing fixed-length id/attention-mask pairs.

    The BPE cache lives as long as the instance and is never evicted.
    """

    def __init__(self, vocab: Dict[str, int], merge_ranks: Dict[Tuple[str, str], int]):
        self.vocab = vocab
        self.merge_ranks = merge_ranks
        self.byte_encoder = build_byte_encoder()
        self.byte_decoder = {c: b for b, c in self.byte_encoder.items()}
        self.id_to_token = {i: t for t, i in vocab.items()}
        self.start_id = vocab.get(START_TOKEN)
        self.end_id = vocab.get(END_TOKEN)
        self._cache: Dict[str, Tuple[str, ...]] = {}

    @classmethod
    def from_file(cls, path: Path) -> "Tokenizer":
        vocab, ranks = load_tokenizer_file(path)
        logger.info(f"Loaded tokenizer: {len(vocab)} tokens, {len(ranks)} merges")
        return cls(vocab, ranks)

    @property
    def cache_size(self) -> int:
        return len(self._cache)

    def encode(self, text: str, max_tokens: int) -> Tuple[np.ndarray, np.ndarray]:
        """Encode text into (ids, attention_mask), both int64 of length max_tokens.

        Unknown sub-words are skipped. The start id is prepended and the end
        id appended while room remains; the rest is zero padding.
        """
        ids = np.zeros(max_tokens, dtype=np.int64)
        attention = np.zeros(max_tokens, dtype=np.int64)
        if not text or not text.strip():
            return ids, attention

        index = 0
        if self.start_id is not None and index < max_tokens:
            ids[index] = self.start_id
            attention[index] = 1
            index += 1

        for piece in self.tokenize(text):
            if index >= max_tokens:
                break
            token_id = self.vocab.get(piece)
            if token_id is None:
                continue
            ids[index] = token_id
            attention[index] = 1
            index += 1

        if self.end_id is not None and index < max_tokens:
            ids[index] = self.end_id
            attention[index] = 1

        return ids, attention

    def tokenize(self, text: str) -> Iterator[str]:
        """Yield sub-word strings (in the private alphabet) for text."""
        for match in TOKEN_PATTERN.finditer(text):
            value = match.group(0)
            if not value:
                continue
            yield from self.bpe(self._encode_bytes(value))

    def bpe(self, token: str) -> Tuple[str, ...]:
        """Apply ranked merges to one pre-token until no known pair is left."""
        cached = self._cache.get(token)
        if cached is not None:
            return cached

        word: List[str] = list(token)
        while len(word) > 1:
            best_pair = None
            best_rank = None
            for pair in zip(word, word[1:]):
                rank = self.merge_ranks.get(pair)
                if rank is not None and (best_rank is None or rank < best_rank):
                    best_rank = rank
                    best_pair = pair
            if best_pair is None:
                break

            first, second = best_pair
            merged: List[str] = []
            i = 0
            while i < len(word):
                if i < len(word) - 1 and word[i] == first and word[i + 1] == second:
                    merged.append(first + second)
                    i += 2
                else:
                    merged.append(word[i])
                    i += 1
            word = merged

        result = tuple(word)
        self._cache[token] = result
        return result

    def decode(self, ids: Sequence[int], attention: Optional[Sequence[int]] = None) -> str:
        """Reverse ids to text, dropping padding (mask 0) and special tokens."""
        if attention is not None:
            ids = [i for i, m in zip(ids, attention) if m]
        specials = {self.start_id, self.end_id}
        pieces = []
        for token_id in ids:
            token_id = int(token_id)
            if token_id in specials:
                continue
            token = self.id_to_token.get(token_id)
            if token is None:
                continue
            pieces.append(token)
        words = "".join(pieces).split(END_OF_WORD)
        if len(words) > 1 and not words[-1]:
            words.pop()
        return " ".join(self._decode_bytes(word) for word in words)

    def _decode_bytes(self, symbols: str) -> str:
        raw = bytes(self.byte_decoder[c] for c in symbols if c in self.byte_decoder)
        return raw.decode("utf-8", errors="replace")

    def _encode_bytes(self, text: str) -> str:
        return "".join(self.byte_encoder[b] for b in text.encode("utf-8"))
