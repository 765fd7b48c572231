"""
Inference adapter around torch encoder modules.

Each adapter decides once, when it is built, whether its model returns a
pooled vector (rank 2) or per-token hidden states (rank 3). Calls return an
EncoderOutput tagged with that kind so callers never inspect ranks.
"""

import inspect
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np
import torch

from copyhelper.errors import InferenceError, ResourceError
from copyhelper.logging_config import get_logger

logger = get_logger(__name__)


class EncoderOutputKind(Enum):
    """Shape of what an encoder returns."""

    POOLED = "pooled"  # (batch, dim)
    PER_TOKEN = "per_token"  # (batch, seq, dim)

    @property
    def rank(self) -> int:
        return 2 if self is EncoderOutputKind.POOLED else 3


@dataclass(frozen=True)
class EncoderOutput:
    """Pooled vector of shape (dim,) or per-token matrix of shape (seq, dim)."""

    kind: EncoderOutputKind
    values: np.ndarray


def load_torchscript(path: Union[str, Path], device: str = "cpu") -> torch.nn.Module:
    """Load a TorchScript encoder. Missing or unreadable files fail fast."""
    path = Path(path)
    if not path.exists():
        raise ResourceError(path)
    try:
        module = torch.jit.load(str(path), map_location=device)
    except (RuntimeError, ValueError) as e:
        raise ResourceError(path, f"cannot load TorchScript model ({e})") from e
    module.eval()
    logger.info(f"Loaded encoder model {path.name}")
    return module


def input_names_of(module: Any) -> List[str]:
    """Names of the forward() arguments, in call order."""
    forward = getattr(module, "forward", module)
    schema = getattr(forward, "schema", None)
    if schema is not None:
        # TorchScript methods expose their signature through the schema
        return [arg.name for arg in schema.arguments if arg.name != "self"]
    params = inspect.signature(forward).parameters.values()
    return [
        p.name for p in params
        if p.kind in (p.POSITIONAL_ONLY, p.POSITIONAL_OR_KEYWORD) and p.name != "self"
    ]


def first_tensor(output: Any) -> Optional[torch.Tensor]:
    """First tensor-valued entry of a model output (tensor, mapping or sequence)."""
    if isinstance(output, torch.Tensor):
        return output
    if isinstance(output, Mapping):
        values = output.values()
    elif isinstance(output, (list, tuple)):
        values = output
    else:
        return None
    for value in values:
        if isinstance(value, torch.Tensor):
            return value
    return None


class TorchEncoder:
    """Serialized, kind-tagged access to one encoder module.

    Modules are not assumed thread-safe, so every call holds the adapter's
    lock for the duration of the forward pass.
    """

    def __init__(
        self,
        module: Any,
        output_kind: Union[EncoderOutputKind, str] = "auto",
        input_names: Optional[Sequence[str]] = None,
        probe_inputs: Optional[Dict[str, np.ndarray]] = None,
        name: str = "encoder",
        device: str = "cpu",
    ):
        """
        Args:
            module: torch.nn.Module (or TorchScript module) to call
            output_kind: "pooled", "per_token", or "auto" to probe once now
            input_names: forward() argument names; read from module if omitted
            probe_inputs: dummy inputs used when output_kind is "auto"
            name: label used in logs and errors
            device: torch device for inputs
        """
        self.module = module
        self.name = name
        self.device = device
        self.input_names = list(input_names) if input_names else input_names_of(module)
        self._lock = threading.Lock()

        if isinstance(output_kind, EncoderOutputKind):
            self.output_kind = output_kind
        elif output_kind == "auto":
            if probe_inputs is None:
                raise ValueError(f"{name}: probe_inputs required for output_kind='auto'")
            self.output_kind = self._probe(probe_inputs)
        else:
            self.output_kind = EncoderOutputKind(output_kind)

        logger.debug(f"{name} encoder inputs={self.input_names} output={self.output_kind.value}")

    def run(self, inputs: Dict[str, np.ndarray]) -> EncoderOutput:
        """Run one forward pass. Any failure surfaces as InferenceError."""
        tensor = self._forward(inputs)
        if tensor.dim() != self.output_kind.rank:
            raise InferenceError(
                f"{self.name} encoder returned rank {tensor.dim()}, "
                f"expected {self.output_kind.rank} ({self.output_kind.value})"
            )
        values = tensor[0].detach().cpu().float().numpy().astype(np.float32)
        return EncoderOutput(kind=self.output_kind, values=values)

    def _probe(self, probe_inputs: Dict[str, np.ndarray]) -> EncoderOutputKind:
        tensor = self._forward(probe_inputs)
        if tensor.dim() == 2:
            return EncoderOutputKind.POOLED
        if tensor.dim() == 3:
            return EncoderOutputKind.PER_TOKEN
        raise ResourceError(
            self.name, f"unsupported encoder output rank {tensor.dim()}"
        )

    def _forward(self, inputs: Dict[str, np.ndarray]) -> torch.Tensor:
        missing = [n for n in self.input_names if n not in inputs]
        if missing:
            raise InferenceError(f"{self.name} encoder missing inputs: {missing}")

        args = [torch.from_numpy(np.ascontiguousarray(inputs[n])).to(self.device)
                for n in self.input_names]
        try:
            with self._lock, torch.no_grad():
                output = self.module(*args)
        except Exception as e:
            raise InferenceError(f"{self.name} encoder failed: {e}") from e

        tensor = first_tensor(output)
        if tensor is None:
            raise InferenceError(f"{self.name} encoder returned no tensor output")
        return tensor
