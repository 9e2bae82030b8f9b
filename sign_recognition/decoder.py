"""Turn raw model output into a labelled prediction."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np

from . import config
from .errors import EmptyOutputError


@dataclass
class PredictionResult:
    label: str
    index: int
    scores: List[float] = field(default_factory=list)

    @property
    def confidence(self) -> float:
        if 0 <= self.index < len(self.scores):
            return self.scores[self.index]
        return 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "index": self.index,
            "scores": list(self.scores),
            "confidence": round(self.confidence, 4),
        }


def normalise_output(output: Any) -> Optional[Any]:
    """Reduce a tensor, a list of tensors or a mapping of tensors to one tensor."""
    if output is None:
        return None
    if isinstance(output, Mapping):
        return next(iter(output.values()), None)
    if isinstance(output, (list, tuple)):
        return output[0] if output else None
    return output


def lookup_label(labels: Sequence[str], index: int) -> str:
    if 0 <= index < len(labels) and labels[index]:
        return labels[index]
    return config.UNKNOWN_LABEL


def decode(output: Any, labels: Sequence[str]) -> PredictionResult:
    logits = normalise_output(output)
    if logits is None:
        raise EmptyOutputError("Model output invalid: nothing to decode")

    values = logits.numpy() if hasattr(logits, "numpy") else logits
    try:
        scores = np.asarray(values, dtype=np.float64).ravel()
    except (TypeError, ValueError) as exc:
        raise EmptyOutputError(f"Model output invalid: {exc}") from exc
    if scores.size == 0:
        raise EmptyOutputError("Model output invalid: empty tensor")

    # np.argmax returns the first occurrence of the maximum
    index = int(np.argmax(scores))
    return PredictionResult(
        label=lookup_label(labels, index),
        index=index,
        scores=[float(v) for v in scores],
    )
