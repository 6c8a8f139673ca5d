"""Translation of ordered string key/value pairs into engine parameters."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Iterable, List, Mapping, Sequence, Tuple

from xgb_pipeline.engine import ModelHandle
from xgb_pipeline.status import EngineError, InvalidParameterError

logger = logging.getLogger(__name__)

ITERATION_KEY = "n_estimators"

ConfigPairs = Sequence[Tuple[Any, Any]]


@dataclass
class TranslationReport:
    """Outcome of forwarding hyperparameters to a model handle."""

    applied: List[Tuple[str, str]] = field(default_factory=list)
    rejected: List[Tuple[str, str, str]] = field(default_factory=list)
    skipped: int = 0


def normalize_config(config: Any) -> List[Tuple[Any, Any]]:
    """Return ``config`` as a list of pairs, keeping its order.

    Mappings are read in iteration order; sequences must hold 2-item pairs.
    """
    if config is None:
        raise InvalidParameterError("config is required", operation="translate")
    if isinstance(config, Mapping):
        return list(config.items())
    if isinstance(config, (str, bytes)):
        raise InvalidParameterError(
            "config must be a sequence of (key, value) pairs", operation="translate"
        )
    pairs: List[Tuple[Any, Any]] = []
    for index, entry in enumerate(config):
        try:
            key, value = entry
        except (TypeError, ValueError) as exc:
            raise InvalidParameterError(
                "config entries must be (key, value) pairs",
                operation="translate",
                context={"index": index},
            ) from exc
        pairs.append((key, value))
    return pairs


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def extract_iteration_count(config: Any) -> int:
    """Parse the ``n_estimators`` entry; the last occurrence wins.

    Raises
    ------
    InvalidParameterError
        If the entry is missing, not an integer, or below 1.
    """
    raw = None
    for key, value in normalize_config(config):
        if key == ITERATION_KEY and not _is_blank(value):
            raw = value
    if raw is None:
        raise InvalidParameterError(
            f"{ITERATION_KEY} parameter is missing", operation="translate"
        )
    try:
        count = int(str(raw).strip())
    except ValueError as exc:
        raise InvalidParameterError(
            f"{ITERATION_KEY} is not an integer",
            operation="translate",
            context={ITERATION_KEY: raw},
        ) from exc
    if count < 1:
        raise InvalidParameterError(
            f"{ITERATION_KEY} must be >= 1",
            operation="translate",
            context={ITERATION_KEY: count},
        )
    return count


def apply_hyperparameters(model: ModelHandle, config: Any) -> TranslationReport:
    """Forward every entry except ``n_estimators`` to ``model`` in order.

    Entries with an empty key or value are skipped. A parameter the engine
    rejects is logged and recorded; the remaining entries are still applied.
    """
    report = TranslationReport()
    for key, value in normalize_config(config):
        if _is_blank(key) or _is_blank(value):
            report.skipped += 1
            continue
        key, value = str(key), str(value)
        if key == ITERATION_KEY:
            continue
        try:
            model.set_param(key, value)
        except EngineError as exc:
            logger.warning("Failed to set parameter %s=%s: %s", key, value, exc.message)
            report.rejected.append((key, value, exc.message))
            continue
        report.applied.append((key, value))
    return report


def config_from_pairs(pairs: Iterable[Tuple[str, Any]]) -> List[Tuple[str, str]]:
    """Stringify values so a parsed config can be forwarded verbatim."""
    return [(str(k), _stringify(v)) for k, v in pairs]


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)
