"""
JSON Merge-Patch Engine

Applies a partial JSON object onto a stored document for PATCH requests:

    merge({"a": {"x": 1}}, {"a": {"x": 2, "y": 3}, "b": 4})
    -> {"a": {"x": 1, "y": 3}, "b": 4}

Objects present on both sides are merged recursively. Anything else in the
patch (scalars, arrays, null, or an object replacing a non-object) replaces
the base value wholesale. Keys only in the base are carried through.

The result is a fresh structure: neither input is mutated and the caller
never shares nested values with the base.

Date: 19 OCT 2026
"""

import copy
import json
from typing import Any, Dict, Mapping, Union

from util_logger import LoggerFactory, ComponentType

from .errors import MergeParseError

logger = LoggerFactory.create_logger(ComponentType.SERVICE, "MergePatch")

JSONInput = Union[bytes, str, Mapping[str, Any]]


def merge(patch: Mapping[str, Any], base: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Recursively merge patch onto base.

    Args:
        patch: Partial document; its values win on conflict
        base: Stored document

    Returns:
        New merged document owned by the caller
    """
    merged = copy.deepcopy(dict(base))

    for key, patch_value in patch.items():
        base_value = merged.get(key)
        if isinstance(patch_value, Mapping) and isinstance(base_value, Mapping):
            merged[key] = merge(patch_value, base_value)
        else:
            merged[key] = copy.deepcopy(patch_value)

    return merged


def _load_object(document: JSONInput, side: str) -> Dict[str, Any]:
    if isinstance(document, Mapping):
        return dict(document)

    try:
        loaded = json.loads(document)
    except (json.JSONDecodeError, UnicodeDecodeError, TypeError) as e:
        logger.error(f"cannot unmarshal {side} JSON: {e}")
        raise MergeParseError(side, f"{side} is not valid JSON: {e}") from e

    if not isinstance(loaded, dict):
        logger.error(f"{side} JSON is a {type(loaded).__name__}, not an object")
        raise MergeParseError(side, f"{side} must be a JSON object")

    return loaded


def merge_json(patch: JSONInput, base: JSONInput) -> Dict[str, Any]:
    """
    Parse both sides then merge.

    Raises:
        MergeParseError: naming the side ("patch" or "base") that failed
    """
    patch_doc = _load_object(patch, "patch")
    base_doc = _load_object(base, "base")
    return merge(patch_doc, base_doc)
