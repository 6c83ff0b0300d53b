"""Puppet template export / import.

Templates are stored as flat JSON::

    {
      "template": [{"x": 312.0, "y": 88.5, "v": 0.98}, null, ...],
      "boneLengths": [54.2, 48.9, null, ...]
    }

``boneLengths`` is optional on import and recomputed from the template
and the fixed connection set when missing. Older exports used
``puppetTemplate`` as the template key; that key is still accepted.
"""

import json
import math
from pathlib import Path
from typing import Any, Optional, Sequence, Tuple, Union

from posepuppet.core import get_logger
from posepuppet.core.errors import InvalidImport
from posepuppet.core.landmarks import (
    NUM_LANDMARKS,
    POSE_CONNECTIONS,
    BoneLengths,
    Landmark,
    Skeleton,
    as_skeleton,
    compute_bone_lengths,
)


logger = get_logger("export.template")

TEMPLATE_KEY = "template"
LEGACY_TEMPLATE_KEY = "puppetTemplate"
BONE_LENGTHS_KEY = "boneLengths"


def _is_number(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and math.isfinite(value)
    )


def landmark_to_record(lm: Optional[Landmark]) -> Optional[dict]:
    if lm is None:
        return None
    return {"x": float(lm.x), "y": float(lm.y), "v": float(lm.visibility)}


def landmark_from_record(record: Any, index: int) -> Optional[Landmark]:
    if record is None:
        return None
    if not isinstance(record, dict):
        raise InvalidImport(f"Landmark {index} must be an object or null")

    x = record.get("x")
    y = record.get("y")
    v = record.get("v", record.get("visibility", 1.0))
    if not (_is_number(x) and _is_number(y)):
        raise InvalidImport(f"Landmark {index} has invalid coordinates")
    if not _is_number(v):
        raise InvalidImport(f"Landmark {index} has invalid visibility")

    return Landmark(float(x), float(y), float(v))


def template_to_record(
    template: Sequence[Optional[Landmark]],
    bone_lengths: Optional[Sequence[Optional[float]]] = None
) -> dict:
    """Serializable record for a template and its bone lengths."""
    if bone_lengths is None:
        bone_lengths = compute_bone_lengths(template)
    return {
        TEMPLATE_KEY: [landmark_to_record(lm) for lm in template],
        BONE_LENGTHS_KEY: [float(b) if b is not None else None for b in bone_lengths],
    }


def template_from_record(record: Any) -> Tuple[Skeleton, BoneLengths]:
    """
    Validate and decode a template record.

    Returns:
        (template, bone_lengths)

    Raises:
        InvalidImport: if the record is malformed
    """
    if not isinstance(record, dict):
        raise InvalidImport("Template record must be an object")

    raw_template = record.get(TEMPLATE_KEY, record.get(LEGACY_TEMPLATE_KEY))
    if not isinstance(raw_template, list):
        raise InvalidImport(f"'{TEMPLATE_KEY}' must be a list")
    if len(raw_template) > NUM_LANDMARKS:
        raise InvalidImport(
            f"Template has {len(raw_template)} landmarks, expected at most {NUM_LANDMARKS}"
        )

    template = as_skeleton(
        landmark_from_record(item, i) for i, item in enumerate(raw_template)
    )

    raw_lengths = record.get(BONE_LENGTHS_KEY)
    if raw_lengths is None:
        return template, compute_bone_lengths(template)

    if not isinstance(raw_lengths, list) or len(raw_lengths) != len(POSE_CONNECTIONS):
        raise InvalidImport(
            f"'{BONE_LENGTHS_KEY}' must be a list of {len(POSE_CONNECTIONS)} entries"
        )

    bone_lengths: BoneLengths = []
    for i, value in enumerate(raw_lengths):
        if value is None:
            bone_lengths.append(None)
        elif _is_number(value) and value >= 0:
            bone_lengths.append(float(value))
        else:
            raise InvalidImport(f"Bone length {i} is invalid: {value!r}")

    return template, bone_lengths


def save_template(
    path: Union[str, Path],
    template: Sequence[Optional[Landmark]],
    bone_lengths: Optional[Sequence[Optional[float]]] = None
) -> str:
    """Write a template to a JSON file. Returns the path written."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with open(path, "w") as f:
        json.dump(template_to_record(template, bone_lengths), f, indent=2)

    logger.info(f"Exported template to {path}")
    return str(path)


def load_template(path: Union[str, Path]) -> Tuple[Skeleton, BoneLengths]:
    """
    Read and validate a template JSON file.

    Raises:
        FileNotFoundError: if the file does not exist
        InvalidImport: if the content is not a valid template
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Template file not found: {path}")

    try:
        with open(path) as f:
            record = json.load(f)
    except json.JSONDecodeError as e:
        raise InvalidImport(f"Template file is not valid JSON: {e}") from e

    return template_from_record(record)
