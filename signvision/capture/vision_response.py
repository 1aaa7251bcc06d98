"""
Vision Service Response Parsing.

The vision service answers each uploaded frame with:

    {
        "detections": [
            {"label": "stop_sign", "bbox": [x, y, w, h],
             "confidence": 0.92, "color": "red"},
            ...
        ],
        "processing_time_ms": 412.0
    }

Malformed records are dropped one by one; a bad record never discards
the rest of the frame.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, List, Optional, Union

from loguru import logger

from signvision.core.contracts import Detection, MalformedDetectionError


@dataclass
class VisionResponse:
    """Detections parsed from one vision-service reply."""
    detections: List[Detection] = field(default_factory=list)
    dropped: int = 0
    processing_time_ms: Optional[float] = None

    success: bool = True
    error_message: Optional[str] = None


def parse_response(payload: Union[str, bytes, dict, None]) -> VisionResponse:
    """
    Parse a vision-service reply.

    Args:
        payload: Decoded JSON object, or raw JSON text

    Returns:
        VisionResponse; ``success`` is False only when the payload as a
        whole is unusable, in which case it carries no detections
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except json.JSONDecodeError as e:
            logger.warning(f"Vision response is not valid JSON: {e}")
            return VisionResponse(success=False, error_message=f"invalid JSON: {e}")

    if not isinstance(payload, dict):
        logger.warning(f"Vision response is not an object: {type(payload).__name__}")
        return VisionResponse(success=False, error_message="response is not an object")

    raw_detections = payload.get('detections') or []
    if not isinstance(raw_detections, list):
        logger.warning("Vision response 'detections' is not a list")
        return VisionResponse(success=False, error_message="'detections' is not a list")

    response = VisionResponse(processing_time_ms=_optional_float(payload.get('processing_time_ms')))

    for i, record in enumerate(raw_detections):
        try:
            response.detections.append(Detection.from_dict(record))
        except MalformedDetectionError as e:
            response.dropped += 1
            logger.warning(f"Dropping detection {i}: {e}")

    if response.processing_time_ms is not None:
        logger.debug(f"Frame processed in {response.processing_time_ms:.0f}ms")

    return response


def _optional_float(value: Any) -> Optional[float]:
    try:
        return float(value) if value is not None else None
    except (TypeError, ValueError):
        return None
