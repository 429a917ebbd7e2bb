"""Flattening of nested event payloads into span attributes.

Signalling payloads arrive as arbitrarily nested mappings. OpenTelemetry
attributes are flat, so nested keys are joined with dots::

    {"offer": {"sdp": "v=0", "type": "offer"}, "version": 1}

becomes::

    {"matrix.event.offer.sdp": "v=0", "matrix.event.offer.type": "offer",
     "matrix.event.version": 1}
"""

from __future__ import annotations

import dataclasses
from collections.abc import Mapping
from typing import Any, Union

from callspan.core.exceptions import DepthExceededError

AttributeValue = Union[str, int, float]

DEFAULT_MAX_DEPTH = 10
VOIP_EVENT_PREFIX = "matrix.event."


def _is_leaf(value: Any) -> bool:
    # bool is an int subclass but is not carried over as a payload leaf
    return isinstance(value, (str, int, float)) and not isinstance(value, bool)


def flatten_attributes(
    payload: Mapping[str, Any],
    prefix: str = "",
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> dict[str, AttributeValue]:
    """Flatten ``payload`` into a single-level mapping of dotted keys.

    Only string and numeric leaves are kept; nested mappings are descended
    into and every other value (sequences, ``None``, objects) is dropped.

    Args:
        payload: The nested mapping to flatten. The root sits at depth 0.
        prefix: String prepended to every produced key.
        max_depth: Deepest nesting level that may be entered.

    Returns:
        A new dict of flattened attributes.

    Raises:
        DepthExceededError: If a mapping nested deeper than ``max_depth``
            is found. The error names the prefix of that mapping.
    """
    flat: dict[str, AttributeValue] = {}
    stack: list[tuple[Mapping[str, Any], str, int]] = [(payload, prefix, 0)]

    while stack:
        node, node_prefix, depth = stack.pop()
        if depth > max_depth:
            raise DepthExceededError(node_prefix, max_depth)

        for key, value in node.items():
            if _is_leaf(value):
                flat[f"{node_prefix}{key}"] = value
            elif isinstance(value, Mapping):
                stack.append((value, f"{node_prefix}{key}.", depth + 1))

    return flat


def flatten_voip_event(payload: Any, max_depth: int = DEFAULT_MAX_DEPTH) -> dict[str, AttributeValue]:
    """Flatten a signalling event (mapping or dataclass) under ``matrix.event.``."""
    if dataclasses.is_dataclass(payload) and not isinstance(payload, type):
        payload = dataclasses.asdict(payload)
    if not isinstance(payload, Mapping):
        return {}
    return flatten_attributes(payload, VOIP_EVENT_PREFIX, max_depth)
