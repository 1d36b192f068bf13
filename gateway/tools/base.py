"""Tool argument validation against the tool's JSON Schema."""

from __future__ import annotations

from typing import Any

import jsonschema

from contracts.tool_sdk import ToolProvider


def validate_args(tool: ToolProvider, args: dict[str, Any]) -> None:
    """Validate *args* against the tool's parameters schema.

    Raises ``jsonschema.ValidationError`` on invalid input.  A tool without a
    schema accepts anything.
    """
    if not tool.parameters:
        return
    jsonschema.validate(instance=args, schema=tool.parameters)
