"""Expression resolution shared by every node handler.

Grammar of a reference (the text inside ``{{ }}``)::

    reference  := input_path | node_ref | name
    input_path := ("$json." | "$input.") path
    node_ref   := "$node." node_id ["." path]
    path       := segment ("." segment)*

``resolve`` is lenient: anything it cannot resolve comes back unchanged.
``evaluate_reference`` is strict and raises ``DataValidationError``.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

import structlog

from taktak.executor.context import ExecutionContext
from taktak.executor.errors import DataValidationError

logger = structlog.get_logger()

_MISSING = object()

PLACEHOLDER_PATTERN = re.compile(r"^\{\{(.*)\}\}$", re.DOTALL)


class ReferenceKind(str, Enum):
    """Kinds of references the grammar knows."""
    NAME = "name"
    INPUT_PATH = "input_path"
    NODE_OUTPUT = "node_output"


@dataclass(frozen=True)
class Reference:
    """A parsed reference."""
    kind: ReferenceKind
    text: str
    name: str = ""
    path: Tuple[str, ...] = ()

    @property
    def dotted_path(self) -> str:
        return ".".join(self.path)


def unwrap_placeholder(value: str) -> Optional[str]:
    """Return the trimmed key of a ``{{key}}`` string, else None."""
    if value.startswith("{{") and value.endswith("}}") and len(value) >= 4:
        return value[2:-2].strip()
    return None


def parse_reference(text: str) -> Reference:
    """Parse reference text into a ``Reference``."""
    text = text.strip()
    for prefix in ("$json.", "$input."):
        if text.startswith(prefix):
            return Reference(
                kind=ReferenceKind.INPUT_PATH,
                text=text,
                path=tuple(text[len(prefix):].split(".")),
            )
    if text.startswith("$node."):
        parts = text[len("$node."):].split(".")
        return Reference(
            kind=ReferenceKind.NODE_OUTPUT,
            text=text,
            name=parts[0],
            path=tuple(p for p in parts[1:] if p),
        )
    return Reference(kind=ReferenceKind.NAME, text=text, name=text)


def _step(current: Any, part: str) -> Any:
    if isinstance(current, dict):
        return current.get(part)
    if isinstance(current, (list, tuple)):
        try:
            return current[int(part)]
        except (ValueError, IndexError):
            return None
    return getattr(current, part, None)


def get_path(obj: Any, path: str) -> Any:
    """Walk a dot path; returns None as soon as a segment is missing."""
    current = obj
    for part in path.split("."):
        if current is None:
            return None
        current = _step(current, part)
    return current


def lookup_name(name: str, context: ExecutionContext) -> Any:
    """``variables`` shadow ``input``; ``None`` counts as absent."""
    value = context.variables.get(name)
    if value is None:
        value = context.input.get(name)
    return _MISSING if value is None else value


class ExpressionEvaluator:
    """Resolve placeholders and references against an execution context."""

    def __init__(self):
        self.logger = logger.bind(component="expression_evaluator")

    def resolve(self, value: Any, context: ExecutionContext) -> Any:
        """Resolve a config value; unresolvable placeholders come back as-is."""
        if not isinstance(value, str):
            return value

        key = unwrap_placeholder(value)
        if key is None:
            return value

        resolved = lookup_name(key, context)
        if resolved is not _MISSING:
            return resolved

        reference = parse_reference(key)
        resolved = None
        if reference.kind == ReferenceKind.INPUT_PATH:
            resolved = get_path(context.input, reference.dotted_path)
        elif reference.kind == ReferenceKind.NODE_OUTPUT:
            resolved = context.variables.get(reference.name)
            if reference.path:
                resolved = get_path(resolved, reference.dotted_path)
        if resolved is not None:
            return resolved

        self.logger.debug("Unresolved expression", expression=value)
        return value

    def resolve_mapping(self, mapping: Dict[str, Any], context: ExecutionContext) -> Dict[str, Any]:
        """Resolve every value of a mapping."""
        return {key: self.resolve(value, context) for key, value in mapping.items()}

    def evaluate_reference(self, expression: str, context: ExecutionContext) -> Any:
        """Strictly evaluate a reference, with or without ``{{ }}``."""
        match = PLACEHOLDER_PATTERN.match(expression)
        text = match.group(1).strip() if match else expression.strip()
        return self._evaluate(parse_reference(text), context)

    def _evaluate(self, reference: Reference, context: ExecutionContext) -> Any:
        if reference.kind == ReferenceKind.INPUT_PATH:
            return self._strict_path(context.input, reference.dotted_path)

        if reference.kind == ReferenceKind.NODE_OUTPUT:
            output = context.variables.get(reference.name)
            if output is None:
                raise DataValidationError(
                    f"Node output not found: {reference.name}",
                    field="items",
                )
            if reference.path:
                return self._strict_path(output, reference.dotted_path)
            return output

        value = context.variables.get(reference.name)
        if value is None:
            raise DataValidationError(
                f"Cannot resolve expression: {reference.text}",
                field="items",
            )
        return value

    def _strict_path(self, obj: Any, path: str) -> List[Any]:
        current = obj
        for part in path.split("."):
            if current is None:
                raise DataValidationError(f"Cannot access property '{part}' of None")
            current = _step(current, part)

        if not isinstance(current, list):
            raise DataValidationError(
                f"Value at path '{path}' is not an array",
                actual_value=current,
            )
        return current


# Shared evaluator instance
evaluator = ExpressionEvaluator()
