"""Execution context threaded through node invocations."""

from typing import Any, Dict, Iterator, Mapping, Optional

LOOP_VARIABLES = ("$item", "$index", "$iteration", "$length", "$isFirst", "$isLast")


class Credentials(Mapping[str, Dict[str, Any]]):
    """Per-run credential store, keyed by service name."""

    def __init__(self, entries: Optional[Mapping[str, Mapping[str, Any]]] = None):
        self._entries: Dict[str, Dict[str, Any]] = {
            service: dict(values) for service, values in (entries or {}).items()
        }

    def __getitem__(self, service: str) -> Dict[str, Any]:
        return self._entries[service]

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __repr__(self) -> str:
        # Never render secret values
        return f"Credentials(services={sorted(self._entries)})"

    def get_secret(self, service: str, field: str, default: Any = None) -> Any:
        """Get one secret of a service."""
        return self._entries.get(service, {}).get(field, default)

    def resolve(self, config_value: Any, service: str, field: str) -> Any:
        """Prefer a value from the node config, else the stored secret."""
        if config_value not in (None, ""):
            return config_value
        return self.get_secret(service, field)


class ExecutionContext:
    """The ``input`` / ``variables`` pair a node executes against."""

    def __init__(
        self,
        input: Optional[Dict[str, Any]] = None,
        variables: Optional[Dict[str, Any]] = None,
        credentials: Optional[Credentials] = None,
    ):
        self.input = input if input is not None else {}
        self.variables = variables if variables is not None else {}
        self.credentials = credentials if credentials is not None else Credentials()

    def __repr__(self) -> str:
        return (
            f"ExecutionContext(input_keys={sorted(self.input)}, "
            f"variable_keys={sorted(self.variables)})"
        )

    def with_variables(self, **bindings: Any) -> "ExecutionContext":
        """Return a new context whose variables are layered with ``bindings``."""
        return self.with_bindings(bindings)

    def with_bindings(self, bindings: Mapping[str, Any]) -> "ExecutionContext":
        """Like ``with_variables`` for keys that are not identifiers (``$item``)."""
        return ExecutionContext(
            input=self.input,
            variables={**self.variables, **bindings},
            credentials=self.credentials,
        )

    def loop_scope(self, item: Any, index: int, length: int) -> "ExecutionContext":
        """Context for one loop iteration."""
        return self.with_bindings({
            "$item": item,
            "$index": index,
            "$iteration": index + 1,
            "$length": length,
            "$isFirst": index == 0,
            "$isLast": index == length - 1,
        })
