"""Exception hierarchy for toolbridge.

Errors fall into three groups by the time they happen:

- Compile-time errors (``SchemaError`` subclasses) abort bridge startup.
- Dispatch-time errors (``DispatchError`` subclasses) never leave the
  dispatcher; they are converted into an error payload that is fed back
  into the conversation so the model can react to them.
- Orchestration-time errors become a visible chat message.
"""

from typing import Any


class BridgeError(Exception):
    """Base class for all toolbridge errors."""


# --- Compile time ---


class SchemaError(BridgeError):
    """Base class for errors raised while compiling an API description."""


class ApiDescriptionError(SchemaError):
    """The API description could not be parsed into a usable document."""


class SchemaResolutionError(SchemaError):
    """A reference in the API description points at nothing resolvable."""

    def __init__(self, ref: str, reason: str = "reference not found") -> None:
        self.ref = ref
        self.reason = reason
        super().__init__(f"Cannot resolve '{ref}': {reason}")


class SchemaCycleError(SchemaError):
    """A chain of references leads back to itself."""

    def __init__(self, chain: list[str]) -> None:
        self.chain = list(chain)
        super().__init__("Reference cycle detected: " + " -> ".join(self.chain))


class ToolNameCollisionError(SchemaError):
    """Two operations derive the same tool name."""

    def __init__(self, tool_name: str, first: str, second: str) -> None:
        self.tool_name = tool_name
        super().__init__(
            f"Tool name '{tool_name}' derived from both {first} and {second}"
        )


# --- Dispatch time ---


class DispatchError(BridgeError):
    """Base class for recoverable errors raised while executing a tool call."""

    status_code: int | None = None

    def to_payload(self) -> dict[str, Any]:
        """Convert the error into the JSON payload returned to the model.

        Returns:
            dict: ``{"status": "error", "error": <message>}`` plus the
            upstream ``status_code`` when one is known.
        """
        payload: dict[str, Any] = {"status": "error", "error": str(self)}
        if self.status_code is not None:
            payload["status_code"] = self.status_code
        return payload


class UnknownToolError(DispatchError):
    """The model asked for a tool that is not in the registry."""

    def __init__(self, tool_name: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"Unknown tool: {tool_name}")


class ArgumentConversionError(DispatchError):
    """A tool argument could not be mapped onto the HTTP request."""


class TransportError(DispatchError):
    """The HTTP request failed at the network level or returned non-2xx."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


# --- Orchestration time ---


class IterationLimitExceeded(BridgeError):
    """The model kept requesting tools past the configured round-trip cap."""

    def __init__(self, limit: int) -> None:
        self.limit = limit
        super().__init__(f"Tool-call round trips exceeded the limit of {limit}")


class ConversationBusyError(BridgeError):
    """A user message was submitted while another one is still in flight."""
