"""Host-agnostic types for tool declarations and tool results.

These types describe tools in the shape the OpenClaw host expects when a
plugin registers them, without depending on any host SDK.
"""

from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional


@dataclass
class ToolSchema:
    """Host-agnostic tool declaration.

    Attributes:
        name: Unique tool name (e.g., 'wagl_recall').
        description: Human-readable description of what the tool does.
        parameters: JSON Schema object describing the tool's parameters.
        label: Optional short display label shown by the host UI.
    """
    name: str
    description: str
    parameters: Dict[str, Any] = field(default_factory=dict)
    label: Optional[str] = None


@dataclass
class ToolResponse:
    """Result of executing a tool, as returned to the host.

    Attributes:
        content: Typed content blocks (e.g., [{"type": "text", "text": "..."}]).
        is_error: Whether this response represents a failure.
    """
    content: List[Dict[str, Any]] = field(default_factory=list)
    is_error: bool = False

    @classmethod
    def from_text(cls, text: str) -> 'ToolResponse':
        """Create a successful single-block text response."""
        return cls(content=[{'type': 'text', 'text': text}])

    @classmethod
    def from_error(cls, message: str) -> 'ToolResponse':
        """Create an error response carrying a single text block."""
        return cls(content=[{'type': 'text', 'text': message}], is_error=True)

    @property
    def text(self) -> str:
        """Concatenated text of all text blocks."""
        return "".join(
            block.get('text', '') for block in self.content
            if block.get('type') == 'text'
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to the wire shape the host expects from a tool call."""
        return {'content': list(self.content), 'isError': self.is_error}


# Plugin-side executor: receives tool arguments, returns a ToolResponse.
ToolExecutor = Callable[[Dict[str, Any]], Awaitable[ToolResponse]]

# Host-side execute callable: receives (tool_call_id, params), returns wire dict.
HostToolExecute = Callable[[str, Dict[str, Any]], Awaitable[Dict[str, Any]]]
