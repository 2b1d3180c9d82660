"""Base tool interface shared by every invokable tool."""

from abc import ABC, abstractmethod
from typing import Any, Optional


class BaseTool(ABC):
    """Abstract base class for tools held by the registry."""

    #: Optional guidance for the assistant on how to use this tool's answer.
    answer_instructions: Optional[str] = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Tool name; unique in the registry after case-folding."""

    @property
    @abstractmethod
    def description(self) -> str:
        """Short description of what this tool does."""

    @property
    def input_schema(self) -> dict[str, Any]:
        """JSON Schema for the tool's input. Defaults to an empty schema."""
        return {}

    @abstractmethod
    async def run(self, input: dict[str, Any]) -> Any:
        """Execute the tool with the given arguments."""

    def spec(self) -> dict[str, Any]:
        """Descriptor for catalog enumeration by the orchestrator."""
        return {
            "name": self.name,
            "description": self.description,
            "inputSchema": self.input_schema,
        }
