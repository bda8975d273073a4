"""
sdr_agent/tools/catalog.py — Name → (definition, parameter model, executor) registry.

The catalog is the only way the agent runs a tool:

    catalog.execute("score_lead", {"companyName": "Acme", "employees": 650})

Parameters are validated against the tool's pydantic model before the
executor sees them. execute() never raises; every failure comes back as a
ToolExecutionResult with success=False.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from pydantic import BaseModel, ValidationError
from sqlalchemy.orm import Session

from sdr_agent.tools.params import tool_parameters_schema

logger = logging.getLogger(__name__)

Executor = Callable[[Any], Any]


class ToolError(Exception):
    """Expected, user-facing tool failure (e.g. "Lead not found")."""


@dataclass(frozen=True)
class ToolDefinition:
    name: str
    description: str
    parameters: dict = field(default_factory=dict)     # JSON schema

    def to_provider_format(self) -> dict:
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": self.parameters,
            },
        }


@dataclass
class ToolExecutionResult:
    success: bool
    data: Any = None
    error: Optional[str] = None

    def to_dict(self) -> dict:
        if self.success:
            return {"success": True, "data": self.data}
        return {"success": False, "error": self.error}


@dataclass
class _RegisteredTool:
    definition: ToolDefinition
    params_model: Optional[type[BaseModel]]
    executor: Executor


def _format_validation_error(exc: ValidationError) -> str:
    problems = []
    for err in exc.errors():
        location = ".".join(str(part) for part in err.get("loc", ())) or "parameters"
        problems.append(f"{location}: {err.get('msg', 'invalid value')}")
    return "; ".join(problems)


class ToolCatalog:
    def __init__(self, session: Optional[Session] = None):
        # Executors writing through `session` each run inside their own savepoint
        self.session = session
        self._tools: dict[str, _RegisteredTool] = {}

    def register(
        self,
        definition: ToolDefinition,
        executor: Executor,
        params_model: Optional[type[BaseModel]] = None,
    ) -> ToolDefinition:
        """
        Register a tool.

        With a `params_model`, incoming parameters are validated into that
        model and, if the definition carries no schema, the schema is derived
        from it. Without one, the executor receives the raw dict.
        """
        if definition.name in self._tools:
            raise ValueError(f"Tool '{definition.name}' is already registered")
        if params_model is not None and not definition.parameters:
            definition = ToolDefinition(
                name=definition.name,
                description=definition.description,
                parameters=tool_parameters_schema(params_model),
            )
        self._tools[definition.name] = _RegisteredTool(definition, params_model, executor)
        return definition

    def get(self, name: str) -> Optional[ToolDefinition]:
        tool = self._tools.get(name)
        return tool.definition if tool else None

    def execute(self, name: str, params: Optional[dict] = None) -> ToolExecutionResult:
        """
        Validate `params` and run the tool.

        Returns:
            success=True with the executor's data, or success=False with an
            error message for unknown tools, invalid parameters, ToolError or
            any unexpected exception inside the executor.
        """
        tool = self._tools.get(name)
        if tool is None:
            logger.warning("Unknown tool requested: %s", name)
            return ToolExecutionResult(success=False, error=f"Tool '{name}' not found")

        if params is not None and not isinstance(params, dict):
            return ToolExecutionResult(
                success=False, error=f"Parameters for '{name}' must be a JSON object"
            )

        try:
            if tool.params_model is None:
                validated = dict(params or {})
            else:
                validated = tool.params_model.model_validate(params or {})
        except ValidationError as e:
            message = f"Invalid parameters for '{name}': {_format_validation_error(e)}"
            logger.warning(message)
            return ToolExecutionResult(success=False, error=message)

        logger.info("Executing tool %s", name)
        try:
            data = self._run(tool, validated)
        except ToolError as e:
            logger.warning("Tool %s failed: %s", name, e)
            return ToolExecutionResult(success=False, error=str(e))
        except Exception as e:
            logger.warning("Tool %s raised %s: %s", name, type(e).__name__, e, exc_info=True)
            return ToolExecutionResult(success=False, error=str(e) or f"Tool '{name}' failed")

        return ToolExecutionResult(success=True, data=data)

    def _run(self, tool: _RegisteredTool, validated: Any) -> Any:
        """Run the executor; a failure rolls its writes back and leaves the session usable."""
        if self.session is None:
            return tool.executor(validated)
        with self.session.begin_nested():
            return tool.executor(validated)

    def to_provider_format(self) -> list[dict]:
        return [tool.definition.to_provider_format() for tool in self._tools.values()]

    def describe(self) -> str:
        """One "- name: description" line per tool, for the system prompt."""
        return "\n".join(
            f"- {tool.definition.name}: {tool.definition.description}"
            for tool in self._tools.values()
        )

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    # Defined last: inside the class body `list` refers to this method afterwards
    def list(self) -> list[ToolDefinition]:
        return [tool.definition for tool in self._tools.values()]
