import inspect
import re
from typing import Any, Callable

from pydantic import BaseModel, Field

_JSON_TYPES = {
    str: "string",
    int: "integer",
    float: "number",
    bool: "boolean",
    list: "array",
    tuple: "array",
    set: "array",
    dict: "object",
}

# Parameters the caller injects at execution time; never shown to the model.
_EXCLUDED_PARAMS = ("context",)


class Tool(BaseModel):
    """A tool the model may call.

    ``parameters`` is a JSON-schema object (``type``, ``properties``,
    ``required``).  ``func`` is kept for the caller's own dispatch and is
    never serialized or sent to the backend.
    """

    name: str
    description: str = ""
    parameters: dict = Field(default_factory=dict)
    func: Callable | None = Field(default=None, exclude=True)

    model_config = {"arbitrary_types_allowed": True}


def _parse_param_descriptions(func: Callable) -> dict[str, str]:
    """Read Google-style ``Args:`` entries from a docstring."""
    doc = inspect.getdoc(func) or ""
    descriptions: dict[str, str] = {}
    in_args = False
    for line in doc.splitlines():
        stripped = line.strip()
        if stripped in ("Args:", "Arguments:"):
            in_args = True
            continue
        if not in_args:
            continue
        if not stripped or (not line.startswith(" ") and stripped.endswith(":")):
            in_args = False
            continue
        match = re.match(r"^(\w+)\s*(?:\([^)]*\))?\s*:\s*(.+)$", stripped)
        if match:
            descriptions[match.group(1)] = match.group(2)
    return descriptions


def _build_parameters_schema(func: Callable) -> dict:
    signature = inspect.signature(func)
    descriptions = _parse_param_descriptions(func)
    properties: dict[str, dict[str, Any]] = {}
    required: list[str] = []
    for name, param in signature.parameters.items():
        if name in _EXCLUDED_PARAMS:
            continue
        annotation = param.annotation
        json_type = _JSON_TYPES.get(annotation, "string")
        prop: dict[str, Any] = {"type": json_type}
        if name in descriptions:
            prop["description"] = descriptions[name]
        properties[name] = prop
        if param.default is inspect.Parameter.empty:
            required.append(name)
    return {"type": "object", "properties": properties, "required": required}


def tool(func: Callable) -> Tool:
    """Decorator turning a plain function into a :class:`Tool`.

    The first paragraph of the docstring becomes the description and the
    signature becomes the parameter schema::

        @tool
        def read_file(path: str, limit: int = 100):
            \"\"\"Read a file from disk.

            Args:
                path: File to read.
                limit: Maximum number of lines.
            \"\"\"
    """
    doc = inspect.getdoc(func) or ""
    description = doc.split("\n\n", 1)[0].strip()
    return Tool(
        name=func.__name__,
        description=description,
        parameters=_build_parameters_schema(func),
        func=func,
    )
