"""
Result envelope helpers shared by every host action.

Every action returns ``{"success": True, ...data}`` or
``{"success": False, "error": message, ...extra}`` so the bridge can decode
all of them the same way.
"""
from typing import Any, Dict, List, Mapping, Optional

ActionResult = Dict[str, Any]

_TYPE_NAMES = {
    bool: "boolean",
    int: "number",
    float: "number",
    str: "string",
    list: "array",
    tuple: "array",
    dict: "object",
}


def success(**data: Any) -> ActionResult:
    result: ActionResult = {"success": True}
    result.update(data)
    return result


def error(message: str, **extra: Any) -> ActionResult:
    result: ActionResult = {"success": False, "error": message}
    result.update(extra)
    return result


def type_name(value: Any) -> str:
    return _TYPE_NAMES.get(type(value), type(value).__name__)


def validate_params(params: Mapping[str, Any], schema: Mapping[str, Mapping[str, Any]]) -> Optional[List[str]]:
    """
    Check ``params`` against a ``{name: {"required": bool, "type": str}}`` schema.

    Returns:
        A list of problems, or None when the parameters are acceptable.
    """
    errors: List[str] = []
    for key, rule in schema.items():
        value = params.get(key)
        if rule.get("required") and value is None:
            errors.append(f"Missing required param: {key}")
            continue
        expected = rule.get("type")
        if value is not None and expected:
            actual = type_name(value)
            if actual != expected:
                errors.append(f"{key} must be {expected}, got {actual}")
    return errors or None
