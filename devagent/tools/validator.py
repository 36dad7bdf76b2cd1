from __future__ import annotations

from typing import Any, Dict

from ..errors import ParameterValidationError


class ParameterValidator:
    """
    Validates action parameters against a tool's parameter schema.

    Supports the JSON-schema subset used by tool definitions:
    - "properties" with a per-field "type"
    - "required" list
    - "additionalProperties": false to reject unknown fields
    """

    _TYPES = {
        "string": str,
        "integer": int,
        "number": (int, float),
        "boolean": bool,
        "object": dict,
        "array": list,
    }

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def validate(self, tool_name: str, schema: Dict[str, Any], params: Any) -> Dict[str, Any]:

        if not isinstance(params, dict):
            raise ParameterValidationError(
                f"Parameters for '{tool_name}' must be an object, got {type(params).__name__}."
            )

        properties = schema.get("properties", {}) or {}

        self._check_required(tool_name, schema, params)
        self._check_unknown(tool_name, schema, properties, params)
        self._check_types(tool_name, properties, params)

        return params

    # ------------------------------------------------------------------
    # Validation Steps
    # ------------------------------------------------------------------

    def _check_required(self, tool_name: str, schema: Dict[str, Any], params: Dict[str, Any]) -> None:
        missing = [k for k in schema.get("required", []) if k not in params]
        if missing:
            raise ParameterValidationError(
                f"Missing required parameters for '{tool_name}': {missing}"
            )

    def _check_unknown(
        self,
        tool_name: str,
        schema: Dict[str, Any],
        properties: Dict[str, Any],
        params: Dict[str, Any],
    ) -> None:
        if schema.get("additionalProperties", True):
            return

        extra = [k for k in params if k not in properties]
        if extra:
            raise ParameterValidationError(
                f"Unknown parameters for '{tool_name}': {extra}"
            )

    def _check_types(self, tool_name: str, properties: Dict[str, Any], params: Dict[str, Any]) -> None:

        for key, spec in properties.items():

            if key not in params:
                continue  # optional and not present

            expected = spec.get("type") if isinstance(spec, dict) else None
            if expected is None:
                continue

            value = params[key]

            if not self._matches_type(expected, value):
                raise ParameterValidationError(
                    f"Parameter '{key}' of '{tool_name}' expected type {expected}, "
                    f"got {type(value).__name__}"
                )

    # ------------------------------------------------------------------
    # Type Matching
    # ------------------------------------------------------------------

    def _matches_type(self, expected: Any, value: Any) -> bool:

        # ["string", "null"] style unions
        if isinstance(expected, list):
            return any(self._matches_type(e, value) for e in expected)

        if expected == "null":
            return value is None

        python_type = self._TYPES.get(expected)
        if python_type is None:
            return True  # Unknown type → allow

        # bool is an int subclass; never accept it as a number
        if expected in ("integer", "number") and isinstance(value, bool):
            return False

        return isinstance(value, python_type)
