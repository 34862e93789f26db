"""Translate card input schemas into tool parameter schemas.

Two outputs per schema: a JSON Schema object for tool discovery, and a Pydantic
model used at the transport boundary to coerce call arguments to the declared
types. Required-input enforcement stays in ``resolve_inputs`` so that missing
inputs are reported together in one error.
"""
from __future__ import annotations

from typing import Any, Dict, Literal, Optional, Tuple, Type, Union

from pydantic import BaseModel, ConfigDict, Field, create_model

from card_engines.cards.models import InputDefinition, InputSchema, InputType

_FORMATS: Dict[str, Dict[str, str]] = {
    "number": {"type": "number"},
    "boolean": {"type": "boolean"},
    "date": {"type": "string", "format": "date"},
    "url": {"type": "string", "format": "uri"},
    "email": {"type": "string", "format": "email"},
    "json": {"type": "object"},
}


def input_type_to_json_schema(input_type: InputType) -> Dict[str, str]:
    return dict(_FORMATS.get(input_type, {"type": "string"}))


def input_definition_to_property(definition: InputDefinition) -> Dict[str, Any]:
    prop: Dict[str, Any] = input_type_to_json_schema(definition.type)
    if definition.description:
        prop["description"] = definition.description
    if definition.enum:
        prop["enum"] = list(definition.enum)
    if definition.has_default:
        prop["default"] = definition.default
    if definition.sensitive:
        prop["writeOnly"] = True
    return prop


def input_schema_to_json_schema(schema: InputSchema, title: Optional[str] = None) -> Dict[str, Any]:
    """JSON Schema ``object`` for a card (or merged card + action) input schema.

    An input is listed as required only when it is required and has no default,
    since callers may omit anything a default covers.
    """
    properties = {name: input_definition_to_property(defn) for name, defn in schema.items()}
    required = [name for name, defn in schema.items() if defn.required and not defn.has_default]
    result: Dict[str, Any] = {"type": "object", "properties": properties}
    if required:
        result["required"] = required
    if title:
        result["title"] = title
    return result


def _python_type(definition: InputDefinition) -> Any:
    if definition.enum:
        return Literal[tuple(definition.enum)]  # type: ignore[valid-type]
    if definition.type == "number":
        return Union[int, float]
    if definition.type == "boolean":
        return bool
    if definition.type == "json":
        return Any
    return str


def input_schema_to_model(model_name: str, schema: InputSchema) -> Type[BaseModel]:
    """Pydantic model accepting every schema key as optional and ignoring unknown keys.

    Field names are positional placeholders aliased to the input names, so
    inputs such as ``json`` or ``schema`` never clash with BaseModel attributes.
    Dump with ``by_alias=True, exclude_unset=True``.
    """
    fields: Dict[str, Tuple[Any, Any]] = {}
    for index, (name, definition) in enumerate(schema.items()):
        fields[f"field_{index}"] = (
            Optional[_python_type(definition)],
            Field(default=None, alias=name, description=definition.description or None),
        )
    return create_model(  # type: ignore[call-overload]
        model_name,
        __config__=ConfigDict(extra="ignore", populate_by_name=False),
        **fields,
    )


def coerce_arguments(model: Type[BaseModel], arguments: Dict[str, Any]) -> Dict[str, Any]:
    """Validate ``arguments`` against ``model``; raises pydantic.ValidationError."""
    return model.model_validate(arguments).model_dump(by_alias=True, exclude_unset=True)


def coerce_text_inputs(
    schema: InputSchema,
    values: Dict[str, str],
    model: Optional[Type[BaseModel]] = None,
) -> Dict[str, Any]:
    """Type text-only values (query strings, CLI pairs) by their declared input type.

    Declared keys go through the schema model, so a ``string`` input such as
    ``02134`` stays text while ``number`` and ``boolean`` inputs are converted.
    Undeclared keys are kept as given. Raises pydantic.ValidationError.
    """
    model = model or input_schema_to_model("TextInputs", schema)
    declared = {key: value for key, value in values.items() if key in schema}
    coerced = {key: value for key, value in values.items() if key not in schema}
    coerced.update(coerce_arguments(model, declared))
    return coerced
