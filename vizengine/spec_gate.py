"""Gate for untrusted chart specs coming from the chat layer or HTTP clients."""
from __future__ import annotations

from typing import Any

from jsonschema import ValidationError, validate
from pydantic import ValidationError as ModelValidationError

from vizengine.errors import SpecRejected
from vizengine.models import Filter, QuerySpec
from vizengine.spec_schemas import FILTER_LIST_SCHEMA, QUERY_SPEC_SCHEMA


def validate_schema(payload: Any, schema: dict[str, Any]) -> None:
    try:
        validate(instance=payload, schema=schema)
    except ValidationError as exc:
        location = ".".join(str(part) for part in exc.absolute_path) or "<root>"
        raise SpecRejected(f"Invalid spec at {location}: {exc.message}") from exc


def parse_query_spec(payload: Any) -> QuerySpec:
    validate_schema(payload, QUERY_SPEC_SCHEMA)
    try:
        return QuerySpec.model_validate(payload)
    except ModelValidationError as exc:
        raise SpecRejected(f"Invalid spec: {exc.errors()[0]['msg']}") from exc


def parse_filters(payload: Any) -> tuple[Filter, ...]:
    validate_schema(payload, FILTER_LIST_SCHEMA)
    try:
        return tuple(Filter.model_validate(item) for item in payload)
    except ModelValidationError as exc:
        raise SpecRejected(f"Invalid filter: {exc.errors()[0]['msg']}") from exc
