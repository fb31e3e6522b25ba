from __future__ import annotations

FILTER_SCHEMA: dict = {
    "type": "object",
    "additionalProperties": False,
    "required": ["column", "operator"],
    "properties": {
        "column": {"type": "string", "minLength": 1},
        "operator": {"type": "string", "minLength": 1},
        "value": {},
    },
}

QUERY_SPEC_SCHEMA: dict = {
    "type": "object",
    "additionalProperties": False,
    "required": ["xField", "yField"],
    "properties": {
        "chartKind": {"type": "string", "enum": ["bar", "line", "area", "pie", "scatter"]},
        "xField": {"type": "string", "minLength": 1},
        "yField": {"type": "string", "minLength": 1},
        "aggregation": {"type": "string", "enum": ["sum", "avg", "count", "min", "max", "median"]},
        "groupByField": {"type": ["string", "null"], "minLength": 1},
        "sortBy": {"type": "string", "enum": ["x", "y", "none"]},
        "sortOrder": {"type": "string", "enum": ["asc", "desc", "none"]},
        "title": {"type": "string"},
        "filters": {"type": "array", "items": FILTER_SCHEMA},
        "xBin": {
            "type": ["string", "null"],
            "enum": ["auto", "year", "quarter", "month", "week", "day", "hour", None],
        },
    },
}

FILTER_LIST_SCHEMA: dict = {"type": "array", "items": FILTER_SCHEMA}
