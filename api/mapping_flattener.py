"""Flatten Elasticsearch index mappings into dotted field paths.

The ``_mapping`` endpoint returns one tree per index and document type::

    {index: {"mappings": {doc_type: {"properties": {...}}}}}

Object fields nest under ``properties``; multi-fields (e.g. a ``keyword``
sub-field of a ``text`` field) nest under ``fields``. Every node with a string
``type`` becomes one FieldDescriptor keyed by its dotted path.
"""

from __future__ import annotations

from enum import Enum

from connector_models import FieldDescriptor

META_FIELD_PREFIX = "_"


class FieldCategory(str, Enum):
    number = "number"
    string = "string"
    date = "date"
    nested = "nested"


_TYPE_CATEGORIES: dict[str, FieldCategory] = {
    "float": FieldCategory.number,
    "double": FieldCategory.number,
    "integer": FieldCategory.number,
    "long": FieldCategory.number,
    "scaled_float": FieldCategory.number,
    "string": FieldCategory.string,
    "text": FieldCategory.string,
    "date": FieldCategory.date,
    "nested": FieldCategory.nested,
}


def field_category(field_type: str) -> FieldCategory | None:
    """Return the UI category of an engine field type, or None if it has none."""
    return _TYPE_CATEGORIES.get(field_type)


def flatten_mapping(
    mapping_response: dict,
    type_filter: str | None = None,
) -> dict[str, FieldDescriptor]:
    """Return every leaf field of every index and type, keyed by dotted path.

    The same path seen under several indices or types keeps the last one
    visited. Callers must not rely on the order of the result.
    """
    fields: dict[str, FieldDescriptor] = {}
    for index in mapping_response.values():
        if not isinstance(index, dict):
            continue
        mappings = index.get("mappings")
        if not isinstance(mappings, dict):
            continue
        for doc_type in mappings.values():
            if not isinstance(doc_type, dict):
                continue
            properties = doc_type.get("properties")
            if isinstance(properties, dict):
                _collect_fields(properties, (), type_filter, fields)
    return fields


def _collect_fields(
    nodes: dict,
    path: tuple[str, ...],
    type_filter: str | None,
    fields: dict[str, FieldDescriptor],
) -> None:
    for key, node in nodes.items():
        if not isinstance(node, dict):
            continue
        node_path = path + (key,)

        # A node may carry a type and nested definitions at the same time.
        if isinstance(node.get("properties"), dict):
            _collect_fields(node["properties"], node_path, type_filter, fields)
        if isinstance(node.get("fields"), dict):
            _collect_fields(node["fields"], node_path, type_filter, fields)

        field_type = node.get("type")
        if isinstance(field_type, str) and _should_add_field(key, field_type, type_filter):
            name = ".".join(node_path)
            fields[name] = FieldDescriptor(path=name, type=field_type)


def _should_add_field(key: str, field_type: str, type_filter: str | None) -> bool:
    """Hide meta-fields and apply the optional type filter."""
    if key.startswith(META_FIELD_PREFIX):
        return False
    if not type_filter:
        return True
    if type_filter == field_type:
        return True
    category = field_category(field_type)
    return category is not None and category.value == type_filter
