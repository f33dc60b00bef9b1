"""
Type mapping cascade between model layers.

Conceptual business types refine into logical types, which refine into
PostgreSQL-flavoured physical types:

    Identifier -> UUID    -> uuid
    Text       -> VARCHAR -> varchar(255)
    Currency   -> DECIMAL -> numeric(18,2)

All functions are pure and total: unknown conceptual types default to
VARCHAR, unknown logical types pass through unchanged.
"""

from openmodel.domain.models.enums import Layer

DEFAULT_LOGICAL_TYPE = "VARCHAR"

CONCEPTUAL_TO_LOGICAL: dict[str, str] = {
    "text": "VARCHAR",
    "string": "VARCHAR",
    "email": "VARCHAR",
    "phone": "VARCHAR",
    "url": "VARCHAR",
    "image": "VARCHAR",
    "document": "VARCHAR",
    "location": "VARCHAR",
    "code": "CHAR",
    "longtext": "TEXT",
    "identifier": "UUID",
    "reference": "UUID",
    "number": "INTEGER",
    "integer": "INTEGER",
    "biginteger": "BIGINT",
    "decimal": "DECIMAL",
    "currency": "DECIMAL",
    "percentage": "DECIMAL",
    "float": "FLOAT",
    "date": "DATE",
    "datetime": "TIMESTAMP",
    "timestamp": "TIMESTAMP",
    "time": "TIME",
    "boolean": "BOOLEAN",
    "json": "JSON",
    "binary": "BLOB",
}

LOGICAL_TO_PHYSICAL: dict[str, str] = {
    "VARCHAR": "varchar(255)",
    "CHAR": "char(50)",
    "TEXT": "text",
    "UUID": "uuid",
    "INTEGER": "integer",
    "BIGINT": "bigint",
    "DECIMAL": "numeric(18,2)",
    "FLOAT": "double precision",
    "DATE": "date",
    "TIMESTAMP": "timestamp",
    "TIME": "time",
    "BOOLEAN": "boolean",
    "JSON": "jsonb",
    "BLOB": "bytea",
}

DEFAULT_LENGTHS: dict[str, int] = {
    "VARCHAR": 255,
    "CHAR": 50,
    "UUID": 36,
    "DECIMAL": 18,
}


def conceptual_to_logical(conceptual_type: str | None) -> str:
    """Map a conceptual type to its logical type, defaulting to VARCHAR."""
    if not conceptual_type:
        return DEFAULT_LOGICAL_TYPE
    key = conceptual_type.strip().replace(" ", "").replace("_", "").lower()
    return CONCEPTUAL_TO_LOGICAL.get(key, DEFAULT_LOGICAL_TYPE)


def logical_to_physical(logical_type: str | None) -> str | None:
    """Map a logical type to its physical type; unknown types pass through."""
    if not logical_type:
        return logical_type
    return LOGICAL_TO_PHYSICAL.get(logical_type.strip().upper(), logical_type)


def default_length(logical_type: str | None) -> int | None:
    """Default length for length-bearing logical types."""
    if not logical_type:
        return None
    return DEFAULT_LENGTHS.get(logical_type.strip().upper())


def next_layer_source(target_layer: Layer | str) -> Layer | None:
    """The layer whose type feeds `target_layer`, or None for conceptual."""
    return Layer(target_layer).source_layer


def derive_type(target_layer: Layer | str, source_type: str | None) -> str | None:
    """Derive the type for `target_layer` from the type one layer above."""
    layer = Layer(target_layer)
    if layer is Layer.LOGICAL:
        return conceptual_to_logical(source_type)
    if layer is Layer.PHYSICAL:
        return logical_to_physical(source_type)
    return source_type


def type_field(layer: Layer | str) -> str:
    """Name of the attribute column holding the type for `layer`."""
    return f"{Layer(layer).value}_type"


def derive_types(
    conceptual_type: str | None,
    logical_type: str | None = None,
    physical_type: str | None = None,
) -> tuple[str | None, str | None]:
    """
    Fill in missing logical and physical types.

    Explicit values are kept; only absent ones are derived from the
    layer above.

    Returns:
        (logical_type, physical_type)
    """
    if not logical_type and conceptual_type:
        logical_type = conceptual_to_logical(conceptual_type)
    if not physical_type and logical_type:
        physical_type = logical_to_physical(logical_type)
    return logical_type, physical_type
