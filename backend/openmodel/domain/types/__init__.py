"""
Type definitions for OpenModel.

Usage:
    from openmodel.domain.types import conceptual_to_logical, logical_to_physical

    conceptual_to_logical("Identifier")  # "UUID"
    logical_to_physical("UUID")          # "uuid"
"""

from .type_mapping import (
    CONCEPTUAL_TO_LOGICAL,
    DEFAULT_LENGTHS,
    LOGICAL_TO_PHYSICAL,
    conceptual_to_logical,
    default_length,
    derive_type,
    derive_types,
    logical_to_physical,
    next_layer_source,
    type_field,
)

__all__ = [
    "CONCEPTUAL_TO_LOGICAL",
    "DEFAULT_LENGTHS",
    "LOGICAL_TO_PHYSICAL",
    "conceptual_to_logical",
    "default_length",
    "derive_type",
    "derive_types",
    "logical_to_physical",
    "next_layer_source",
    "type_field",
]
