"""Schema Validator - Checks configured field mappings against a project's schema."""

from __future__ import annotations

import logging
from collections.abc import Iterable

from ticketsync.github.models import ProjectFieldSchema
from ticketsync.sync.exceptions import MissingMapping, SchemaValidationError
from ticketsync.sync.models import FieldMapping

logger = logging.getLogger("ticketsync.sync.schema")


def find_missing_mappings(
    schema: ProjectFieldSchema, mappings: Iterable[FieldMapping]
) -> list[MissingMapping]:
    """List every (ticket value, option) pair the project cannot satisfy."""
    missing: list[MissingMapping] = []
    for mapping in mappings:
        field_exists = schema.field_name(mapping.field_name) is not None
        available = schema.options(mapping.field_name)
        for ticket_value, option in mapping.values.items():
            if schema.has_option(mapping.field_name, option):
                continue
            missing.append(
                MissingMapping(
                    field_name=mapping.field_name,
                    ticket_value=ticket_value,
                    option=option,
                    available=available,
                    field_exists=field_exists,
                )
            )
    return missing


def validate_field_mappings(schema: ProjectFieldSchema, mappings: Iterable[FieldMapping]) -> None:
    """Validate that every mapped option exists in its project field.

    Makes no remote calls. Empty mapping tables validate trivially.

    Raises:
        SchemaValidationError: Listing every missing mapping at once.
    """
    missing = find_missing_mappings(schema, mappings)
    if missing:
        logger.error("Field mapping validation failed: %d missing option(s)", len(missing))
        raise SchemaValidationError(missing)
    logger.debug("Field mappings validated against %r", schema)
