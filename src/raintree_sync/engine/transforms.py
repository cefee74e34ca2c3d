"""
Field mapping utilities for building update payloads between the two orgs.
"""

import logging
from datetime import date, datetime
from typing import Any, Dict, List

from ..models.records import FieldSpec, ObservedRecord

logger = logging.getLogger(__name__)


class FieldTransformer:
    """
    Builds the update body written onto the losing side from the winning
    side's current values.
    """

    @staticmethod
    def apply_default(value: Any, spec: FieldSpec) -> Any:
        """Replace a missing or blank value with the field's default."""
        if value is None or value == "":
            return spec.default
        return value

    @staticmethod
    def coerce(value: Any, data_type: str) -> Any:
        """
        Convert a value to the Salesforce type of its field.

        Numbers arriving as text become floats and dates become
        ``YYYY-MM-DD`` strings. A value that cannot be converted is logged
        and passed through unchanged.
        """
        if value is None:
            return value

        try:
            if data_type == "number":
                if isinstance(value, (int, float)) and not isinstance(value, bool):
                    return value
                return float(value)
            elif data_type == "date":
                if isinstance(value, datetime):
                    return value.date().isoformat()
                if isinstance(value, date):
                    return value.isoformat()
                return str(value)
            elif data_type == "string":
                return str(value)
            else:
                logger.warning(f"Unknown field type: {data_type}")
                return value

        except (ValueError, TypeError) as e:
            logger.error(f"Could not convert '{value}' to {data_type}: {e}")
            return value

    @staticmethod
    def map_fields(source_data: Dict[str, Any], field_specs: List[FieldSpec]) -> Dict[str, Any]:
        """
        Map a record's values onto the synced field set.

        Args:
            source_data: Field values from the winning record
            field_specs: Fields synced for the record kind

        Returns:
            Update payload; fields with neither a value nor a default are omitted
        """
        target_data = {}

        for spec in field_specs:
            value = FieldTransformer.apply_default(source_data.get(spec.name), spec)
            if value is None:
                logger.debug(f"Field '{spec.name}' has no value, leaving it out of the update")
                continue
            target_data[spec.name] = FieldTransformer.coerce(value, spec.data_type)

        return target_data

    @staticmethod
    def build_payload(record: ObservedRecord) -> Dict[str, Any]:
        """Update payload carrying ``record``'s values for its kind's field set."""
        return FieldTransformer.map_fields(record.payload, record.kind.sync_fields)

    @staticmethod
    def changed_fields(payload: Dict[str, Any], target: ObservedRecord) -> List[str]:
        """Names of payload fields whose value differs on the target record."""
        return [name for name, value in payload.items() if target.payload.get(name) != value]
