import logging
from enum import Enum
from typing import Iterable, Optional

from pydantic import BaseModel, ConfigDict


class FieldType(str, Enum):
    STRING = 'string'
    NUMERIC = 'numeric'
    BOOLEAN = 'boolean'
    ARRAY = 'array'
    DATETIME = 'datetime'


class FieldDescriptor(BaseModel):
    """
    A field the host can map a form field onto. `key` uses the same `<tag>___<name>` convention the mapper parses,
    so whatever the host submits with this key ends up in the right entity bucket.
    """

    model_config = ConfigDict(frozen=True)

    key: str
    label: str
    type: FieldType = FieldType.STRING
    required: bool = False


def translate_field_type(
    remote_type: str,
    type_map: dict[str, FieldType],
    excluded: Iterable[str] = (),
    logger: Optional[logging.Logger] = None,
) -> Optional[FieldType]:
    """
    Translates a CRM's field type into a FieldType. Returns None if the type is excluded or isn't one we know
    about, in which case the caller should skip the field.
    """
    remote_type = (remote_type or '').lower()
    if remote_type in excluded:
        return None
    field_type = type_map.get(remote_type)
    if field_type is None and logger:
        logger.info(f'Skipping field with unsupported type {remote_type!r}')
    return field_type
