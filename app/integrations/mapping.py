"""
Splits a flat form submission into one bucket per CRM entity.

Keys are named `<tag>___<name>`, e.g. `contact___email` or `deal___12`. A numeric name is the id of a custom field
in the CRM, those have to be submitted separately once the entity exists, so they're kept apart from the ordinary
properties.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, NamedTuple, Optional

KEY_SEPARATOR = '___'


class EntityTag(str, Enum):
    CONTACT = 'contact'
    ORGANIZATION = 'organization'
    DEAL = 'deal'


# Older forms were built with the British spelling
TAG_ALIASES = {'organisation': EntityTag.ORGANIZATION}


class FieldKey(NamedTuple):
    tag: EntityTag
    name: str

    @property
    def custom_field_id(self) -> Optional[int]:
        return int(self.name) if self.name.isascii() and self.name.isdigit() else None


def parse_field_key(key: str, tags: Iterable[EntityTag] = tuple(EntityTag)) -> Optional[FieldKey]:
    """
    Parses `<tag>___<name>` into a FieldKey. Returns None when the key is malformed or the tag isn't one of `tags`.
    """
    if not isinstance(key, str):
        return None
    raw_tag, sep, name = key.partition(KEY_SEPARATOR)
    if not sep or not name:
        return None
    raw_tag = raw_tag.lower()
    try:
        tag = TAG_ALIASES.get(raw_tag) or EntityTag(raw_tag)
    except ValueError:
        return None
    if tag not in tags:
        return None
    return FieldKey(tag, name)


@dataclass
class EntityBucket:
    properties: dict[str, Any] = field(default_factory=dict)
    custom_fields: list[tuple[int, Any]] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not self.properties and not self.custom_fields


class FieldMapper:
    """
    Turns a submission payload into {EntityTag: EntityBucket}. Mapping never fails: keys that can't be parsed, or
    whose tag the target doesn't support, are dropped.

    `list_delimiter` is how the target wants multi-value fields sent. When it's set, list values for the tags in
    `delimited_tags` are joined as `||a||b||` (with `||` as the delimiter). When it's None lists are passed through.
    """

    def __init__(
        self,
        tags: Iterable[EntityTag] = tuple(EntityTag),
        *,
        list_delimiter: Optional[str] = None,
        delimited_tags: Iterable[EntityTag] = (EntityTag.CONTACT,),
    ):
        self.tags = tuple(tags)
        self.list_delimiter = list_delimiter
        self.delimited_tags = tuple(delimited_tags)

    def serialise_value(self, tag: EntityTag, value: Any) -> Any:
        if self.list_delimiter is not None and tag in self.delimited_tags and isinstance(value, (list, tuple)):
            d = self.list_delimiter
            return d + d.join(str(v) for v in value) + d
        return value

    def map(self, payload: dict[str, Any]) -> dict[EntityTag, EntityBucket]:
        buckets = {tag: EntityBucket() for tag in self.tags}
        for key, value in payload.items():
            field_key = parse_field_key(key, self.tags)
            if not field_key:
                continue
            bucket = buckets[field_key.tag]
            value = self.serialise_value(field_key.tag, value)
            if (cf_id := field_key.custom_field_id) is not None:
                bucket.custom_fields.append((cf_id, value))
            else:
                bucket.properties[field_key.name] = value
        return buckets
