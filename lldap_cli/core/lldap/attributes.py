"""Attribute mutation planning shared by user and group updates.

A mutation (``set``, ``clear``, ``add``, ``del``) is checked against the
attribute's schema entry and the current values, then turned into the
``insertAttributes`` / ``removeAttributes`` input of an update mutation.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Literal, Optional, Sequence, Union

from .exceptions import NotFoundError, UsageError

MutationType = Literal["set", "clear", "add", "del"]
MUTATION_TYPES = ("set", "clear", "add", "del")
ATTRIBUTE_TYPES = ("STRING", "INTEGER", "DATE_TIME", "JPEG_PHOTO")


@dataclass(frozen=True)
class AttributeChange:
    """Planned update of one attribute."""
    attribute: str
    message: str
    values: Union[str, List[str], None] = None
    remove: bool = False

    def as_input(self, entity_id: Any) -> Dict[str, Any]:
        """Build the ``UpdateUserInput`` / ``UpdateGroupInput`` payload."""
        if self.remove:
            return {"id": entity_id, "removeAttributes": self.attribute}
        return {"id": entity_id, "insertAttributes": {"name": self.attribute, "value": self.values}}


def find_schema_attribute(attributes: Sequence[Dict[str, Any]], name: str) -> Optional[Dict[str, Any]]:
    for attr in attributes:
        if attr.get("name") == name:
            return attr
    return None


def plan_attribute_change(
    mutation: str,
    *,
    kind: str,
    target: str,
    attribute: str,
    schema_attr: Optional[Dict[str, Any]],
    current_values: Callable[[], List[str]],
    value: Optional[str] = None,
) -> AttributeChange:
    """Validate a mutation and compute the resulting attribute change.

    Args:
        mutation: One of ``set``, ``clear``, ``add``, ``del``
        kind: ``"user"`` or ``"group"``, for messages
        target: User ID or group name, for messages
        attribute: Attribute name
        schema_attr: Schema entry for the attribute, or None if unknown
        current_values: Fetches the attribute's current values (only called
            by mutations that need them)
        value: Value for ``set``, ``add`` and ``del``

    Returns:
        The planned change, including its result message

    Raises:
        NotFoundError: Unknown attribute, nothing to clear, or value absent
        UsageError: Mutation does not fit the attribute or lacks a value
    """
    if schema_attr is None:
        raise NotFoundError(f"Attribute {attribute} is not part of {kind} schema.")
    if mutation not in MUTATION_TYPES:
        raise UsageError(f"Unknown mutation type: {mutation}")

    is_list = bool(schema_attr.get("isList"))
    if mutation == "set" and is_list:
        raise UsageError(f"Attribute {attribute} is a list and cannot be modified using the {mutation} mutation.")
    if mutation in ("add", "del") and not is_list:
        raise UsageError(f"Attribute {attribute} is not a list and cannot be modified using the {mutation} mutation.")
    if mutation in ("add", "del") and not value:
        raise UsageError(f"Value is required for {mutation} mutation")

    cleared = f"Attribute cleared for {kind}: {target}, attribute: {attribute}"

    if mutation == "set":
        message = f"Attribute set for {kind}: {target}, attribute: {attribute}"
        if value and schema_attr.get("attributeType") != "JPEG_PHOTO":
            message += f", value: {value}"
        return AttributeChange(attribute, message, values=value or "")

    current = list(current_values())

    if mutation == "clear":
        if not current:
            raise NotFoundError(f"Attribute {attribute} has no value set for {kind} {target}, so nothing to clear.")
        return AttributeChange(attribute, cleared, remove=True)

    if mutation == "add":
        return AttributeChange(
            attribute,
            f"Attribute list value added for {kind}: {target}, attribute: {attribute}, value: {value}",
            values=current + [value],
        )

    if value not in current:
        raise NotFoundError(
            f"Attribute {attribute} has no listed value {value} for {kind} {target}, so no value to delete."
        )
    remaining = [v for v in current if v != value]
    if not remaining:
        # Deleting the last value clears the attribute
        return AttributeChange(attribute, cleared, remove=True)
    return AttributeChange(
        attribute,
        f"Attribute list value deleted for {kind}: {target}, attribute: {attribute}, value: {value}",
        values=remaining,
    )
