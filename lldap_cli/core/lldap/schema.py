"""LLDAP schema management: custom attributes and extra LDAP object classes."""
from __future__ import annotations
from typing import Any, Dict, List, Literal

from .attributes import ATTRIBUTE_TYPES, find_schema_attribute
from .client import LldapClient
from .exceptions import NotFoundError, UsageError

SchemaKind = Literal["user", "group"]

_ATTRIBUTE_FIELDS = "attributes{name,attributeType,isList,isVisible,isEditable}"


def _capitalized(kind: SchemaKind) -> str:
    return kind.capitalize()


class SchemaService:
    """Service for reading and editing the user and group schemas.

    Every operation exists for both the user and group schema; the
    ``*_user_*`` / ``*_group_*`` methods are thin wrappers over the
    kind-parameterised ones.
    """

    def __init__(self, client: LldapClient):
        self.client = client

    # ─────────────────────────────────────────────────────────────────────
    # Attributes
    # ─────────────────────────────────────────────────────────────────────
    def get_attributes(self, kind: SchemaKind) -> List[Dict[str, Any]]:
        data = self.client.query(f"{{schema{{{kind}Schema{{{_ATTRIBUTE_FIELDS}}}}}}}")
        return data["schema"][f"{kind}Schema"]["attributes"]

    def _get_attribute(self, kind: SchemaKind, name: str) -> Dict[str, Any]:
        attr = find_schema_attribute(self.get_attributes(kind), name)
        if attr is None:
            raise NotFoundError(f"Attribute {name} is not part of {kind} schema.")
        return attr

    def get_attribute_type(self, kind: SchemaKind, name: str) -> str:
        return self._get_attribute(kind, name)["attributeType"]

    def is_attribute_list(self, kind: SchemaKind, name: str) -> bool:
        return bool(self._get_attribute(kind, name)["isList"])

    def add_attribute(self, kind: SchemaKind, name: str, attribute_type: str, is_list: bool = False,
                      is_visible: bool = False, is_editable: bool = False) -> bool:
        """Add a custom attribute to the user or group schema.

        Args:
            kind: ``"user"`` or ``"group"``
            name: Attribute name
            attribute_type: STRING, INTEGER, DATE_TIME or JPEG_PHOTO (any case)
            is_list: Attribute holds multiple values
            is_visible: Attribute is visible to non-admin users
            is_editable: Attribute is editable by the user

        Returns:
            The server's ``ok`` flag

        Raises:
            UsageError: If attribute_type is not a known type
        """
        attribute_type = attribute_type.upper()
        if attribute_type not in ATTRIBUTE_TYPES:
            raise UsageError(
                f"Invalid attribute type {attribute_type}; expected one of {', '.join(ATTRIBUTE_TYPES).lower()}"
            )
        self.client.validate_string_input(name, "attribute name")

        mutation = f"add{_capitalized(kind)}Attribute"
        query = (
            f"mutation {mutation}($name:String!,$type:AttributeType!,$isList:Boolean!,"
            f"$isVisible:Boolean!,$isEditable:Boolean!){{"
            f"{mutation}(name:$name,attributeType:$type,isList:$isList,"
            f"isVisible:$isVisible,isEditable:$isEditable){{ok}}}}"
        )
        variables = {
            "name": name,
            "type": attribute_type,
            "isList": is_list,
            "isVisible": is_visible,
            "isEditable": is_editable,
        }
        data = self.client.query(query, variables)
        return bool(data[mutation]["ok"])

    def delete_attribute(self, kind: SchemaKind, name: str) -> bool:
        mutation = f"delete{_capitalized(kind)}Attribute"
        query = f"mutation {mutation}($name:String!){{{mutation}(name:$name){{ok}}}}"
        data = self.client.query(query, {"name": name})
        return bool(data[mutation]["ok"])

    # ─────────────────────────────────────────────────────────────────────
    # Object classes
    # ─────────────────────────────────────────────────────────────────────
    def list_object_classes(self, kind: SchemaKind) -> List[str]:
        data = self.client.query(f"{{schema{{{kind}Schema{{extraLdapObjectClasses}}}}}}")
        return data["schema"][f"{kind}Schema"]["extraLdapObjectClasses"]

    def add_object_class(self, kind: SchemaKind, name: str) -> bool:
        self.client.validate_string_input(name, "object class")
        mutation = f"add{_capitalized(kind)}ObjectClass"
        query = f"mutation {mutation}($name:String!){{{mutation}(name:$name){{ok}}}}"
        data = self.client.query(query, {"name": name})
        return bool(data[mutation]["ok"])

    def delete_object_class(self, kind: SchemaKind, name: str) -> bool:
        mutation = f"delete{_capitalized(kind)}ObjectClass"
        query = f"mutation {mutation}($name:String!){{{mutation}(name:$name){{ok}}}}"
        data = self.client.query(query, {"name": name})
        return bool(data[mutation]["ok"])

    # ─────────────────────────────────────────────────────────────────────
    # Per-schema wrappers
    # ─────────────────────────────────────────────────────────────────────
    def get_user_attributes(self) -> List[Dict[str, Any]]:
        return self.get_attributes("user")

    def get_group_attributes(self) -> List[Dict[str, Any]]:
        return self.get_attributes("group")

    def get_user_attribute_type(self, name: str) -> str:
        return self.get_attribute_type("user", name)

    def get_group_attribute_type(self, name: str) -> str:
        return self.get_attribute_type("group", name)

    def is_user_attribute_list(self, name: str) -> bool:
        return self.is_attribute_list("user", name)

    def is_group_attribute_list(self, name: str) -> bool:
        return self.is_attribute_list("group", name)

    def add_user_attribute(self, name: str, attribute_type: str, **options: bool) -> bool:
        return self.add_attribute("user", name, attribute_type, **options)

    def add_group_attribute(self, name: str, attribute_type: str, **options: bool) -> bool:
        return self.add_attribute("group", name, attribute_type, **options)

    def delete_user_attribute(self, name: str) -> bool:
        return self.delete_attribute("user", name)

    def delete_group_attribute(self, name: str) -> bool:
        return self.delete_attribute("group", name)

    def list_user_object_classes(self) -> List[str]:
        return self.list_object_classes("user")

    def list_group_object_classes(self) -> List[str]:
        return self.list_object_classes("group")

    def add_user_object_class(self, name: str) -> bool:
        return self.add_object_class("user", name)

    def add_group_object_class(self, name: str) -> bool:
        return self.add_object_class("group", name)

    def delete_user_object_class(self, name: str) -> bool:
        return self.delete_object_class("user", name)

    def delete_group_object_class(self, name: str) -> bool:
        return self.delete_object_class("group", name)
