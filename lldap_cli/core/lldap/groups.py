"""LLDAP group management operations."""
from __future__ import annotations
from typing import Any, Dict, List, Optional

from .attributes import find_schema_attribute, plan_attribute_change
from .client import LldapClient
from .exceptions import LldapError, NotFoundError


class GroupService:
    """Service for managing LLDAP groups."""

    def __init__(self, client: LldapClient):
        """Initialize group service.

        Args:
            client: LLDAP client (authenticates on first query)
        """
        self.client = client

    def get_groups(self) -> List[Dict[str, Any]]:
        data = self.client.query("{groups{id creationDate uuid displayName}}")
        return data["groups"]

    def get_group_id(self, name: str) -> int:
        """Look up a group's numeric ID by display name.

        Raises:
            NotFoundError: If no group has that name
        """
        for group in self.get_groups():
            if group["displayName"] == name:
                return group["id"]
        raise NotFoundError(f"Failed to retrieve group ID for group: {name}")

    def _group_users(self, group_name: str, field: str) -> List[str]:
        group_id = self.get_group_id(group_name)
        query = f"query listUsersByGroupName($id:Int!){{group:group(groupId:$id){{users{{{field}}}}}}}"
        data = self.client.query(query, {"id": group_id})
        return [u[field] for u in data["group"]["users"]]

    def list_user_ids_by_group_name(self, group_name: str) -> List[str]:
        return self._group_users(group_name, "id")

    def list_user_emails_by_group_name(self, group_name: str) -> List[str]:
        return self._group_users(group_name, "email")

    def list_group_attributes(self, group_id: int) -> List[str]:
        query = "query getGroupInfo($id:Int!){group(groupId:$id){attributes{name}}}"
        data = self.client.query(query, {"id": group_id})
        return sorted(a["name"] for a in data["group"]["attributes"])

    def get_group_attribute_values(self, group_id: int, attribute: str) -> List[str]:
        query = "query getGroupInfo($id:Int!){group(groupId:$id){attributes{name,value}}}"
        data = self.client.query(query, {"id": group_id})
        for attr in data["group"]["attributes"]:
            if attr["name"] == attribute:
                return list(attr.get("value") or [])
        return []

    def create_group(self, name: str) -> int:
        """Create a group and return its ID."""
        self.client.validate_string_input(name, "group name")
        data = self.client.query("mutation createGroup($group:String!){createGroup(name:$group){id}}", {"group": name})
        return data["createGroup"]["id"]

    def delete_group(self, name: str) -> None:
        group_id = self.get_group_id(name)
        query = "mutation deleteGroup($id:Int!){deleteGroup(groupId:$id){ok}}"
        data = self.client.query(query, {"id": group_id})
        if not data["deleteGroup"]["ok"]:
            raise LldapError(f"Failed to delete group: {name}")

    def _get_schema_attribute(self, attribute: str) -> Optional[Dict[str, Any]]:
        query = "{schema{groupSchema{attributes{name,attributeType,isList,isVisible,isEditable}}}}"
        data = self.client.query(query)
        return find_schema_attribute(data["schema"]["groupSchema"]["attributes"], attribute)

    def update_group_attribute(self, mutation: str, group_name: str, attribute: str,
                               value: Optional[str] = None) -> str:
        """Apply a ``set``/``clear``/``add``/``del`` mutation to a group attribute.

        Args:
            mutation: Mutation type
            group_name: Group display name
            attribute: Attribute name (must exist in the group schema)
            value: Value for set/add/del

        Returns:
            Human-readable result line
        """
        group_id = self.get_group_id(group_name)
        change = plan_attribute_change(
            mutation,
            kind="group",
            target=group_name,
            attribute=attribute,
            schema_attr=self._get_schema_attribute(attribute),
            current_values=lambda: self.get_group_attribute_values(group_id, attribute),
            value=value,
        )
        query = "mutation updateGroup($group:UpdateGroupInput!){updateGroup(group:$group){ok}}"
        self.client.query(query, {"group": change.as_input(group_id)})
        return change.message
