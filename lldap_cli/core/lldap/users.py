"""LLDAP user management operations."""
from __future__ import annotations
import re
from typing import Any, Dict, List, Optional

from .attributes import AttributeChange, find_schema_attribute, plan_attribute_change
from .client import LldapClient
from .exceptions import LldapError, NotFoundError
from .password import set_password

USER_FIELDS = "id creationDate uuid email displayName firstName lastName"

# Identifiers shaped like an email are resolved to a user ID
_EMAIL_IDENTIFIER_RE = re.compile(r"[A-Z0-9._%+-]+@[A-Z0-9.-]+\.[A-Z]{2,}", re.IGNORECASE)


def glob_to_regex(pattern: str) -> re.Pattern[str]:
    """Compile a ``*``/``?`` glob into a case-insensitive full-match regex."""
    escaped = re.escape(pattern).replace(r"\*", ".*").replace(r"\?", ".")
    return re.compile(f"^{escaped}$", re.IGNORECASE)


class UserService:
    """Service for managing LLDAP users."""

    def __init__(self, client: LldapClient):
        """Initialize user service.

        Args:
            client: LLDAP client (authenticates on first query)
        """
        self.client = client

    def get_users(self) -> List[Dict[str, Any]]:
        data = self.client.query(f"{{users{{{USER_FIELDS}}}}}")
        return data["users"]

    def list_user_ids(self) -> List[str]:
        return [u["id"] for u in self.get_users()]

    def list_user_emails(self) -> List[str]:
        return sorted(u["email"] for u in self.get_users())

    def search_users(self, pattern: str) -> List[Dict[str, Any]]:
        """Find users whose ID, email or display name matches a glob pattern.

        Args:
            pattern: Glob with ``*`` and ``?`` wildcards, case-insensitive

        Returns:
            Matching user representations
        """
        regex = glob_to_regex(pattern)
        return [
            u for u in self.get_users()
            if regex.match(u.get("id") or "")
            or regex.match(u.get("email") or "")
            or regex.match(u.get("displayName") or "")
        ]

    def get_users_by_group(self, group_name: str) -> List[Dict[str, Any]]:
        """Users belonging to a group (display name compared case-insensitively)."""
        data = self.client.query(f"{{users{{{USER_FIELDS} groups{{displayName}}}}}}")
        wanted = group_name.lower()
        users = []
        for user in data["users"]:
            groups = user.pop("groups", None) or []
            if any(g["displayName"].lower() == wanted for g in groups):
                users.append(user)
        return users

    def get_user_id_by_email(self, email: str) -> Optional[str]:
        for user in self.get_users():
            if user.get("email") == email:
                return user["id"]
        return None

    def resolve_user_id(self, identifier: str) -> str:
        """Resolve an email address or user ID to a user ID.

        Raises:
            NotFoundError: If identifier is an email no user has
        """
        if _EMAIL_IDENTIFIER_RE.fullmatch(identifier):
            user_id = self.get_user_id_by_email(identifier)
            if not user_id:
                raise NotFoundError(f"No user found with email: {identifier}")
            return user_id
        return identifier

    def get_user_groups(self, user_id: str) -> List[str]:
        query = "query getUserGroups($id:String!){user(userId:$id){groups{displayName}}}"
        data = self.client.query(query, {"id": user_id})
        return [g["displayName"] for g in data["user"]["groups"]]

    def list_user_attributes(self, user_id: str) -> List[str]:
        query = "query getUserInfo($id:String!){user(userId:$id){attributes{name}}}"
        data = self.client.query(query, {"id": user_id})
        return sorted(a["name"] for a in data["user"]["attributes"])

    def get_user_attribute_values(self, user_id: str, attribute: str) -> List[str]:
        query = "query getUserInfo($id:String!){user(userId:$id){attributes{name,value}}}"
        data = self.client.query(query, {"id": user_id})
        for attr in data["user"]["attributes"]:
            if attr["name"] == attribute:
                return list(attr.get("value") or [])
        return []

    def create_user(
        self,
        user_id: str,
        email: str,
        display_name: Optional[str] = None,
        first_name: Optional[str] = None,
        last_name: Optional[str] = None,
        avatar: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Create a user, optionally uploading an avatar image.

        Only the optional fields that were given are sent, so the avatar's
        empty-string placeholder is the single upload slot.

        Args:
            user_id: New user ID
            email: Email address
            display_name: Display name
            first_name: First name
            last_name: Last name
            avatar: Path of a JPEG file to upload

        Returns:
            Created user representation
        """
        self.client.validate_username(user_id)
        self.client.validate_email(email)

        user: Dict[str, Any] = {"id": user_id, "email": email}
        for key, value in (("displayName", display_name), ("firstName", first_name), ("lastName", last_name)):
            if value:
                self.client.validate_string_input(value, key)
                user[key] = value
        if avatar:
            user["avatar"] = ""

        query = (
            "mutation createUser($user:CreateUserInput!){"
            "createUser(user:$user){id email displayName firstName lastName avatar}}"
        )
        data = self.client.query(query, {"user": user}, upload_file=avatar)
        return data["createUser"]

    def delete_user(self, user_id: str) -> None:
        query = "mutation deleteUser($userId:String!){deleteUser(userId:$userId){ok}}"
        data = self.client.query(query, {"userId": user_id})
        if not data["deleteUser"]["ok"]:
            raise LldapError(f"Failed to delete user: {user_id}")

    def _get_schema_attribute(self, attribute: str) -> Optional[Dict[str, Any]]:
        query = "{schema{userSchema{attributes{name,attributeType,isList,isVisible,isEditable}}}}"
        data = self.client.query(query)
        return find_schema_attribute(data["schema"]["userSchema"]["attributes"], attribute)

    def update_user_attribute(self, mutation: str, user_id: str, attribute: str,
                              value: Optional[str] = None) -> str:
        """Apply a ``set``/``clear``/``add``/``del`` mutation to a user attribute.

        Returns:
            Human-readable result line
        """
        change: AttributeChange = plan_attribute_change(
            mutation,
            kind="user",
            target=user_id,
            attribute=attribute,
            schema_attr=self._get_schema_attribute(attribute),
            current_values=lambda: self.get_user_attribute_values(user_id, attribute),
            value=value,
        )
        query = "mutation updateUser($user:UpdateUserInput!){updateUser(user:$user){ok}}"
        self.client.query(query, {"user": change.as_input(user_id)})
        return change.message

    def set_password(self, user_id: str, password: str) -> None:
        """Set a user's password through ``lldap_set_password``.

        Authenticates first so the tool receives a current access token.
        """
        self.client.ensure_authenticated()
        set_password(
            user_id,
            password,
            self.client.config.http_url,
            self.client.get_token() or "",
            command=self.client.config.set_password_command,
        )

    def add_to_group(self, user_id: str, group_id: int) -> None:
        query = (
            "mutation addUserToGroup($userId:String!,$groupId:Int!)"
            "{addUserToGroup(userId:$userId,groupId:$groupId){ok}}"
        )
        self.client.query(query, {"userId": user_id, "groupId": group_id})

    def remove_from_group(self, user_id: str, group_id: int) -> None:
        query = (
            "mutation removeUserFromGroup($userId:String!,$groupId:Int!)"
            "{removeUserFromGroup(userId:$userId,groupId:$groupId){ok}}"
        )
        self.client.query(query, {"userId": user_id, "groupId": group_id})
