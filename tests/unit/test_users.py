import pytest

from lldap_cli.core.lldap import users as users_module
from lldap_cli.core.lldap.exceptions import LldapError, NotFoundError, ValidationError
from lldap_cli.core.lldap.users import UserService, glob_to_regex
from tests.conftest import FakeClient

USERS = [
    {"id": "jsmith", "email": "john@example.com", "displayName": "John Smith"},
    {"id": "jdoe", "email": "jane@example.com", "displayName": "Jane Doe"},
    {"id": "admin", "email": "admin@example.com", "displayName": "Administrator"},
]

USER_SCHEMA = {"schema": {"userSchema": {"attributes": [
    {"name": "title", "attributeType": "STRING", "isList": False, "isVisible": True, "isEditable": True},
    {"name": "mailAlias", "attributeType": "STRING", "isList": True, "isVisible": True, "isEditable": False},
]}}}


def service(*responses):
    client = FakeClient(*responses)
    return UserService(client), client


def test_list_user_ids_and_sorted_emails():
    svc, _ = service({"users": USERS}, {"users": USERS})
    assert svc.list_user_ids() == ["jsmith", "jdoe", "admin"]
    assert svc.list_user_emails() == ["admin@example.com", "jane@example.com", "john@example.com"]


@pytest.mark.parametrize(
    "pattern, expected",
    [("j*", ["jsmith", "jdoe"]), ("*DOE", ["jdoe"]), ("?doe", ["jdoe"]), ("*@example.com", ["jsmith", "jdoe", "admin"]),
     ("nobody", [])],
)
def test_search_users(pattern, expected):
    svc, _ = service({"users": USERS})
    assert [u["id"] for u in svc.search_users(pattern)] == expected


def test_glob_escapes_regex_metacharacters():
    assert glob_to_regex("a.b").match("a.b")
    assert not glob_to_regex("a.b").match("axb")


def test_get_users_by_group_is_case_insensitive():
    data = {"users": [
        {"id": "jsmith", "groups": [{"displayName": "Admins"}]},
        {"id": "jdoe", "groups": [{"displayName": "users"}]},
    ]}
    svc, _ = service(data)
    assert svc.get_users_by_group("admins") == [{"id": "jsmith"}]


def test_resolve_user_id_passes_plain_ids_through():
    svc, client = service()
    assert svc.resolve_user_id("jsmith") == "jsmith"
    assert client.queries == []


def test_resolve_user_id_by_email():
    svc, _ = service({"users": USERS})
    assert svc.resolve_user_id("jane@example.com") == "jdoe"


def test_resolve_unknown_email():
    svc, _ = service({"users": USERS})
    with pytest.raises(NotFoundError, match="No user found with email: ghost@example.com"):
        svc.resolve_user_id("ghost@example.com")


def test_get_user_groups():
    svc, client = service({"user": {"groups": [{"displayName": "admins"}, {"displayName": "users"}]}})
    assert svc.get_user_groups("jsmith") == ["admins", "users"]
    assert client.queries[0][1] == {"id": "jsmith"}


def test_attribute_listing_and_values():
    attributes = {"user": {"attributes": [{"name": "title", "value": ["Engineer"]}, {"name": "avatar", "value": []}]}}
    svc, _ = service(attributes, attributes, attributes)
    assert svc.list_user_attributes("jsmith") == ["avatar", "title"]
    assert svc.get_user_attribute_values("jsmith", "title") == ["Engineer"]
    assert svc.get_user_attribute_values("jsmith", "missing") == []


class TestCreateUser:
    def test_sends_only_given_fields(self):
        svc, client = service({"createUser": {"id": "alice"}})
        assert svc.create_user("alice", "alice@example.com", display_name="Alice") == {"id": "alice"}

        _, variables, upload = client.queries[0]
        assert variables == {"user": {"id": "alice", "email": "alice@example.com", "displayName": "Alice"}}
        assert upload is None

    def test_avatar_reserves_upload_slot(self):
        svc, client = service({"createUser": {"id": "alice"}})
        svc.create_user("alice", "alice@example.com", avatar="/tmp/alice.jpg")

        _, variables, upload = client.queries[0]
        assert variables["user"]["avatar"] == ""
        assert upload == "/tmp/alice.jpg"

    @pytest.mark.parametrize("user_id, email", [("bad id", "a@example.com"), ("alice", "not-an-email")])
    def test_invalid_input_never_reaches_server(self, user_id, email):
        svc, client = service()
        with pytest.raises(ValidationError):
            svc.create_user(user_id, email)
        assert client.queries == []


def test_delete_user():
    svc, client = service({"deleteUser": {"ok": True}})
    svc.delete_user("jsmith")
    assert client.queries[0][1] == {"userId": "jsmith"}


def test_delete_user_not_ok():
    svc, _ = service({"deleteUser": {"ok": False}})
    with pytest.raises(LldapError, match="Failed to delete user: jsmith"):
        svc.delete_user("jsmith")


def test_update_user_attribute_set():
    svc, client = service(USER_SCHEMA, {"updateUser": {"ok": True}})
    message = svc.update_user_attribute("set", "jsmith", "title", "Engineer")

    assert message == "Attribute set for user: jsmith, attribute: title, value: Engineer"
    assert client.queries[1][1] == {"user": {"id": "jsmith", "insertAttributes": {"name": "title", "value": "Engineer"}}}


def test_update_user_attribute_add_to_list():
    current = {"user": {"attributes": [{"name": "mailAlias", "value": ["a@example.com"]}]}}
    svc, client = service(USER_SCHEMA, current, {"updateUser": {"ok": True}})
    svc.update_user_attribute("add", "jsmith", "mailAlias", "b@example.com")
    assert client.queries[2][1]["user"]["insertAttributes"]["value"] == ["a@example.com", "b@example.com"]


def test_update_unknown_attribute():
    svc, _ = service(USER_SCHEMA)
    with pytest.raises(NotFoundError, match="Attribute shoe_size is not part of user schema."):
        svc.update_user_attribute("set", "jsmith", "shoe_size", "42")


def test_group_membership_mutations():
    svc, client = service({"addUserToGroup": {"ok": True}}, {"removeUserFromGroup": {"ok": True}})
    svc.add_to_group("jsmith", 3)
    svc.remove_from_group("jsmith", 3)
    assert [q[1] for q in client.queries] == [{"userId": "jsmith", "groupId": 3}] * 2
    assert "addUserToGroup" in client.queries[0][0]
    assert "removeUserFromGroup" in client.queries[1][0]


def test_set_password_authenticates_then_runs_tool(monkeypatch):
    calls = []
    monkeypatch.setattr(users_module, "set_password", lambda *args, **kwargs: calls.append((args, kwargs)))
    svc, client = service()

    svc.set_password("jsmith", "Secret-pass1")

    assert client.authenticated == 1
    args, kwargs = calls[0]
    assert args == ("jsmith", "Secret-pass1", "http://localhost:17170", client.config.token)
    assert kwargs == {"command": "lldap_set_password"}
