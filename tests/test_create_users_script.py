import pytest

import scripts.create_users as create_users_script
from scripts.create_users import create_user, main
from simple_auth import SimpleAuth

from conftest import COMPANY_A, COMPANY_B


@pytest.fixture()
def auth(db) -> SimpleAuth:
    return SimpleAuth(db)


def test_first_admin_can_log_in(auth: SimpleAuth) -> None:
    result = create_user(auth, "owner@acme.com", "s3cret-pass", "Owner", COMPANY_A)

    assert result["success"] is True
    assert result["created"] is True
    login = auth.login("owner@acme.com", "s3cret-pass")
    assert login["user"]["role"] == "admin"
    assert auth.is_admin(login["user"]["id"])


def test_existing_user_is_promoted_not_duplicated(auth: SimpleAuth) -> None:
    agent = auth.register("staff@acme.com", "s3cret-pass", "Staff", COMPANY_A)

    result = create_user(auth, "staff@acme.com", "ignored-pass", "Staff", COMPANY_A, role="admin")

    assert result == {"success": True, "created": False, "user": {**agent["user"], "role": "admin"}}
    assert auth.is_admin(agent["user"]["id"])
    assert auth.login("staff@acme.com", "s3cret-pass")["success"] is True

    again = create_user(auth, "staff@acme.com", "ignored-pass", "Staff", COMPANY_A, role="admin")
    assert again["created"] is False


def test_user_of_another_company_is_left_alone(auth: SimpleAuth) -> None:
    other = auth.register("shared@acme.com", "s3cret-pass", "Shared", COMPANY_B)

    result = create_user(auth, "shared@acme.com", "s3cret-pass", "Shared", COMPANY_A)

    assert result["success"] is False
    assert not auth.is_admin(other["user"]["id"])


def test_invalid_registration_is_reported(auth: SimpleAuth) -> None:
    result = create_user(auth, "weak@acme.com", "short", "Weak", COMPANY_A)
    assert result == {"success": False, "error": "Password must be at least 8 characters"}


def test_main_registers_through_the_configured_client(db, monkeypatch) -> None:
    monkeypatch.setattr(create_users_script, "get_firestore_client", lambda: db)

    exit_code = main(["--email", "boss@acme.com", "--full-name", "Boss", "--company-id", COMPANY_A,
                      "--password", "s3cret-pass"])

    assert exit_code == 0
    assert SimpleAuth(db).get_user_by_email("boss@acme.com")["role"] == "admin"
    assert main(["--email", "bad@acme.com", "--full-name", "Bad", "--company-id", COMPANY_A,
                 "--password", "short"]) == 1


def test_main_rejects_unknown_role() -> None:
    with pytest.raises(SystemExit):
        main(["--email", "x@acme.com", "--full-name", "X", "--company-id", COMPANY_A, "--role", "owner"])
