"""CLI smoke tests using Flask's CliRunner."""

from cutquote.cli import DEFAULT_MATERIALS
from cutquote.models import Material, SessionToken, User


def test_system_init_is_idempotent(app, db_session):
    runner = app.test_cli_runner()

    first = runner.invoke(args=["system", "init"])
    second = runner.invoke(args=["system", "init"])

    assert first.exit_code == 0
    assert "PASS Created 4 materials" in first.output
    assert "PASS Created 0 materials" in second.output
    assert db_session.query(Material).count() == len(DEFAULT_MATERIALS)


def test_create_user_and_issue_token(app, db_session):
    runner = app.test_cli_runner()

    result = runner.invoke(args=[
        "users", "create", "--email", "Ops@Example.com", "--name", "Ops", "--role", "operator",
    ])
    assert result.exit_code == 0
    user = db_session.query(User).filter_by(email="ops@example.com").one()
    assert user.role == "operator"

    result = runner.invoke(args=["users", "issue-token", "--email", "ops@example.com"])
    assert result.exit_code == 0
    token = result.output.strip().splitlines()[-1]
    assert len(token) > 20
    assert db_session.query(SessionToken).filter_by(user_id=user.id).count() == 1


def test_duplicate_user_fails(app, db_session, customer):
    result = app.test_cli_runner().invoke(args=[
        "users", "create", "--email", customer.email, "--name", "Again",
    ])
    assert result.exit_code != 0
    assert "already exists" in result.output


def test_materials_create_rejects_negative_price(app, db_session):
    result = app.test_cli_runner().invoke(args=[
        "materials", "create", "--name", "Copper", "--thickness", "1", "--price", "-3",
    ])
    assert result.exit_code != 0
    assert db_session.query(Material).count() == 0


def test_revoked_tokens_stop_working(app, client, db_session, operator, headers_for):
    headers = headers_for(operator)
    assert client.get("/api/quotes/search", headers=headers).status_code == 200

    result = app.test_cli_runner().invoke(args=["users", "revoke-tokens", "--email", operator.email])

    assert "Revoked 1 token(s)" in result.output
    assert client.get("/api/quotes/search", headers=headers).status_code == 401
