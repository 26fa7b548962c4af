import httpx
import pytest
from httpx import ASGITransport

from formdesk.client import (
    AuthError,
    ForbiddenError,
    FormdeskClient,
    NetworkError,
    NotFoundError,
    SessionContext,
    ValidationError,
)
from formdesk.main import app

PASSWORD = "secret123"


@pytest.fixture
async def api(client, tmp_path):
    """FormdeskClient talking to the app in-process (``client`` installs the test database)."""
    session = SessionContext(path=tmp_path / "session.json")
    async with FormdeskClient("http://test/api/v1", session=session,
                              transport=ASGITransport(app=app)) as api:
        yield api


@pytest.mark.anyio
async def test_login_persists_session(api, admin):
    await api.login(admin.email, PASSWORD)
    assert api.session.is_authenticated
    assert api.session.user_id == admin.id

    restored = SessionContext.load(api.session.path)
    assert restored.access_token == api.session.access_token

    me = await api.me()
    assert me["email"] == admin.email


@pytest.mark.anyio
async def test_unauthorized_call_clears_session(api):
    api.session.set("bogus-token", {"id": "nobody"})
    assert api.session.path.exists()

    with pytest.raises(AuthError):
        await api.me()

    assert not api.session.is_authenticated
    assert not api.session.path.exists()


@pytest.mark.anyio
async def test_failed_login_keeps_existing_session(api, admin):
    await api.login(admin.email, PASSWORD)
    token = api.session.access_token

    with pytest.raises(AuthError):
        await api.login(admin.email, "wrong")

    assert api.session.access_token == token


@pytest.mark.anyio
async def test_error_mapping(api, admin, make_user):
    await api.login(admin.email, PASSWORD)

    with pytest.raises(NotFoundError):
        await api.get_form("missing")

    other = await make_user("other@example.com")
    with pytest.raises(ForbiddenError):
        await api.list_forms(other.id)

    with pytest.raises(ValidationError) as excinfo:
        await api.create_form(admin.id, {"title": "", "fields": []})
    assert excinfo.value.status_code == 422
    assert "title" in excinfo.value.field_errors


@pytest.mark.anyio
async def test_submit_form_validates_locally(api, created_form):
    def fail(request):
        raise AssertionError("no request expected")

    offline = FormdeskClient("http://test/api/v1", transport=httpx.MockTransport(fail))
    with pytest.raises(ValidationError) as excinfo:
        await offline.submit_form(created_form, "", {})
    await offline.aclose()

    required_id = created_form["fields"][0]["id"]
    assert excinfo.value.field_errors == {
        "user_name": "Please enter your name",
        required_id: "Please fill in the full name",
    }
    assert excinfo.value.status_code is None


@pytest.mark.anyio
async def test_submit_form_rejects_bad_submitter_email_locally(created_form):
    def fail(request):
        raise AssertionError("no request expected")

    required_id = created_form["fields"][0]["id"]
    async with FormdeskClient("http://test/api/v1", transport=httpx.MockTransport(fail)) as offline:
        with pytest.raises(ValidationError) as excinfo:
            await offline.submit_form(created_form, "Alice", {required_id: "Alice"}, user_email="not-an-email")
    assert excinfo.value.field_errors == {"user_email": "Please enter a valid email address"}


@pytest.mark.anyio
async def test_submit_and_browse_round_trip(api, admin, created_form):
    ids = {f["name"]: f["id"] for f in created_form["fields"]}

    form = await api.get_form(created_form["id"])
    submission = await api.submit_form(
        form,
        "Alice",
        {ids["full_name"]: "Alice", ids["toppings"]: ["Ham"]},
        files={ids["receipt"]: [("receipt.txt", b"paid", "text/plain")]},
        user_email="alice@example.com",
    )
    assert submission["files"][0]["field_id"] == ids["receipt"]

    await api.login(admin.email, PASSWORD)
    assert await api.submission_count(created_form["id"]) == 1

    rows = await api.admin_submissions(admin.id, field_value_search="ham")
    assert [r["id"] for r in rows] == [submission["id"]]

    content = await api.download_file(submission["files"][0]["id"])
    assert content == b"paid"

    await api.delete_submission(submission["id"])
    assert await api.admin_submissions(admin.id) == []


@pytest.mark.anyio
async def test_network_failure_raises_network_error():
    def refuse(request):
        raise httpx.ConnectError("connection refused", request=request)

    async with FormdeskClient("http://test/api/v1", transport=httpx.MockTransport(refuse)) as offline:
        with pytest.raises(NetworkError):
            await offline.get_form("anything")


def test_session_load_tolerates_bad_file(tmp_path):
    path = tmp_path / "session.json"
    path.write_text("{not json")
    session = SessionContext.load(path)
    assert not session.is_authenticated
    assert session.path == path
