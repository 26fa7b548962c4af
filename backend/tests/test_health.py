import pytest

from formdesk.api.health import health

pytestmark = pytest.mark.integration


def test_health():
    assert health()["status"] == "ok"


@pytest.mark.anyio
async def test_readyz_db_ok(client):
    res = await client.get('/readyz')
    assert res.status_code == 200
    assert res.json() == {"status": "ready"}


@pytest.mark.anyio
async def test_request_id_is_echoed(client):
    res = await client.get('/health', headers={'X-Request-ID': 'abc123'})
    assert res.headers['X-Request-ID'] == 'abc123'
