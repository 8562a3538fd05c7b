import re

import pytest
from httpx import AsyncClient

HEX8 = re.compile(r"^[0-9a-f]{8}$")


@pytest.mark.asyncio
async def test_create_link(client: AsyncClient):
    response = await client.post("/createlinks", json={
        "original_link": "https://example.com",
        "owner": "alice"
    })
    assert response.status_code == 201
    data = response.json()
    assert data["message"] == "Link created successfully"
    assert HEX8.match(data["short_link"])

    link = (await client.get(f"/link/{data['short_link']}")).json()
    assert link["original_link"] == "https://example.com"
    assert link["owner"] == "alice"
    assert link["clicks"] == []
    assert "expiry_date" not in link


@pytest.mark.asyncio
async def test_create_link_with_expiry_and_remarks(client: AsyncClient, create_link):
    short_link = await create_link(
        "alice",
        "https://example.com/sale",
        remarks="black friday",
        expiry_date="2030-01-01T00:00:00"
    )

    link = (await client.get(f"/link/{short_link}")).json()
    assert link["remarks"] == "black friday"
    assert link["expiry_date"] == "2030-01-01T00:00:00"


@pytest.mark.asyncio
async def test_create_link_requires_owner(client: AsyncClient):
    response = await client.post("/createlinks", json={"original_link": "https://example.com"})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_short_links_are_unique(client: AsyncClient, create_link):
    codes = [await create_link("alice", "https://example.com") for _ in range(5)]
    assert len(set(codes)) == len(codes)
    assert all(HEX8.match(code) for code in codes)


@pytest.mark.asyncio
async def test_list_links(client: AsyncClient, create_link):
    first = await create_link("alice", "https://example.com/a")
    second = await create_link("bob", "https://example.com/b")

    all_links = (await client.get("/links")).json()
    assert {link["short_link"] for link in all_links} == {first, second}

    alice_links = (await client.get("/links", params={"username": "alice"})).json()
    assert [link["short_link"] for link in alice_links] == [first]

    assert (await client.get("/links", params={"username": "nobody"})).json() == []

    unfiltered = (await client.get("/links", params={"username": ""})).json()
    assert {link["short_link"] for link in unfiltered} == {first, second}


@pytest.mark.asyncio
async def test_fetch_modes_return_same_data(client: AsyncClient, create_link):
    short_link = await create_link("alice")

    by_code = await client.get(f"/link/{short_link}")
    by_owner = await client.get(f"/link/alice/{short_link}")
    assert by_code.status_code == 200
    assert by_owner.status_code == 200
    assert by_code.json() == by_owner.json()


@pytest.mark.asyncio
async def test_fetch_with_wrong_owner(client: AsyncClient, create_link):
    short_link = await create_link("alice")

    response = await client.get(f"/link/bob/{short_link}")
    assert response.status_code == 404
    assert response.json()["detail"] == "Link not found"


@pytest.mark.asyncio
async def test_fetch_missing_link(client: AsyncClient):
    assert (await client.get("/link/deadbeef")).status_code == 404
    assert (await client.get("/link/alice/deadbeef")).status_code == 404


@pytest.mark.asyncio
async def test_update_link(client: AsyncClient, create_link):
    short_link = await create_link("alice", remarks="old")

    response = await client.put(f"/link/alice/{short_link}", json={
        "original_link": "https://example.org",
        "remarks": "new"
    })
    assert response.status_code == 200
    link = response.json()
    assert link["original_link"] == "https://example.org"
    assert link["remarks"] == "new"
    assert link["short_link"] == short_link

    fetched = (await client.get(f"/link/{short_link}")).json()
    assert fetched["original_link"] == "https://example.org"


@pytest.mark.asyncio
async def test_update_link_ignores_protected_fields(client: AsyncClient, create_link):
    short_link = await create_link("alice")

    response = await client.put(f"/link/alice/{short_link}", json={
        "short_link": "00000000",
        "owner": "mallory",
        "remarks": "ok"
    })
    assert response.status_code == 200
    link = response.json()
    assert link["short_link"] == short_link
    assert link["owner"] == "alice"
    assert link["remarks"] == "ok"


@pytest.mark.asyncio
async def test_update_missing_link(client: AsyncClient, create_link):
    short_link = await create_link("alice")

    response = await client.put(f"/link/bob/{short_link}", json={"remarks": "x"})
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_delete_link(client: AsyncClient, create_link):
    short_link = await create_link("alice")

    response = await client.delete(f"/link/alice/{short_link}")
    assert response.status_code == 200
    assert response.json()["message"] == "Link deleted successfully"

    assert (await client.get(f"/link/{short_link}")).status_code == 404
    assert (await client.delete(f"/link/alice/{short_link}")).status_code == 404


@pytest.mark.asyncio
async def test_delete_link_wrong_owner(client: AsyncClient, create_link):
    short_link = await create_link("alice")

    assert (await client.delete(f"/link/bob/{short_link}")).status_code == 404
    assert (await client.get(f"/link/{short_link}")).status_code == 200


@pytest.mark.asyncio
async def test_add_click(client: AsyncClient, create_link):
    short_link = await create_link("alice")

    response = await client.post(f"/editclick/{short_link}", json={
        "clickData": {"ip_addr": "1.2.3.4", "user_device": "chrome"}
    })
    assert response.status_code == 200
    data = response.json()
    assert data["message"] == "Click data added successfully"
    assert len(data["clicks"]) == 1
    assert data["clicks"][0]["ip_addr"] == "1.2.3.4"
    assert data["clicks"][0]["user_device"] == "chrome"
    assert data["clicks"][0]["click_time"]


@pytest.mark.asyncio
async def test_clicks_append_in_order(client: AsyncClient, create_link):
    short_link = await create_link("alice")
    devices = ["chrome", "firefox", "safari"]

    for index, device in enumerate(devices, start=1):
        response = await client.post(f"/editclick/{short_link}", json={
            "clickData": {"ip_addr": f"10.0.0.{index}", "user_device": device}
        })
        clicks = response.json()["clicks"]
        assert len(clicks) == index
        assert [click["user_device"] for click in clicks] == devices[:index]

    link = (await client.get(f"/link/alice/{short_link}")).json()
    assert [click["ip_addr"] for click in link["clicks"]] == ["10.0.0.1", "10.0.0.2", "10.0.0.3"]


@pytest.mark.asyncio
async def test_add_click_missing_link(client: AsyncClient):
    response = await client.post("/editclick/deadbeef", json={
        "clickData": {"ip_addr": "1.2.3.4", "user_device": "chrome"}
    })
    assert response.status_code == 404


@pytest.mark.asyncio
async def test_add_click_requires_fields(client: AsyncClient, create_link):
    short_link = await create_link("alice")

    response = await client.post(f"/editclick/{short_link}", json={"clickData": {"ip_addr": "1.2.3.4"}})
    assert response.status_code == 422


@pytest.mark.asyncio
async def test_get_ip(client: AsyncClient):
    response = await client.get("/get-ip", headers={"X-Forwarded-For": "203.0.113.7"})
    assert response.status_code == 200
    assert response.json()["ip"] == "203.0.113.7"


@pytest.mark.asyncio
async def test_root(client: AsyncClient):
    response = await client.get("/")
    assert response.status_code == 200
    assert response.json()["message"] == "API is running!"


@pytest.mark.asyncio
async def test_cors_allows_any_origin_with_credentials(client: AsyncClient):
    response = await client.options("/links", headers={
        "Origin": "https://frontend.example.com",
        "Access-Control-Request-Method": "PUT"
    })
    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "https://frontend.example.com"
    assert response.headers["access-control-allow-credentials"] == "true"


@pytest.mark.asyncio
async def test_create_link_hides_internal_errors(client: AsyncClient, monkeypatch):
    from src.links import services

    async def exhausted(*args, **kwargs):
        raise services.ShortCodeGenerationError("no free codes")

    monkeypatch.setattr(services, "generate_unique_short_code", exhausted)

    response = await client.post("/createlinks", json={
        "original_link": "https://example.com",
        "owner": "alice"
    })
    assert response.status_code == 500
    assert response.json()["detail"] == "Server error"


@pytest.mark.asyncio
async def test_create_link_regenerates_code_taken_at_insert(client: AsyncClient, create_link, monkeypatch):
    from src.links import services

    taken = await create_link("bob", "https://example.com/bob")
    real_generator = services.generate_unique_short_code
    calls = []

    async def stale_first(session, owner, original_link, max_attempts):
        calls.append(max_attempts)
        if len(calls) == 1:
            # Код, который успел занять параллельный запрос
            return taken, 1
        return await real_generator(session, owner, original_link, max_attempts)

    monkeypatch.setattr(services, "generate_unique_short_code", stale_first)

    response = await client.post("/createlinks", json={
        "original_link": "https://example.com",
        "owner": "alice"
    })
    assert response.status_code == 201
    short_link = response.json()["short_link"]
    assert short_link != taken
    assert HEX8.match(short_link)
    assert len(calls) == 2
    assert calls[1] == calls[0] - 1

    assert (await client.get(f"/link/bob/{taken}")).json()["original_link"] == "https://example.com/bob"


@pytest.mark.asyncio
async def test_create_link_shares_attempt_budget(db_session, create_link, monkeypatch):
    from src.links import services

    taken = await create_link("bob")
    calls = []

    async def always_taken(session, owner, original_link, max_attempts):
        calls.append(max_attempts)
        return taken, 1

    monkeypatch.setattr(services, "generate_unique_short_code", always_taken)

    with pytest.raises(services.ShortCodeGenerationError):
        await services.create_link_in_db(db_session, "https://example.com", "alice", max_attempts=3)
    assert calls == [3, 2, 1]


@pytest.mark.asyncio
async def test_click_time_is_current_utc(client: AsyncClient, create_link):
    from datetime import datetime, timedelta, timezone

    short_link = await create_link("alice")
    response = await client.post(f"/editclick/{short_link}", json={
        "clickData": {"ip_addr": "1.2.3.4", "user_device": "chrome"}
    })
    click_time = datetime.fromisoformat(response.json()["clicks"][0]["click_time"])

    assert click_time.tzinfo is None
    now = datetime.now(timezone.utc).replace(tzinfo=None)
    assert abs(now - click_time) < timedelta(minutes=1)


@pytest.mark.asyncio
async def test_add_click_with_trailing_slash(client: AsyncClient, create_link):
    short_link = await create_link("alice")

    response = await client.post(f"/editclick/{short_link}/", json={
        "clickData": {"ip_addr": "1.2.3.4", "user_device": "chrome"}
    }, follow_redirects=False)
    assert response.status_code == 200
    assert len(response.json()["clicks"]) == 1
