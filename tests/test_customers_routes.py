def _body(**kw):
    base = {"stb_number": "STB100", "name": "Priya Devi", "mobile": "9123456789", "village": "Karur"}
    base.update(kw)
    return base


def test_public_check(client, auth_headers):
    client.post("/api/customers", json=_body(), headers=auth_headers)

    ok = client.get("/api/customers/check/STB100")
    assert ok.status_code == 200
    assert ok.get_json()["active"] is True

    missing = client.get("/api/customers/check/STB404")
    assert missing.status_code == 404
    assert missing.get_json()["exists"] is False


def test_check_inactive_is_403(client, auth_headers):
    created = client.post("/api/customers", json=_body(), headers=auth_headers).get_json()["customer"]
    resp = client.patch(f"/api/customers/{created['id']}/status", json={"status": "inactive"}, headers=auth_headers)
    assert resp.status_code == 200

    check = client.get("/api/customers/check/STB100")
    assert check.status_code == 403
    body = check.get_json()
    assert body["exists"] is True and body["active"] is False


def test_crud_flow(client, auth_headers):
    resp = client.post("/api/customers", json=_body(), headers=auth_headers)
    assert resp.status_code == 201
    cid = resp.get_json()["customer"]["id"]

    dup = client.post("/api/customers", json=_body(), headers=auth_headers)
    assert dup.status_code == 409

    bad = client.post("/api/customers", json=_body(stb_number="STB101", mobile=""), headers=auth_headers)
    assert bad.status_code == 400
    assert "mobile" in bad.get_json()["errors"]

    upd = client.put(f"/api/customers/{cid}", json={"street": "Temple St"}, headers=auth_headers)
    assert upd.status_code == 200
    assert upd.get_json()["customer"]["street"] == "Temple St"

    listed = client.get("/api/customers?search=priya", headers=auth_headers).get_json()
    assert [c["stb_number"] for c in listed] == ["STB100"]

    assert client.get(f"/api/customers/{cid}", headers=auth_headers).status_code == 200
    assert client.delete(f"/api/customers/{cid}", headers=auth_headers).status_code == 200
    assert client.get(f"/api/customers/{cid}", headers=auth_headers).status_code == 404


def test_invalid_status(client, auth_headers):
    cid = client.post("/api/customers", json=_body(), headers=auth_headers).get_json()["customer"]["id"]
    resp = client.patch(f"/api/customers/{cid}/status", json={"status": "paused"}, headers=auth_headers)
    assert resp.status_code == 400


def test_bulk_route(client, auth_headers):
    rows = [_body(stb_number="B1"), _body(stb_number="B2", village=None), _body(stb_number="B3")]
    resp = client.post("/api/customers/bulk", json={"rows": rows}, headers=auth_headers)
    assert resp.status_code == 200
    body = resp.get_json()
    assert (body["inserted"], body["skipped"]) == (2, 1)
    assert body["errors"][0]["row"] == 2

    empty = client.post("/api/customers/bulk", json={"rows": []}, headers=auth_headers)
    assert empty.status_code == 400


def test_bulk_route_rejects_non_object_body(client, auth_headers):
    resp = client.post("/api/customers/bulk", json=[_body()], headers=auth_headers)
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "validation_error"
    assert client.get("/api/customers/check/STB100").status_code == 404
