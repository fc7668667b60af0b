from memberhub.db.models.community import Community


def test_list_communities_is_public_and_sorted(client, db, solas):
    db.add(Community(name="Irish Network DC", slug="indc-community", circle_space_id=1978096))
    db.commit()

    res = client.get("/api/communities")

    assert res.status_code == 200
    body = res.json()
    assert [c["slug"] for c in body] == ["indc-community", "solas-nua"]
    assert body[1]["circleSpaceId"] == 2222222
    assert body[1]["stripePriceIdMonthly"] == "price_solas_monthly"


def test_space_data(client, headers):
    res = client.get("/api/circle-space-data", params={"spaceId": "2222222"}, headers=headers())

    assert res.status_code == 200
    body = res.json()
    assert body["accessToken"] == "member-token-aoife@example.com"
    assert body["spaceDetails"]["id"] == 2222222
    assert body["posts"] == [{"id": 1, "name": "Welcome", "space_id": 2222222}]


def test_space_data_validates_space_id(client, headers):
    missing = client.get("/api/circle-space-data", headers=headers())
    invalid = client.get("/api/circle-space-data", params={"spaceId": "abc"}, headers=headers())

    assert missing.status_code == 400
    assert invalid.status_code == 400
    assert invalid.json() == {"error": "Invalid spaceId parameter"}


def test_space_data_token_failure(client, fake_circle, headers):
    fake_circle.fail("POST", "/api/headless/v1/auth_token", 401, {"message": "Invalid API key"})

    res = client.get("/api/circle-space-data", params={"spaceId": "2222222"}, headers=headers())

    assert res.status_code == 500
    assert res.json() == {"error": "Could not authenticate with the community platform"}


def test_space_data_access_denied(client, fake_circle, headers):
    fake_circle.fail("GET", "/api/v1/spaces/2222222", 403, {"message": "Forbidden"})

    res = client.get("/api/circle-space-data", params={"spaceId": "2222222"}, headers=headers())

    assert res.status_code == 403
    assert res.json()["error"].startswith("Access Denied")


def test_health(client):
    res = client.get("/health")

    assert res.status_code == 200
    assert res.json()["status"] == "ok"
