import uuid
from http import HTTPStatus


def test_create_and_list_tags(client, auth_headers, create_post):
    resp = client.post("/tags", json={"name": "empty"}, headers=auth_headers)
    assert resp.status_code == HTTPStatus.CREATED
    create_post(title="One", tags=["busy"])
    create_post(title="Two", tags=["busy"])

    tags = client.get("/tags", headers=auth_headers).json()["data"]

    counts = {tag["name"]: tag["posts_count"] for tag in tags}
    assert counts == {"busy": 2, "empty": 0}


def test_duplicate_tag_name_is_rejected(client, auth_headers):
    client.post("/tags", json={"name": "unique"}, headers=auth_headers)

    resp = client.post("/tags", json={"name": "unique"}, headers=auth_headers)

    assert resp.status_code == HTTPStatus.UNPROCESSABLE_ENTITY
    assert "name" in resp.json()["errors"]


def test_tag_names_are_case_sensitive(client, auth_headers):
    client.post("/tags", json={"name": "Go"}, headers=auth_headers)

    resp = client.post("/tags", json={"name": "go"}, headers=auth_headers)

    assert resp.status_code == HTTPStatus.CREATED


def test_get_tag_lists_its_posts(client, auth_headers, create_post):
    post = create_post(title="Linked", tags=["linked"])
    tag_id = client.get("/tags", headers=auth_headers).json()["data"][0]["id"]

    resp = client.get(f"/tags/{tag_id}", headers=auth_headers)

    assert resp.status_code == HTTPStatus.OK
    assert [p["id"] for p in resp.json()["data"]["posts"]] == [post["id"]]


def test_update_tag(client, auth_headers):
    tag = client.post("/tags", json={"name": "old"}, headers=auth_headers).json()["data"]
    client.post("/tags", json={"name": "taken"}, headers=auth_headers)

    renamed = client.put(f"/tags/{tag['id']}", json={"name": "new"}, headers=auth_headers)
    assert renamed.status_code == HTTPStatus.OK
    assert renamed.json()["data"]["name"] == "new"

    same = client.put(f"/tags/{tag['id']}", json={"name": "new"}, headers=auth_headers)
    assert same.status_code == HTTPStatus.OK

    clash = client.put(f"/tags/{tag['id']}", json={"name": "taken"}, headers=auth_headers)
    assert clash.status_code == HTTPStatus.UNPROCESSABLE_ENTITY


def test_delete_tag_keeps_posts(client, auth_headers, create_post):
    post = create_post(tags=["doomed", "kept"])
    tags = {t["name"]: t["id"] for t in client.get("/tags", headers=auth_headers).json()["data"]}

    resp = client.delete(f"/tags/{tags['doomed']}", headers=auth_headers)
    assert resp.status_code == HTTPStatus.OK

    remaining = client.get(f"/posts/{post['id']}", headers=auth_headers)
    assert remaining.status_code == HTTPStatus.OK
    assert remaining.json()["data"]["tags"] == ["kept"]


def test_missing_tag_returns_404(client, auth_headers):
    missing = uuid.uuid4()
    assert client.get(f"/tags/{missing}", headers=auth_headers).status_code == HTTPStatus.NOT_FOUND
    assert client.put(f"/tags/{missing}", json={"name": "x"}, headers=auth_headers).status_code == HTTPStatus.NOT_FOUND
    assert client.delete(f"/tags/{missing}", headers=auth_headers).status_code == HTTPStatus.NOT_FOUND
