"""回归测试：移动目录到其自身或子目录时应返回 400，而不是 500。"""

from fastapi.testclient import TestClient

ADMIN = {"X-User-Roles": "admin"}


def test_move_dir_into_self_returns_400(client: TestClient):
    # 创建目录 /a/b
    r1 = client.post("/api/v1/library/folders", json={"name": "a", "parentPath": "/"}, headers=ADMIN)
    assert r1.status_code == 200
    a_id = r1.json()["data"]["node"]["id"]
    r2 = client.post("/api/v1/library/folders", json={"name": "b", "parentPath": "/a"}, headers=ADMIN)
    assert r2.status_code == 200

    # 移动 a -> a/b，应 400
    mv = client.post("/api/v1/library/items/move", json={"ids": [a_id], "destinationPath": "/a/b"}, headers=ADMIN)
    assert mv.status_code == 400
    assert mv.json()["data"]["errorKind"] == "CircularMove"
    assert "目录" in (mv.json().get("msg") or "")

    # 移动 a -> a 本身，同样 400
    mv = client.post("/api/v1/library/items/move", json={"ids": [a_id], "destinationPath": "/a"}, headers=ADMIN)
    assert mv.status_code == 400

    # 目录树保持不变
    items = client.get("/api/v1/library/items", params={"path": "/a"}).json()["data"]["items"]
    assert [i["path"] for i in items] == ["/a/b"]
