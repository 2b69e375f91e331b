import pytest
import app as admin_app
from errors import DuplicateNode, NetworkError, NotFound


class FakeRouterClient:
    host = "localhost"
    port = 8081

    def __init__(self):
        self.nodes = ["n1:9001", "n2:9002"]
        self.content = {}

    def list_nodes(self):
        return list(self.nodes)

    def add_node(self, address):
        if address in self.nodes:
            raise DuplicateNode(f"Node {address} is already registered")
        if address.startswith("down"):
            raise NetworkError(f"cannot reach {address}")
        self.nodes.append(address)
        return {"status": "OK", "migrated_file_count": 3, "failed": 0, "orphaned": 1}

    def remove_node(self, address):
        if address not in self.nodes:
            return {"status": "UNKNOWN_NODE", "migrated_file_count": 0}
        self.nodes.remove(address)
        return {"status": "OK", "migrated_file_count": 2, "failed": 0, "orphaned": 0}

    def read(self, video_id, filename):
        try:
            return self.content[(video_id, filename)]
        except KeyError:
            raise NotFound(f"{video_id}/{filename}") from None

    def write(self, video_id, filename, data):
        self.content[(video_id, filename)] = data

    def delete(self, video_id, filename):
        if self.content.pop((video_id, filename), None) is None:
            raise NotFound(f"{video_id}/{filename}")


@pytest.fixture
def client(monkeypatch):
    monkeypatch.setattr(admin_app.system_manager, "router", FakeRouterClient())
    monkeypatch.setattr(admin_app.system_manager, "check_node_status", lambda address: True)
    admin_app.app.config["TESTING"] = True
    return admin_app.app.test_client()


def test_list_and_add_nodes(client):
    assert client.get("/api/nodes").get_json() == {"nodes": ["n1:9001", "n2:9002"]}

    response = client.post("/api/nodes", json={"node_address": "n3:9003"})
    body = response.get_json()
    assert response.status_code == 200
    assert body["migrated_file_count"] == 3
    assert body["orphaned"] == 1

    assert client.post("/api/nodes", json={"node_address": "n3:9003"}).status_code == 409
    assert client.post("/api/nodes", json={"node_address": "down:1"}).status_code == 502
    assert client.post("/api/nodes", json={}).status_code == 400


def test_remove_node(client):
    body = client.delete("/api/nodes/n2:9002").get_json()
    assert body["migrated_file_count"] == 2
    body = client.delete("/api/nodes/n9:9009").get_json()
    assert body["success"] and body["migrated_file_count"] == 0


def test_content_routes(client):
    assert client.put("/api/content/v1/seg-001.m4s", data=b"P").status_code == 201
    response = client.get("/api/content/v1/seg-001.m4s")
    assert response.status_code == 200
    assert response.data == b"P"
    assert client.delete("/api/content/v1/seg-001.m4s").status_code == 200
    assert client.get("/api/content/v1/seg-001.m4s").status_code == 404
    assert client.delete("/api/content/v1/seg-001.m4s").status_code == 404


def test_status_and_ring(client):
    status = client.get("/api/status").get_json()
    assert status["router"]["active"]
    assert status["active_nodes_count"] == 2
    assert status["nodes"]["n1:9001"]["active"]

    ring = client.get("/api/hash_ring").get_json()
    hashes = [entry["hash"] for entry in ring["ring_data"]]
    assert hashes == sorted(hashes)
    assert {entry["node"] for entry in ring["ring_data"]} == {"n1:9001", "n2:9002"}
