import os

os.environ.setdefault("MPLBACKEND", "Agg")

import pytest

from datastore import DataStore
from errors import NetworkError
from storage_node import StorageNode


class FakeCluster:
    """Storage nodes living in one process, each with its own DataStore.

    Addresses in `down` refuse every call; (address, op) pairs in `failing`
    make just that operation fail with a NetworkError.
    """

    def __init__(self, root):
        self.root = root
        self.stores = {}
        self.down = set()
        self.failing = set()
        self.calls = []

    def store(self, address):
        if address not in self.stores:
            self.stores[address] = DataStore(os.path.join(self.root, address.replace(":", "_")))
        return self.stores[address]

    def client_factory(self, address):
        return FakeStorageClient(self, address)

    def check(self, address, op):
        self.calls.append((address, op))
        if address in self.down or (address, op) in self.failing:
            raise NetworkError(f"{op} to {address} failed")

    def holders(self, video_id, filename):
        return sorted(a for a, s in self.stores.items() if s.exists(video_id, filename))


class FakeStorageClient:
    def __init__(self, cluster, address):
        self.cluster = cluster
        self.address = address

    def ping(self, timeout=None):
        self.cluster.check(self.address, "ping")
        return True

    def write_file(self, video_id, filename, data, timeout=None):
        self.cluster.check(self.address, "write")
        self.cluster.store(self.address).write(video_id, filename, data)
        return True

    def read_file(self, video_id, filename, timeout=None):
        self.cluster.check(self.address, "read")
        return self.cluster.store(self.address).read(video_id, filename)

    def delete_file(self, video_id, filename, timeout=None):
        self.cluster.check(self.address, "delete")
        self.cluster.store(self.address).delete(video_id, filename)
        return True


@pytest.fixture
def cluster(tmp_path):
    return FakeCluster(str(tmp_path / "nodes"))


@pytest.fixture
def storage_nodes(tmp_path):
    """Start real storage nodes on free ports; call with how many you need."""
    started = []

    def start(count=1):
        nodes = []
        for _ in range(count):
            node = StorageNode(str(tmp_path / f"node{len(started)}"), host="127.0.0.1", port=0)
            node.start_background()
            started.append(node)
            nodes.append(node)
        return nodes

    yield start
    for node in started:
        node.stop()
