import threading
import pytest
from content_router import ContentRouter
from errors import NetworkError, NotFound
from hashing_ring import HashRing

NODES = ["n1:9001", "n2:9002", "n3:9003"]


@pytest.fixture
def router(cluster):
    return ContentRouter(NODES, client_factory=cluster.client_factory)


def test_round_trip(router, cluster):
    payload = b"\x00segment\xff" * 1000
    router.write("v1", "seg-001.m4s", payload)
    assert router.read("v1", "seg-001.m4s") == payload
    owner = HashRing(NODES).get_node("v1/seg-001.m4s")
    assert cluster.holders("v1", "seg-001.m4s") == [owner]
    assert router.owner_of("v1", "seg-001.m4s") == owner


def test_tombstone(router):
    router.write("v1", "seg-001.m4s", b"P")
    router.delete("v1", "seg-001.m4s")
    with pytest.raises(NotFound):
        router.read("v1", "seg-001.m4s")
    assert not router.registry.has_key("v1/seg-001.m4s")


def test_delete_of_missing_key_raises_not_found(router):
    with pytest.raises(NotFound):
        router.delete("v1", "never-written.m4s")


def test_index_holds_keys_only(router):
    router.write("v1", "seg-001.m4s", b"a" * 5000)
    router.write("v2", "seg-001.m4s", b"b")
    assert router.registry.keys() == frozenset({"v1/seg-001.m4s", "v2/seg-001.m4s"})


def test_failed_write_is_not_indexed(router, cluster):
    owner = router.owner_of("v1", "seg-001.m4s")
    cluster.down.add(owner)
    with pytest.raises(NetworkError):
        router.write("v1", "seg-001.m4s", b"P")
    assert router.registry.keys() == frozenset()


def test_read_errors_propagate(router, cluster):
    with pytest.raises(NotFound):
        router.read("v1", "missing.m4s")
    router.write("v1", "seg-001.m4s", b"P")
    cluster.down.add(router.owner_of("v1", "seg-001.m4s"))
    with pytest.raises(NetworkError):
        router.read("v1", "seg-001.m4s")


def test_router_without_nodes(cluster):
    router = ContentRouter(client_factory=cluster.client_factory)
    assert router.list_nodes() == []
    with pytest.raises(NetworkError):
        router.write("v1", "seg-001.m4s", b"P")


def test_invalid_keys_never_reach_a_node(router, cluster):
    with pytest.raises(ValueError):
        router.write("v1/extra", "seg.m4s", b"P")
    with pytest.raises(ValueError):
        router.read("v1", "")
    assert cluster.calls == [(n, "ping") for n in NODES]


def test_bootstrap_keeps_registration_order_and_skips_duplicates(cluster):
    router = ContentRouter(NODES + ["n1:9001", " "], client_factory=cluster.client_factory)
    assert router.list_nodes() == NODES


def test_bootstrap_registers_unreachable_nodes(cluster):
    cluster.down.add("n2:9002")
    router = ContentRouter(NODES, client_factory=cluster.client_factory)
    assert router.list_nodes() == NODES


def test_read_falls_back_to_migration_source(router, cluster):
    router.write("v1", "seg-001.m4s", b"P")
    owner = router.owner_of("v1", "seg-001.m4s")
    other = next(n for n in NODES if n != owner)
    # simulate the key sitting on `other` while it is being moved to `owner`
    cluster.store(owner).delete("v1", "seg-001.m4s")
    cluster.store(other).write("v1", "seg-001.m4s", b"P")
    source = cluster.client_factory(other)
    router.registry.begin_migration({"v1/seg-001.m4s": source})

    assert router.read("v1", "seg-001.m4s") == b"P"

    router.delete("v1", "seg-001.m4s")
    assert cluster.holders("v1", "seg-001.m4s") == []
    assert router.registry.migration_source("v1/seg-001.m4s") is None
    with pytest.raises(NotFound):
        router.read("v1", "seg-001.m4s")


def test_write_supersedes_migration_source(router, cluster):
    owner = router.owner_of("v1", "seg-001.m4s")
    other = next(n for n in NODES if n != owner)
    router.registry.begin_migration({"v1/seg-001.m4s": cluster.client_factory(other)})
    router.write("v1", "seg-001.m4s", b"P")
    assert router.registry.migration_source("v1/seg-001.m4s") is None


def test_concurrent_writes_and_reads(router):
    errors = []

    def worker(n):
        try:
            for i in range(20):
                router.write(f"v{n}", f"seg-{i:03d}.m4s", f"{n}-{i}".encode())
                assert router.read(f"v{n}", f"seg-{i:03d}.m4s") == f"{n}-{i}".encode()
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(router.registry.keys()) == 160
