# registry.py

import threading
from types import MappingProxyType
from errors import DuplicateNode, UnknownNode
from hashing_ring import HashRing, hash_key


class ClusterSnapshot:
    """One published membership: ring, node order and RPC clients.

    Snapshots are never mutated. Readers hold on to whichever snapshot they
    picked up; writers publish a replacement with version + 1.
    """

    __slots__ = ("version", "ring", "addresses", "clients")

    def __init__(self, version=0, addresses=(), clients=None):
        self.version = version
        self.addresses = tuple(addresses)
        self.clients = MappingProxyType(dict(clients or {}))
        self.ring = HashRing(self.addresses)

    def owner(self, key):
        return self.ring.get_node(key)

    def client_for(self, address):
        return self.clients[address]

    def with_node(self, address, client):
        clients = dict(self.clients)
        clients[address] = client
        return ClusterSnapshot(self.version + 1, self.addresses + (address,), clients)

    def without_node(self, address):
        clients = {a: c for a, c in self.clients.items() if a != address}
        addresses = [a for a in self.addresses if a != address]
        return ClusterSnapshot(self.version + 1, addresses, clients)


class ClusterRegistry:
    """Node registry, published ring and key index behind a single lock.

    The lock only covers in-memory work; callers must not hold it across RPCs.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._snapshot = ClusterSnapshot()
        self._keys = set()
        # key -> client of the node the key is being copied away from
        self._migrating = {}

    def snapshot(self):
        with self._lock:
            return self._snapshot

    def register(self, address, client):
        """Publish a snapshot including address. Returns (old, new, keys)."""
        with self._lock:
            old = self._snapshot
            if address in old.clients:
                raise DuplicateNode(f"Node {address} is already registered")
            point = hash_key(address)
            for existing in old.addresses:
                if hash_key(existing) == point:
                    raise DuplicateNode(f"Node {address} collides with {existing} on the ring")
            new = old.with_node(address, client)
            self._snapshot = new
            return old, new, frozenset(self._keys)

    def unregister(self, address, guard=None):
        """Publish a snapshot without address. Returns (old, new, keys).

        guard(old_snapshot, keys) may raise to veto the removal before
        anything is published.
        """
        with self._lock:
            old = self._snapshot
            if address not in old.clients:
                raise UnknownNode(f"Node {address} is not registered")
            keys = frozenset(self._keys)
            if guard is not None:
                guard(old, keys)
            new = old.without_node(address)
            self._snapshot = new
            return old, new, keys

    def add_key(self, key):
        with self._lock:
            self._keys.add(key)

    def record_write(self, key, version, client):
        """Index key after client stored it under snapshot `version`.

        Returns None when client is still the owner. Otherwise the ring
        changed mid-write and no migration plan saw the key: client is kept
        as the key's migration source and (snapshot, owner_client) is
        returned so the caller can move the bytes.
        """
        with self._lock:
            self._keys.add(key)
            snapshot = self._snapshot
            owner = snapshot.owner(key)
            if snapshot.version == version or owner is None or snapshot.clients[owner] is client:
                self._migrating.pop(key, None)
                return None
            self._migrating[key] = client
            return snapshot, snapshot.clients[owner]

    def discard_key(self, key):
        with self._lock:
            self._keys.discard(key)

    def has_key(self, key):
        with self._lock:
            return key in self._keys

    def keys(self):
        with self._lock:
            return frozenset(self._keys)

    def begin_migration(self, sources):
        with self._lock:
            self._migrating.update(sources)

    def end_migration(self, key, source):
        with self._lock:
            if self._migrating.get(key) is source:
                del self._migrating[key]

    def clear_migration(self, key):
        with self._lock:
            self._migrating.pop(key, None)

    def migration_source(self, key):
        with self._lock:
            return self._migrating.get(key)

    def pending_migrations(self):
        with self._lock:
            return dict(self._migrating)
