# hashing_ring.py

import hashlib
import bisect
from collections import namedtuple

Node = namedtuple("Node", ["address", "hash_point"])


def hash_key(key):
    digest = hashlib.sha256(key.encode()).digest()
    return int.from_bytes(digest[:8], "big")


def make_key(video_id, filename):
    return f"{video_id}/{filename}"


def split_key(key):
    video_id, filename = key.split("/", 1)
    return video_id, filename


class HashRing:
    """Immutable consistent hash ring with one point per node.

    Every node sits at hash_key(address). A key belongs to the node with the
    smallest point >= hash_key(key), wrapping to the lowest point. Changing
    membership builds a new ring; instances are never mutated.
    """

    def __init__(self, nodes=None):
        ring = {}
        for address in set(nodes or []):
            h = hash_key(address)
            # keep the lowest address on a collision so the result is order-independent
            if h not in ring or address < ring[h].address:
                ring[h] = Node(address, h)
        self._ring = ring
        self._sorted_keys = sorted(ring)

    def rebuild(self, nodes):
        return HashRing(nodes)

    def add_node(self, address):
        return self.rebuild(self.nodes + [address])

    def remove_node(self, address):
        return self.rebuild([n for n in self.nodes if n != address])

    @property
    def nodes(self):
        return [self._ring[h].address for h in self._sorted_keys]

    @property
    def points(self):
        return list(self._sorted_keys)

    def node_for_point(self, point):
        return self._ring[point]

    def resolve(self, key_hash):
        if not self._sorted_keys:
            return None
        idx = bisect.bisect_left(self._sorted_keys, key_hash)
        if idx == len(self._sorted_keys):
            idx = 0
        return self._ring[self._sorted_keys[idx]].address

    def get_node(self, key):
        return self.resolve(hash_key(key))

    def __len__(self):
        return len(self._sorted_keys)

    def __contains__(self, address):
        h = hash_key(address)
        return h in self._ring and self._ring[h].address == address

    def __repr__(self):
        return f"HashRing({self.nodes!r})"
