# content_router.py

import logging
from config import MIGRATION_WORKERS, RPC_TIMEOUT
from datastore import validate_key
from errors import DuplicateNode, NetworkError, NotFound
from hashing_ring import make_key
from membership import MembershipManager
from node_client import StorageClient
from registry import ClusterRegistry

logger = logging.getLogger(__name__)


class ContentRouter:
    """Routes segment reads and writes to the node owning each key.

    Only keys are remembered (for migrations); payloads live on the nodes.
    """

    def __init__(self, nodes=None, client_factory=StorageClient,
                 timeout=RPC_TIMEOUT, max_workers=MIGRATION_WORKERS):
        self.registry = ClusterRegistry()
        self.client_factory = client_factory
        self.timeout = timeout
        self.membership = MembershipManager(self.registry, client_factory=client_factory,
                                            timeout=timeout, max_workers=max_workers)
        if nodes:
            self.bootstrap(nodes)

    def bootstrap(self, addresses):
        """Register the startup node list without requiring each node to answer."""
        for address in addresses:
            address = address.strip()
            if not address:
                continue
            client = self.client_factory(address)
            try:
                self.registry.register(address, client)
            except DuplicateNode:
                logger.warning("[Router] Ignoring duplicate startup node %s", address)
                continue
            try:
                client.ping()
            except NetworkError as e:
                logger.warning("[Router] Startup node %s is not reachable yet: %s", address, e)
        logger.info("[Router] Registered nodes: %s", self.list_nodes())

    def list_nodes(self):
        return list(self.registry.snapshot().addresses)

    def owner_of(self, video_id, filename):
        validate_key(video_id, filename)
        return self.registry.snapshot().owner(make_key(video_id, filename))

    def _route(self, video_id, filename):
        validate_key(video_id, filename)
        key = make_key(video_id, filename)
        snapshot = self.registry.snapshot()
        address = snapshot.owner(key)
        if address is None:
            raise NetworkError("No storage nodes are registered")
        return key, snapshot, snapshot.client_for(address)

    def read(self, video_id, filename, timeout=None):
        timeout = self.timeout if timeout is None else timeout
        key, _, client = self._route(video_id, filename)
        try:
            return client.read_file(video_id, filename, timeout=timeout)
        except NotFound:
            source = self.registry.migration_source(key)
            if source is None or source is client:
                raise
            logger.info("[Router] %s not on %s yet, reading from %s", key, client.address, source.address)
            return source.read_file(video_id, filename, timeout=timeout)

    def write(self, video_id, filename, data, timeout=None):
        timeout = self.timeout if timeout is None else timeout
        key, snapshot, client = self._route(video_id, filename)
        client.write_file(video_id, filename, data, timeout=timeout)
        # a join or leave published while the bytes were in flight planned its
        # moves without this key, so follow the owner until the ring holds still
        moved = self.registry.record_write(key, snapshot.version, client)
        while moved is not None:
            snapshot, owner = moved
            logger.info("[Router] Ring changed during write of %s, moving it %s -> %s",
                        key, client.address, owner.address)
            try:
                owner.write_file(video_id, filename, data, timeout=timeout)
            except NetworkError as e:
                # still readable from client; the next membership change retries the copy
                logger.error("[Router] Could not move %s to %s: %s", key, owner.address, e)
                return
            try:
                client.delete_file(video_id, filename, timeout=timeout)
            except NotFound:
                pass
            except NetworkError as e:
                logger.warning("[Router] Orphaned copy of %s left on %s: %s", key, client.address, e)
            self.registry.end_migration(key, client)
            client = owner
            moved = self.registry.record_write(key, snapshot.version, client)

    def delete(self, video_id, filename, timeout=None):
        """Delete at the owner and at any migration source still serving reads.

        The key leaves the index only once no node can return it.
        """
        timeout = self.timeout if timeout is None else timeout
        key, _, client = self._route(video_id, filename)
        source = self.registry.migration_source(key)
        if source is client:
            source = None

        deleted = False
        try:
            client.delete_file(video_id, filename, timeout=timeout)
            deleted = True
        except NotFound:
            if source is None:
                self.registry.discard_key(key)
                raise

        if source is not None:
            try:
                source.delete_file(video_id, filename, timeout=timeout)
            except NotFound:
                if not deleted:
                    self.registry.end_migration(key, source)
                    self.registry.discard_key(key)
                    raise
            self.registry.end_migration(key, source)

        self.registry.discard_key(key)

    def add_node(self, address, timeout=None):
        return self.membership.add_node(address, timeout=timeout)

    def remove_node(self, address, timeout=None):
        return self.membership.remove_node(address, timeout=timeout)
