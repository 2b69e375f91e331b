# membership.py

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import List
from config import MIGRATION_WORKERS, RPC_TIMEOUT
from errors import (
    DuplicateNode,
    MembershipError,
    NetworkError,
    NotFound,
    PartialMigrationFailure,
    UnknownNode,
)
from hashing_ring import split_key
from node_client import StorageClient

logger = logging.getLogger(__name__)

MIGRATED = "migrated"
IN_PLACE = "in_place"


@dataclass
class MigrationReport:
    address: str
    action: str
    version: int = 0
    planned: int = 0
    migrated: int = 0
    already_in_place: int = 0
    failures: List[PartialMigrationFailure] = field(default_factory=list)
    unknown_node: bool = False

    @property
    def migrated_file_count(self):
        return self.migrated

    @property
    def orphans(self):
        return [f for f in self.failures if f.orphaned]

    @property
    def copy_failures(self):
        return [f for f in self.failures if not f.orphaned]


class MembershipManager:
    """Applies node joins and leaves and moves the keys whose owner changed.

    The ring change is published first, so routing switches to the new owner
    immediately. Keys are then copied from the old owner to the new one and
    deleted from the old owner, several at a time. A key that fails to copy
    stays where it was and is reported; a key whose old copy cannot be deleted
    is counted as migrated and reported as an orphan.
    """

    def __init__(self, registry, client_factory=StorageClient,
                 timeout=RPC_TIMEOUT, max_workers=MIGRATION_WORKERS):
        self.registry = registry
        self.client_factory = client_factory
        self.timeout = timeout
        self.max_workers = max_workers

    def add_node(self, address, timeout=None):
        if address in self.registry.snapshot().clients:
            raise DuplicateNode(f"Node {address} is already registered")

        client = self.client_factory(address)
        try:
            client.ping()
        except NetworkError as e:
            logger.error("[Membership] Cannot reach new node %s: %s", address, e)
            raise

        old, new, keys = self.registry.register(address, client)
        logger.info("[Membership] Node %s joined (ring v%d, %d nodes)", address, new.version, len(new.ring))

        moves = self._plan_moves(old, new, keys)
        report = MigrationReport(address, "add", version=new.version, planned=len(moves))
        self._run_migrations(moves, report, timeout)
        return report

    def remove_node(self, address, timeout=None):
        try:
            old, new, keys = self.registry.unregister(address, guard=self._refuse_last_node)
        except UnknownNode:
            logger.warning("[Membership] Remove of unknown node %s ignored", address)
            return MigrationReport(address, "remove", version=self.registry.snapshot().version,
                                   unknown_node=True)
        logger.info("[Membership] Node %s left (ring v%d, %d nodes)", address, new.version, len(new.ring))

        # the leaving node's client outlives its registration for the copy and delete
        moves = self._plan_moves(old, new, keys)
        report = MigrationReport(address, "remove", version=new.version, planned=len(moves))
        self._run_migrations(moves, report, timeout)
        return report

    def _plan_moves(self, old, new, keys):
        """(key, source, target) for every key not yet on its new owner.

        A key with a recorded migration source (an earlier copy that failed,
        or a write that raced a ring change) is moved from that source, since
        its old ring owner may never have received it.
        """
        pending = self.registry.pending_migrations()
        moves = []
        for key in sorted(keys):
            new_owner = new.owner(key)
            if new_owner is None:
                continue
            target = new.client_for(new_owner)
            source = pending.get(key)
            if source is None:
                old_owner = old.owner(key)
                if old_owner is None or old_owner == new_owner:
                    continue
                source = old.client_for(old_owner)
            elif source is target:
                # moved back onto the node that still holds it
                self.registry.end_migration(key, source)
                continue
            moves.append((key, source, target))
        return moves

    def _refuse_last_node(self, snapshot, keys):
        if len(snapshot.addresses) == 1 and keys:
            raise MembershipError(
                f"Refusing to remove {snapshot.addresses[0]}: it is the last node and holds {len(keys)} keys")

    def _run_migrations(self, moves, report, timeout):
        if not moves:
            logger.info("[Membership] %s %s: no keys to migrate", report.action, report.address)
            return

        self.registry.begin_migration({key: source for key, source, _ in moves})
        workers = max(1, min(self.max_workers, len(moves)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {
                executor.submit(self._migrate_key, key, source, target, timeout): (key, source)
                for key, source, target in moves
            }
            for future in as_completed(futures):
                key, source = futures[future]
                try:
                    outcome = future.result()
                except PartialMigrationFailure as failure:
                    report.failures.append(failure)
                    if failure.orphaned:
                        self.registry.end_migration(key, source)
                        report.migrated += 1
                        logger.warning("[Membership] Orphaned copy of %s left on %s: %s",
                                       key, failure.source, failure.cause)
                    else:
                        # still readable from the old owner through the migration source
                        logger.error("[Membership] Could not move %s to %s: %s",
                                     key, failure.target, failure.cause)
                    continue

                self.registry.end_migration(key, source)
                if outcome == MIGRATED:
                    report.migrated += 1
                else:
                    report.already_in_place += 1

        logger.info("[Membership] %s %s: migrated %d/%d keys (%d already in place, %d failed, %d orphaned)",
                    report.action, report.address, report.migrated, report.planned,
                    report.already_in_place, len(report.copy_failures), len(report.orphans))

    def _migrate_key(self, key, source, target, timeout):
        timeout = self.timeout if timeout is None else timeout
        video_id, filename = split_key(key)

        try:
            data = source.read_file(video_id, filename, timeout=timeout)
        except NotFound as e:
            # an earlier interrupted run may already have moved it
            try:
                target.read_file(video_id, filename, timeout=timeout)
            except (NotFound, NetworkError) as probe_error:
                raise PartialMigrationFailure(key, "copy", source.address, target.address, e) from probe_error
            logger.debug("[Membership] %s already on %s", key, target.address)
            return IN_PLACE
        except NetworkError as e:
            raise PartialMigrationFailure(key, "copy", source.address, target.address, e) from e

        try:
            target.write_file(video_id, filename, data, timeout=timeout)
        except (NotFound, NetworkError) as e:
            raise PartialMigrationFailure(key, "copy", source.address, target.address, e) from e

        try:
            source.delete_file(video_id, filename, timeout=timeout)
        except NotFound:
            logger.debug("[Membership] %s was already gone from %s", key, source.address)
        except NetworkError as e:
            raise PartialMigrationFailure(key, "delete", source.address, target.address, e) from e

        logger.debug("[Membership] Moved %s %s -> %s", key, source.address, target.address)
        return MIGRATED
