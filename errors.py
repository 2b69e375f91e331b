# errors.py


class SegstoreError(Exception):
    pass


class NotFound(SegstoreError):
    pass


class NetworkError(SegstoreError):
    pass


class DuplicateNode(SegstoreError):
    pass


class UnknownNode(SegstoreError):
    pass


class MembershipError(SegstoreError):
    pass


class PartialMigrationFailure(SegstoreError):
    """A single key's relocation did not fully complete.

    stage == "copy": the write to the new owner failed, the key is still only
    at the old owner and is not counted as migrated.
    stage == "delete": the write succeeded but the old copy could not be
    removed; the key is counted and the old copy is an orphan.
    """

    def __init__(self, key, stage, source, target, cause=None):
        self.key = key
        self.stage = stage
        self.source = source
        self.target = target
        self.cause = cause
        super().__init__(f"{stage} failed for {key} ({source} -> {target}): {cause}")

    @property
    def orphaned(self):
        return self.stage == "delete"
