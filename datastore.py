# datastore.py

import os
from errors import NotFound


def validate_key(video_id, filename):
    for label, part in (("video_id", video_id), ("filename", filename)):
        if not isinstance(part, str) or not part:
            raise ValueError(f"{label} must be a non-empty string")
        if part in (".", "..") or "/" in part or "\\" in part or "\x00" in part:
            raise ValueError(f"Invalid {label}: {part!r}")


class DataStore:
    """Segment files laid out as base_dir/video_id/filename."""

    def __init__(self, base_dir):
        self.base_dir = os.path.abspath(base_dir)
        os.makedirs(self.base_dir, exist_ok=True)

    def path_for(self, video_id, filename):
        validate_key(video_id, filename)
        return os.path.join(self.base_dir, video_id, filename)

    def write(self, video_id, filename, data):
        path = self.path_for(video_id, filename)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as f:
            f.write(data)

    def read(self, video_id, filename):
        path = self.path_for(video_id, filename)
        try:
            with open(path, "rb") as f:
                return f.read()
        except FileNotFoundError:
            raise NotFound(f"{video_id}/{filename}") from None

    def delete(self, video_id, filename):
        path = self.path_for(video_id, filename)
        try:
            os.remove(path)
        except FileNotFoundError:
            raise NotFound(f"{video_id}/{filename}") from None

    def exists(self, video_id, filename):
        return os.path.isfile(self.path_for(video_id, filename))
