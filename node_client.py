# node_client.py

import logging
import pickle
import socket
from config import PING_TIMEOUT, RPC_TIMEOUT
from errors import NetworkError, NotFound
from wire import recv_message, send_message

logger = logging.getLogger(__name__)


def parse_address(address):
    host, sep, port = address.rpartition(":")
    if not sep or not host:
        raise ValueError(f"Address must look like host:port, got {address!r}")
    try:
        return host, int(port)
    except ValueError:
        raise ValueError(f"Invalid port in address {address!r}") from None


class StorageClient:
    """RPC handle for one storage node. Each call opens its own connection."""

    def __init__(self, address, timeout=RPC_TIMEOUT):
        self.address = address
        self.host, self.port = parse_address(address)
        self.timeout = timeout

    def call(self, message, timeout=None):
        timeout = self.timeout if timeout is None else timeout
        try:
            with socket.create_connection((self.host, self.port), timeout=timeout) as sock:
                send_message(sock, message)
                response = recv_message(sock)
        except (OSError, ValueError, pickle.UnpicklingError) as e:
            raise NetworkError(f"{message.get('action')} to {self.address} failed: {e}") from e

        if response is None:
            raise NetworkError(f"{self.address} closed the connection without replying")
        status = response.get("status")
        if status == "NOT_FOUND":
            raise NotFound(response.get("message", f"not found on {self.address}"))
        if status == "ERROR":
            raise NetworkError(f"{self.address} returned error: {response.get('message')}")
        return response

    def ping(self, timeout=PING_TIMEOUT):
        self.call({"action": "PING"}, timeout=timeout)
        return True

    def write_file(self, video_id, filename, data, timeout=None):
        response = self.call({
            "action": "WRITE_FILE",
            "video_id": video_id,
            "filename": filename,
            "data": data,
        }, timeout=timeout)
        return response.get("success", False)

    def read_file(self, video_id, filename, timeout=None):
        response = self.call({
            "action": "READ_FILE",
            "video_id": video_id,
            "filename": filename,
        }, timeout=timeout)
        return response["data"]

    def delete_file(self, video_id, filename, timeout=None):
        response = self.call({
            "action": "DELETE_FILE",
            "video_id": video_id,
            "filename": filename,
        }, timeout=timeout)
        return response.get("success", False)

    def __repr__(self):
        return f"StorageClient({self.address!r})"
