# wire.py

import pickle
import struct
from config import MAX_FRAME_SIZE

HEADER = struct.Struct("!Q")


def send_message(sock, message):
    payload = pickle.dumps(message)
    sock.sendall(HEADER.pack(len(payload)) + payload)


def recv_message(sock):
    header = _recv_exact(sock, HEADER.size)
    if header is None:
        return None
    (length,) = HEADER.unpack(header)
    if length > MAX_FRAME_SIZE:
        raise ValueError(f"Frame of {length} bytes exceeds limit of {MAX_FRAME_SIZE}")
    payload = _recv_exact(sock, length)
    if payload is None:
        raise ConnectionError("Connection closed mid-frame")
    return pickle.loads(payload)


def _recv_exact(sock, size):
    # None only when the peer closed before sending anything
    chunks = []
    remaining = size
    while remaining:
        chunk = sock.recv(min(remaining, 65536))
        if not chunk:
            if remaining == size:
                return None
            raise ConnectionError("Connection closed mid-frame")
        chunks.append(chunk)
        remaining -= len(chunk)
    return b"".join(chunks)
