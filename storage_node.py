# storage_node.py

import argparse
import logging
import pickle
import socket
import threading
from config import RPC_TIMEOUT, STORAGE_HOST, STORAGE_PORT, configure_logging
from datastore import DataStore
from errors import NotFound
from wire import recv_message, send_message

logger = logging.getLogger(__name__)

ACCEPT_POLL_INTERVAL = 0.5


class StorageNode:
    def __init__(self, base_dir, host=STORAGE_HOST, port=STORAGE_PORT):
        self.store = DataStore(base_dir)
        self.host = host
        self.port = port
        self._server = None
        self._running = False

    @property
    def address(self):
        return f"{self.host}:{self.port}"

    def handle_request(self, command):
        action = command.get("action")
        video_id = command.get("video_id")
        filename = command.get("filename")

        if action == "PING":
            return {"status": "OK"}

        try:
            if action == "WRITE_FILE":
                data = command.get("data")
                if not isinstance(data, (bytes, bytearray)):
                    return {"status": "ERROR", "success": False, "message": "Missing data"}
                self.store.write(video_id, filename, bytes(data))
                return {"status": "STORED", "success": True}

            if action == "READ_FILE":
                return {"status": "OK", "data": self.store.read(video_id, filename)}

            if action == "DELETE_FILE":
                self.store.delete(video_id, filename)
                return {"status": "DELETED", "success": True}

        except NotFound:
            return {"status": "NOT_FOUND", "message": f"{video_id}/{filename} not found"}
        except (ValueError, OSError) as e:
            logger.error("[StorageNode %s] %s %s/%s failed: %s", self.address, action, video_id, filename, e)
            return {"status": "ERROR", "success": False, "message": str(e)}

        return {"status": "ERROR", "message": f"Unknown action: {action}"}

    def handle_client(self, conn):
        conn.settimeout(RPC_TIMEOUT)
        with conn:
            try:
                command = recv_message(conn)
                if command is None:
                    return
                send_message(conn, self.handle_request(command))
            except (OSError, ValueError, pickle.UnpicklingError) as e:
                logger.warning("[StorageNode %s] Connection error: %s", self.address, e)

    def bind(self):
        server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        server.bind((self.host, self.port))
        server.listen()
        # wake up periodically so stop() is noticed
        server.settimeout(ACCEPT_POLL_INTERVAL)
        # port 0 asks the OS for a free port
        self.port = server.getsockname()[1]
        self._server = server
        self._running = True
        logger.info("[StorageNode %s] Listening, base dir %s", self.address, self.store.base_dir)

    def serve_forever(self):
        while self._running:
            try:
                conn, _ = self._server.accept()
            except socket.timeout:
                continue
            except OSError:
                if not self._running:
                    break
                raise
            threading.Thread(target=self.handle_client, args=(conn,), daemon=True).start()

    def start(self):
        self.bind()
        self.serve_forever()

    def start_background(self):
        self.bind()
        thread = threading.Thread(target=self.serve_forever, daemon=True)
        thread.start()
        return thread

    def stop(self):
        self._running = False
        if self._server is not None:
            self._server.close()
            self._server = None
        logger.info("[StorageNode %s] Stopped", self.address)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Segment storage node")
    parser.add_argument("--host", default=STORAGE_HOST, help="Host address for the server")
    parser.add_argument("--port", type=int, default=STORAGE_PORT, help="Port number for the server")
    parser.add_argument("base_dir", metavar="baseDir", help="Directory segments are stored under")
    args = parser.parse_args(argv)
    if args.port < 0:
        parser.error("port number must not be negative")
    return args


def main(argv=None):
    args = parse_args(argv)
    configure_logging()
    node = StorageNode(args.base_dir, host=args.host, port=args.port)
    try:
        node.start()
    except KeyboardInterrupt:
        node.stop()


if __name__ == "__main__":
    main()
