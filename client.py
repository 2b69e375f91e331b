# client.py

import argparse
import pickle
import socket
import sys
from config import ROUTER_HOST, ROUTER_PORT
from errors import DuplicateNode, NetworkError, NotFound, SegstoreError
from wire import recv_message, send_message


class RouterClient:
    def __init__(self, host=ROUTER_HOST, port=ROUTER_PORT, timeout=None):
        self.host = host
        self.port = port
        # None waits for migrations to finish
        self.timeout = timeout

    def send_request(self, request):
        try:
            with socket.create_connection((self.host, self.port), timeout=self.timeout) as sock:
                send_message(sock, request)
                response = recv_message(sock)
        except (OSError, ValueError, pickle.UnpicklingError) as e:
            raise NetworkError(f"Router {self.host}:{self.port} unreachable: {e}") from e
        if response is None:
            raise NetworkError("Router closed the connection without replying")

        status = response.get("status")
        if status == "NOT_FOUND":
            raise NotFound(response.get("message", "not found"))
        if status == "DUPLICATE_NODE":
            raise DuplicateNode(response.get("message", "duplicate node"))
        if status == "NETWORK_ERROR":
            raise NetworkError(response.get("message", "network error"))
        if status == "ERROR":
            raise SegstoreError(response.get("message", "error"))
        return response

    def list_nodes(self):
        return self.send_request({"action": "LIST_NODES"})["nodes"]

    def add_node(self, address):
        return self.send_request({"action": "ADD_NODE", "node_address": address})

    def remove_node(self, address):
        return self.send_request({"action": "REMOVE_NODE", "node_address": address})

    def read(self, video_id, filename):
        return self.send_request({"action": "READ", "video_id": video_id, "filename": filename})["data"]

    def write(self, video_id, filename, data):
        self.send_request({"action": "WRITE", "video_id": video_id, "filename": filename, "data": data})

    def delete(self, video_id, filename):
        self.send_request({"action": "DELETE", "video_id": video_id, "filename": filename})


def main(argv=None):
    parser = argparse.ArgumentParser(description="Talk to the segment router")
    parser.add_argument("--host", default=ROUTER_HOST)
    parser.add_argument("--port", type=int, default=ROUTER_PORT)
    parser.add_argument("action", choices=["LIST_NODES", "ADD_NODE", "REMOVE_NODE", "READ", "WRITE", "DELETE"])
    parser.add_argument("args", nargs="*", help="node address, or video id and filename")
    parser.add_argument("--input", help="File whose bytes are written (WRITE)")
    parser.add_argument("--output", help="File to save read bytes to (READ); stdout otherwise")

    args = parser.parse_args(argv)
    client = RouterClient(args.host, args.port)

    if args.action in ("ADD_NODE", "REMOVE_NODE") and len(args.args) != 1:
        parser.error(f"{args.action} requires a node address")
    if args.action in ("READ", "WRITE", "DELETE") and len(args.args) != 2:
        parser.error(f"{args.action} requires a video id and a filename")
    if args.action == "WRITE" and not args.input:
        parser.error("WRITE requires --input")

    try:
        if args.action == "LIST_NODES":
            for node in client.list_nodes():
                print(node)
        elif args.action == "ADD_NODE":
            response = client.add_node(args.args[0])
            print(f"Migrated {response['migrated_file_count']} files")
        elif args.action == "REMOVE_NODE":
            response = client.remove_node(args.args[0])
            if response["status"] == "UNKNOWN_NODE":
                print(f"Node {args.args[0]} is not registered")
            else:
                print(f"Migrated {response['migrated_file_count']} files")
        elif args.action == "READ":
            data = client.read(*args.args)
            if args.output:
                with open(args.output, "wb") as f:
                    f.write(data)
            else:
                sys.stdout.buffer.write(data)
        elif args.action == "WRITE":
            with open(args.input, "rb") as f:
                client.write(args.args[0], args.args[1], f.read())
            print("Stored")
        elif args.action == "DELETE":
            client.delete(*args.args)
            print("Deleted")
    except SegstoreError as e:
        print(f"[Client] Error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
