# router_server.py

import argparse
import logging
import pickle
import socket
import threading
from config import (
    MIGRATION_WORKERS,
    ROUTER_HOST,
    ROUTER_PORT,
    RPC_TIMEOUT,
    STORAGE_NODES,
    configure_logging,
)
from content_router import ContentRouter
from errors import DuplicateNode, MembershipError, NetworkError, NotFound
from wire import recv_message, send_message

logger = logging.getLogger(__name__)

ACCEPT_POLL_INTERVAL = 0.5


class RouterServer:
    def __init__(self, router, host=ROUTER_HOST, port=ROUTER_PORT):
        self.router = router
        self.host = host
        self.port = port
        self._server = None
        self._running = False

    @property
    def address(self):
        return f"{self.host}:{self.port}"

    def handle_request(self, request):
        action = request.get("action")
        try:
            if action == "LIST_NODES":
                return {"status": "OK", "nodes": self.router.list_nodes()}

            if action == "ADD_NODE":
                report = self.router.add_node(request["node_address"])
                return {
                    "status": "OK",
                    "migrated_file_count": report.migrated_file_count,
                    "failed": len(report.copy_failures),
                    "orphaned": len(report.orphans),
                }

            if action == "REMOVE_NODE":
                report = self.router.remove_node(request["node_address"])
                return {
                    "status": "UNKNOWN_NODE" if report.unknown_node else "OK",
                    "migrated_file_count": report.migrated_file_count,
                    "failed": len(report.copy_failures),
                    "orphaned": len(report.orphans),
                }

            if action == "READ":
                data = self.router.read(request["video_id"], request["filename"])
                return {"status": "OK", "data": data}

            if action == "WRITE":
                self.router.write(request["video_id"], request["filename"], request["data"])
                return {"status": "STORED", "success": True}

            if action == "DELETE":
                self.router.delete(request["video_id"], request["filename"])
                return {"status": "DELETED", "success": True}

        except NotFound as e:
            return {"status": "NOT_FOUND", "message": str(e)}
        except DuplicateNode as e:
            return {"status": "DUPLICATE_NODE", "message": str(e)}
        except NetworkError as e:
            logger.warning("[Router] %s failed: %s", action, e)
            return {"status": "NETWORK_ERROR", "message": str(e)}
        except (MembershipError, KeyError, ValueError) as e:
            return {"status": "ERROR", "message": str(e)}

        return {"status": "ERROR", "message": f"Unknown action: {action}"}

    def handle_client(self, conn):
        with conn:
            try:
                request = recv_message(conn)
                if request is None:
                    return
                send_message(conn, self.handle_request(request))
            except (OSError, ValueError, pickle.UnpicklingError) as e:
                logger.warning("[Router] Connection error: %s", e)

    def bind(self):
        server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        server.bind((self.host, self.port))
        server.listen()
        server.settimeout(ACCEPT_POLL_INTERVAL)
        self.port = server.getsockname()[1]
        self._server = server
        self._running = True
        logger.info("[Router] Listening on %s", self.address)

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
            # admin calls wait on migrations, so no read timeout on this side
            conn.settimeout(None)
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


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Segment router and membership admin service")
    parser.add_argument("--host", default=ROUTER_HOST)
    parser.add_argument("--port", type=int, default=ROUTER_PORT)
    parser.add_argument("--nodes", default=",".join(STORAGE_NODES),
                        help="Comma-separated storage node addresses (host:port)")
    parser.add_argument("--timeout", type=float, default=RPC_TIMEOUT,
                        help="Seconds before a storage RPC is abandoned")
    parser.add_argument("--migration-workers", type=int, default=MIGRATION_WORKERS)
    args = parser.parse_args(argv)
    if not [n for n in args.nodes.split(",") if n.strip()]:
        parser.error("at least one storage node is required")
    return args


def main(argv=None):
    args = parse_args(argv)
    configure_logging()
    router = ContentRouter(args.nodes.split(","), timeout=args.timeout,
                           max_workers=args.migration_workers)
    server = RouterServer(router, host=args.host, port=args.port)
    try:
        server.start()
    except KeyboardInterrupt:
        server.stop()


if __name__ == "__main__":
    main()
