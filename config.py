# config.py

import logging

# Storage nodes registered by the router at startup
STORAGE_NODES = ["localhost:8090", "localhost:8091", "localhost:8092"]

STORAGE_HOST = "localhost"
STORAGE_PORT = 8090

ROUTER_HOST = "localhost"
ROUTER_PORT = 8081

ADMIN_APP_PORT = 8000

# Seconds before a storage RPC is abandoned and surfaced as a NetworkError
RPC_TIMEOUT = 10.0
PING_TIMEOUT = 2.0

# Concurrent key migrations per join/leave
MIGRATION_WORKERS = 8

# Largest frame accepted on the wire (segments are a few MB at most)
MAX_FRAME_SIZE = 256 * 1024 * 1024

LOG_LEVEL = logging.INFO
LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level=LOG_LEVEL):
    logging.basicConfig(level=level, format=LOG_FORMAT)
