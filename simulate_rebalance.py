import os
import subprocess
import sys
import tempfile
import time
from client import RouterClient
from errors import NetworkError

NODE_PORTS = [9001, 9002, 9003]
JOINING_PORT = 9004
ROUTER_PORT = 9081

processes = []


def start_storage_node(port, base_dir):
    print(f"[Sim] Starting storage node on port {port}")
    proc = subprocess.Popen([sys.executable, "storage_node.py", "--port", str(port), base_dir])
    processes.append(proc)
    return proc


def start_router(ports):
    nodes = ",".join(f"localhost:{p}" for p in ports)
    print(f"[Sim] Starting router with {nodes}")
    proc = subprocess.Popen([sys.executable, "router_server.py", "--port", str(ROUTER_PORT), "--nodes", nodes])
    processes.append(proc)
    return proc


def wait_for_router(client, attempts=50):
    for _ in range(attempts):
        try:
            return client.list_nodes()
        except NetworkError:
            time.sleep(0.1)
    raise RuntimeError("Router did not come up")


def write_sample_segments(client, videos=3, chunks=8):
    segments = {}
    for v in range(videos):
        video_id = f"v{v + 1}"
        for c in range(chunks):
            filename = f"seg-{c:03d}.m4s"
            data = os.urandom(4096)
            client.write(video_id, filename, data)
            segments[(video_id, filename)] = data
    print(f"[Sim] Wrote {len(segments)} segments")
    return segments


def verify_segments(client, segments):
    bad = [k for k, data in segments.items() if client.read(*k) != data]
    print(f"[Sim] {len(segments) - len(bad)}/{len(segments)} segments read back intact")
    return not bad


if __name__ == "__main__":
    root = tempfile.mkdtemp(prefix="segstore-sim-")
    try:
        for port in NODE_PORTS + [JOINING_PORT]:
            start_storage_node(port, os.path.join(root, str(port)))
        start_router(NODE_PORTS)

        client = RouterClient(port=ROUTER_PORT)
        print(f"[Sim] Nodes: {wait_for_router(client)}")
        segments = write_sample_segments(client)
        verify_segments(client, segments)

        response = client.add_node(f"localhost:{JOINING_PORT}")
        print(f"[Sim] ADD_NODE migrated {response['migrated_file_count']} files")
        verify_segments(client, segments)

        response = client.remove_node(f"localhost:{JOINING_PORT}")
        print(f"[Sim] REMOVE_NODE migrated {response['migrated_file_count']} files")
        verify_segments(client, segments)

        response = client.remove_node(f"localhost:{NODE_PORTS[1]}")
        print(f"[Sim] REMOVE_NODE migrated {response['migrated_file_count']} files")
        print(f"[Sim] Nodes: {client.list_nodes()}")
        verify_segments(client, segments)

    finally:
        print("\n Cleaning up...")
        for proc in processes:
            if proc.poll() is None:
                proc.terminate()
                proc.wait()
