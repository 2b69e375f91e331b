from flask import Flask, request, jsonify
from config import ADMIN_APP_PORT, ROUTER_HOST, ROUTER_PORT, configure_logging
from client import RouterClient
from errors import DuplicateNode, NetworkError, NotFound, SegstoreError
from hashing_ring import HashRing
from node_client import StorageClient

app = Flask(__name__)


class SystemManager:
    def __init__(self, host=ROUTER_HOST, port=ROUTER_PORT):
        self.router = RouterClient(host, port)

    def check_router_status(self):
        try:
            self.router.list_nodes()
            return True
        except SegstoreError:
            return False

    def check_node_status(self, address):
        try:
            return StorageClient(address).ping()
        except (SegstoreError, ValueError):
            return False

    def get_nodes(self):
        try:
            return self.router.list_nodes()
        except SegstoreError:
            return []


system_manager = SystemManager()


def error_response(e, status):
    return jsonify({'success': False, 'message': str(e)}), status


@app.route('/api/status')
def get_status():
    nodes = system_manager.get_nodes()
    return jsonify({
        'router': {
            'active': system_manager.check_router_status(),
            'address': f"{system_manager.router.host}:{system_manager.router.port}",
        },
        'nodes': {node: {'active': system_manager.check_node_status(node)} for node in nodes},
        'active_nodes_count': len(nodes),
    })


@app.route('/api/nodes', methods=['GET'])
def list_nodes():
    try:
        return jsonify({'nodes': system_manager.router.list_nodes()})
    except NetworkError as e:
        return error_response(e, 502)


@app.route('/api/nodes', methods=['POST'])
def add_node():
    address = (request.get_json(silent=True) or {}).get('node_address')
    if not address:
        return jsonify({'success': False, 'message': 'node_address is required'}), 400
    try:
        response = system_manager.router.add_node(address)
    except DuplicateNode as e:
        return error_response(e, 409)
    except NetworkError as e:
        return error_response(e, 502)
    except SegstoreError as e:
        return error_response(e, 400)
    return jsonify({
        'success': True,
        'message': f'Node {address} added',
        'migrated_file_count': response['migrated_file_count'],
        'failed': response.get('failed', 0),
        'orphaned': response.get('orphaned', 0),
    })


@app.route('/api/nodes/<path:address>', methods=['DELETE'])
def remove_node(address):
    try:
        response = system_manager.router.remove_node(address)
    except NetworkError as e:
        return error_response(e, 502)
    except SegstoreError as e:
        return error_response(e, 400)
    if response['status'] == 'UNKNOWN_NODE':
        return jsonify({'success': True, 'message': f'Node {address} is not registered',
                        'migrated_file_count': 0})
    return jsonify({
        'success': True,
        'message': f'Node {address} removed',
        'migrated_file_count': response['migrated_file_count'],
        'failed': response.get('failed', 0),
        'orphaned': response.get('orphaned', 0),
    })


@app.route('/api/content/<video_id>/<filename>', methods=['GET'])
def read_content(video_id, filename):
    try:
        data = system_manager.router.read(video_id, filename)
    except NotFound as e:
        return error_response(e, 404)
    except NetworkError as e:
        return error_response(e, 502)
    except SegstoreError as e:
        return error_response(e, 400)
    return app.response_class(data, mimetype='application/octet-stream')


@app.route('/api/content/<video_id>/<filename>', methods=['PUT'])
def write_content(video_id, filename):
    try:
        system_manager.router.write(video_id, filename, request.get_data())
    except NetworkError as e:
        return error_response(e, 502)
    except SegstoreError as e:
        return error_response(e, 400)
    return jsonify({'success': True, 'message': f'{video_id}/{filename} stored'}), 201


@app.route('/api/content/<video_id>/<filename>', methods=['DELETE'])
def delete_content(video_id, filename):
    try:
        system_manager.router.delete(video_id, filename)
    except NotFound as e:
        return error_response(e, 404)
    except NetworkError as e:
        return error_response(e, 502)
    except SegstoreError as e:
        return error_response(e, 400)
    return jsonify({'success': True, 'message': f'{video_id}/{filename} deleted'})


@app.route('/api/hash_ring')
def get_hash_ring():
    nodes = system_manager.get_nodes()
    ring = HashRing(nodes)
    ring_data = [
        {'node': ring.node_for_point(point).address, 'hash': f"{point:016x}"}
        for point in ring.points
    ]
    return jsonify({'ring_data': ring_data, 'active_nodes': nodes})


if __name__ == '__main__':
    configure_logging()
    app.run(host='0.0.0.0', port=ADMIN_APP_PORT)
