from flask import Blueprint, jsonify
from .rooms import registry

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'status': 'ok', 'app': 'klassespill', 'rooms': len(registry.rooms)})


@main.route('/ping')
def ping():
    return 'pong'
