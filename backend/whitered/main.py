from flask import Blueprint, current_app

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return 'White & Red backend OK'

@main.route('/health')
def health():
    services = current_app.extensions['whitered']
    return {'status': 'ok', 'rooms': len(services.registry)}
