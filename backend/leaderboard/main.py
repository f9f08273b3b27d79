from flask import Blueprint, request, jsonify
from flask_login import login_user, logout_user, login_required, current_user
from leaderboard import db
from leaderboard.models import User
from leaderboard.services.store import isoformat, utcnow

main = Blueprint('main', __name__)


@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the leaderboard server!'})


@main.route('/health')
def health():
    return jsonify({
        'status': 'healthy',
        'timestamp': isoformat(utcnow()),
        'service': 'leaderboard-api',
    })


@main.route('/api/auth/register', methods=['POST'])
def register():
    data = request.get_json(silent=True) or {}
    username = (data.get('username') or '').strip()
    password = data.get('password')
    if not username or not password:
        return jsonify({'error': 'Missing username or password'}), 400

    if User.query.filter_by(username=username).first():
        return jsonify({'error': 'Username already exists'}), 400

    user = User(username=username)
    user.set_password(password)
    db.session.add(user)
    db.session.commit()
    login_user(user)
    return jsonify({'success': True, 'user': user.to_dict()}), 201


@main.route('/api/auth/login', methods=['POST'])
def login():
    data = request.get_json(silent=True) or {}
    user = User.query.filter_by(username=data.get('username')).first()
    if user and user.check_password(data.get('password') or ''):
        login_user(user, remember=True)
        return jsonify({'success': True, 'user': user.to_dict()})
    return jsonify({'error': 'Invalid username or password'}), 401


@main.route('/api/auth/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return jsonify({'success': True})


@main.route('/api/auth/me')
@login_required
def me():
    return jsonify({'success': True, 'user': current_user.to_dict()})
