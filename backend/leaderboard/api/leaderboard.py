from flask import Blueprint, jsonify, request, current_app
from flask_login import login_required
from leaderboard import get_live_leaderboard
from leaderboard.services.store import StoreUnavailable, isoformat


leaderboard = Blueprint('leaderboard', __name__)


def _entries(records):
    return [
        {'rank': rank, 'username': r.username, 'score': r.score, 'timestamp': isoformat(r.submitted_at)}
        for rank, r in enumerate(records, start=1)
    ]


def _top_scores_response(limit):
    try:
        records = get_live_leaderboard().top_scores(limit)
    except StoreUnavailable:
        return jsonify({'error': 'Failed to get top scores', 'retryable': True}), 503
    return jsonify({'topScores': _entries(records), 'count': len(records)})


@leaderboard.route('/', methods=['GET'])
def list_scores():
    cfg = current_app.config
    max_limit = int(cfg.get('LEADERBOARD_MAX_LIMIT', 100))
    default = int(cfg.get('LEADERBOARD_SIZE', 10))
    try:
        limit = int(request.args.get('limit', default))
    except (TypeError, ValueError):
        limit = default
    return _top_scores_response(min(max(limit, 1), max_limit))


@leaderboard.route('/top', methods=['GET'])
def top_score():
    try:
        records = get_live_leaderboard().top_scores(1)
    except StoreUnavailable:
        return jsonify({'error': 'Failed to get leaderboard', 'retryable': True}), 503
    if not records:
        return jsonify({'topScore': None, 'message': 'No scores submitted yet'})
    return jsonify({'topScore': _entries(records)[0]})


@leaderboard.route('/top/<limit>', methods=['GET'])
def top_scores(limit):
    max_limit = int(current_app.config.get('LEADERBOARD_MAX_LIMIT', 100))
    try:
        limit = int(limit)
    except ValueError:
        limit = 0
    if limit < 1 or limit > max_limit:
        return jsonify({'error': f'Limit must be a number between 1 and {max_limit}'}), 400
    return _top_scores_response(limit)


@leaderboard.route('/stats', methods=['GET'])
def stats():
    return jsonify(get_live_leaderboard().get_stats())


@leaderboard.route('/admin/notify', methods=['POST'])
@login_required
def push_notification():
    data = request.get_json(silent=True) or {}
    message = data.get('message')
    if not message:
        return jsonify({'error': 'message is required'}), 400
    delivered = get_live_leaderboard().push_custom(message, data.get('data'), room=data.get('room'))
    current_app.logger.info(f"[custom-notification] room={data.get('room') or '*'} delivered={delivered}")
    return jsonify({'delivered': delivered}), 202
