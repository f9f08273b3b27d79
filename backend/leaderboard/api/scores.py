from flask import Blueprint, jsonify, request
from flask_login import login_required, current_user
from leaderboard import get_live_leaderboard
from leaderboard.services.store import StoreUnavailable
from leaderboard.services.submission import SubmissionReason


scores = Blueprint('scores', __name__)

_STATUS_BY_REASON = {
    SubmissionReason.ACCEPTED: 201,
    SubmissionReason.INVALID_SCORE: 400,
    SubmissionReason.ALREADY_SUBMITTED: 409,
    SubmissionReason.STORE_FAILURE: 503,
}


@scores.route('/submit', methods=['POST'])
@login_required
def submit_score():
    data = request.get_json(silent=True) or {}
    if 'score' not in data:
        return jsonify({'error': 'score is required'}), 400

    live = get_live_leaderboard()
    outcome = live.submit_score(current_user.user_id, current_user.username, data['score'])

    payload = outcome.to_dict()
    if outcome.accepted:
        payload['score'] = outcome.record.score
        payload['isFirstScore'] = True
        payload['notificationSent'] = outcome.record.score > live.gate.high_score_threshold
    else:
        payload['error'] = outcome.message
    return jsonify(payload), _STATUS_BY_REASON[outcome.reason]


@scores.route('/can-submit', methods=['GET'])
@login_required
def can_submit():
    try:
        record = get_live_leaderboard().user_score(current_user.user_id)
    except StoreUnavailable:
        return jsonify({'error': 'Failed to check submission status', 'retryable': True}), 503
    return jsonify({
        'canSubmit': record is None,
        'hasSubmitted': record is not None,
        'currentScore': record.score if record else None,
    })


@scores.route('/my-score', methods=['GET'])
@login_required
def my_score():
    try:
        record = get_live_leaderboard().user_score(current_user.user_id)
    except StoreUnavailable:
        return jsonify({'error': 'Failed to get user score', 'retryable': True}), 503
    if record is None:
        return jsonify({'score': None, 'message': 'No score found for this user'})
    return jsonify({'score': record.to_dict()})
