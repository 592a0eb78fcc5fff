from flask import Blueprint, jsonify, request
from app.auth import get_current_user, require_user, require_verified_user
from app.services.claim_service import ClaimService

claims_bp = Blueprint('claims', __name__)
claim_service = ClaimService()


@claims_bp.route('/<int:claim_id>', methods=['PATCH'])
@require_verified_user
def edit_claim(claim_id):
    """Edit content, impact or confidence of your own claim."""
    data = request.get_json(silent=True)
    if not data:
        return jsonify({'error': 'JSON body required'}), 400

    claim = claim_service.edit_claim(
        get_current_user(),
        claim_id,
        content=data.get('content'),
        impact=data.get('impact'),
        confidence=data.get('confidence'),
    )
    return jsonify(claim.to_dict())


@claims_bp.route('/<int:claim_id>', methods=['DELETE'])
@require_user
def delete_claim(claim_id):
    claim = claim_service.delete_claim(get_current_user(), claim_id)
    return jsonify({'status': 'deleted', 'id': claim.id})


@claims_bp.route('/<int:claim_id>/vote', methods=['POST'])
@require_verified_user
def vote(claim_id):
    """Vote a claim helpful or not helpful. Voting again switches sides."""
    data = request.get_json(silent=True)
    if not data or 'is_helpful' not in data:
        return jsonify({'error': 'JSON body with "is_helpful" required'}), 400

    summary = claim_service.vote_on_claim(get_current_user(), claim_id, data['is_helpful'])
    return jsonify(summary)


@claims_bp.route('/<int:claim_id>/vote', methods=['DELETE'])
@require_user
def remove_vote(claim_id):
    summary = claim_service.remove_vote(get_current_user(), claim_id)
    return jsonify(summary)


@claims_bp.route('/<int:claim_id>/comments', methods=['POST'])
@require_verified_user
def add_comment(claim_id):
    """Comment on a claim; is_dispute marks it as a dispute."""
    data = request.get_json(silent=True)
    if not data or 'content' not in data:
        return jsonify({'error': 'JSON body with "content" required'}), 400

    comment = claim_service.add_comment(
        get_current_user(),
        claim_id,
        content=data['content'],
        is_dispute=data.get('is_dispute', False),
    )
    return jsonify(comment.to_dict()), 201
