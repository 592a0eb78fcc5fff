from flask import Blueprint, jsonify, request
from app.auth import get_current_user, require_moderator, require_user
from app.services.moderation_service import ModerationService

moderation_bp = Blueprint('moderation', __name__)
moderation_service = ModerationService()


@moderation_bp.route('/sources/<int:source_id>/approve', methods=['POST'])
@require_moderator
def approve_source(source_id):
    data = request.get_json(silent=True) or {}
    source = moderation_service.approve_source(get_current_user(), source_id, data.get('reason'))
    return jsonify(source.to_dict())


@moderation_bp.route('/sources/<int:source_id>/reject', methods=['POST'])
@require_moderator
def reject_source(source_id):
    data = request.get_json(silent=True) or {}
    source = moderation_service.reject_source(get_current_user(), source_id, data.get('reason'))
    return jsonify(source.to_dict())


@moderation_bp.route('/remove', methods=['POST'])
@require_moderator
def remove_content():
    """Remove a source, claim or comment, with a logged reason."""
    data = request.get_json(silent=True)
    if not data:
        return jsonify({'error': 'JSON body required'}), 400

    required = ['target_type', 'target_id', 'reason']
    missing = [f for f in required if f not in data]
    if missing:
        return jsonify({'error': f'Missing fields: {missing}'}), 400

    entry = moderation_service.remove_content(
        get_current_user(),
        target_type=data['target_type'],
        target_id=data['target_id'],
        reason=data['reason'],
    )
    return jsonify(entry.to_dict()), 201


@moderation_bp.route('/logs')
@require_moderator
def list_logs():
    page = request.args.get('page', 1, type=int)
    per_page = min(request.args.get('per_page', 50, type=int), 200)

    pagination = moderation_service.list_logs(
        page=page, per_page=per_page, target_type=request.args.get('target_type'),
    )
    return jsonify({
        'logs': [entry.to_dict() for entry in pagination.items],
        'total': pagination.total,
        'page': page,
    })


@moderation_bp.route('/flags', methods=['POST'])
@require_user
def flag_content():
    """Any signed-in member may flag a source, claim or comment."""
    data = request.get_json(silent=True)
    if not data:
        return jsonify({'error': 'JSON body required'}), 400

    required = ['target_type', 'target_id', 'reason']
    missing = [f for f in required if f not in data]
    if missing:
        return jsonify({'error': f'Missing fields: {missing}'}), 400

    flag = moderation_service.flag_content(
        get_current_user(),
        target_type=data['target_type'],
        target_id=data['target_id'],
        reason=data['reason'],
    )
    return jsonify(flag.to_dict()), 201


@moderation_bp.route('/flags')
@require_moderator
def list_flags():
    page = request.args.get('page', 1, type=int)
    per_page = min(request.args.get('per_page', 20, type=int), 100)

    pagination = moderation_service.list_flags(
        get_current_user(), page=page, per_page=per_page,
        status=request.args.get('status', 'pending'),
    )
    return jsonify({
        'flags': [flag.to_dict() for flag in pagination.items],
        'total': pagination.total,
        'page': page,
    })


@moderation_bp.route('/flags/<int:flag_id>/resolve', methods=['POST'])
@require_moderator
def resolve_flag(flag_id):
    """Body: {"action": "approve" | "dismiss", "reason": str?, "remove_content": bool?}"""
    data = request.get_json(silent=True) or {}
    if 'action' not in data:
        return jsonify({'error': "Missing fields: ['action']"}), 400

    flag = moderation_service.resolve_flag(
        get_current_user(),
        flag_id,
        action=data['action'],
        reason=data.get('reason'),
        remove=bool(data.get('remove_content', False)),
    )
    return jsonify(flag.to_dict())
