from flask import Blueprint, jsonify, request
from app.auth import get_current_user, require_verified_user
from app.errors import ValidationError
from app.services.claim_service import ClaimService
from app.services.scoring_service import tier_name
from app.services.source_registry import SourceRegistry
from app.services.tree_query_service import TreeQueryService

sources_bp = Blueprint('sources', __name__)
registry = SourceRegistry()
tree = TreeQueryService()
claim_service = ClaimService()


def _detail_payload(source):
    payload = tree.source_detail(source)
    payload['tier_name'] = tier_name(payload['tier'])
    return payload


@sources_bp.route('', methods=['POST'])
@require_verified_user
def create_source():
    """Create a source, optionally under a parent."""
    data = request.get_json(silent=True)
    if not data:
        return jsonify({'error': 'JSON body required'}), 400
    if 'name' not in data:
        return jsonify({'error': 'Missing fields: [\'name\']'}), 400

    parent_id = data.get('parent_id')
    if parent_id is not None and (isinstance(parent_id, bool) or not isinstance(parent_id, int)):
        raise ValidationError('"parent_id" must be an integer')

    result = registry.create_source(
        name=data['name'],
        created_by_user_id=get_current_user().id,
        source_type=data.get('type'),
        description=data.get('description'),
        url=data.get('url'),
        parent_id=parent_id,
    )
    return jsonify(result), 201


@sources_bp.route('/<int:source_id>')
def get_source(source_id):
    source = registry.get_source(source_id)
    return jsonify(_detail_payload(source))


@sources_bp.route('/by-path/<path:slug_path>')
def get_source_by_path(slug_path):
    """Resolve /reddit/r-programming style paths."""
    source_id = registry.resolve_by_slug_path(slug_path.split('/'))
    return jsonify(_detail_payload(registry.get_source(source_id)))


@sources_bp.route('/<int:source_id>/children')
def get_children(source_id):
    registry.get_source(source_id)
    limit = request.args.get('limit', type=int)
    offset = request.args.get('offset', 0, type=int)
    return jsonify(tree.children_page(source_id, limit=limit, offset=offset))


@sources_bp.route('/<int:source_id>/breadcrumbs')
def get_breadcrumbs(source_id):
    source = registry.get_source(source_id)
    return jsonify(tree.breadcrumbs(source.path))


@sources_bp.route('/browse')
def browse():
    """Tree view. Filters return matches plus their ancestors."""
    tier_min = request.args.get('tier_min', type=int)
    tier_max = request.args.get('tier_max', type=int)
    nodes = tree.browse(
        query=(request.args.get('q') or '').strip() or None,
        source_type=(request.args.get('type') or '').strip() or None,
        tier_min=tier_min,
        tier_max=tier_max,
    )
    return jsonify({'nodes': nodes, 'count': len(nodes)})


@sources_bp.route('/types')
def list_types():
    return jsonify(tree.source_types())


@sources_bp.route('/<int:source_id>/claims')
def list_claims(source_id):
    registry.get_source(source_id)
    page = request.args.get('page', 1, type=int)
    per_page = min(request.args.get('per_page', 20, type=int), 100)

    pagination = claim_service.list_claims(source_id, page=page, per_page=per_page)
    return jsonify({
        'claims': [c.to_dict() for c in pagination.items],
        'total': pagination.total,
        'page': page,
    })


@sources_bp.route('/<int:source_id>/claims', methods=['POST'])
@require_verified_user
def submit_claim(source_id):
    data = request.get_json(silent=True)
    if not data:
        return jsonify({'error': 'JSON body required'}), 400

    required = ['content', 'impact', 'confidence']
    missing = [f for f in required if f not in data]
    if missing:
        return jsonify({'error': f'Missing fields: {missing}'}), 400

    claim = claim_service.submit_claim(
        get_current_user(),
        source_id,
        content=data['content'],
        impact=data['impact'],
        confidence=data['confidence'],
    )
    payload = claim.to_dict()
    payload['source_score'] = claim_service.cache.score_for(source_id)
    return jsonify(payload), 201
