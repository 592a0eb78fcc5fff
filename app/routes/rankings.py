from flask import Blueprint, jsonify, request
from app.services.ranking_service import RankingService

rankings_bp = Blueprint('rankings', __name__)
ranking_service = RankingService()


def _page_args():
    return request.args.get('page', 1, type=int), request.args.get('per_page', 20, type=int)


@rankings_bp.route('/hall-of-fame')
def hall_of_fame():
    page, per_page = _page_args()
    sort = 'claims' if request.args.get('sort') == 'claims' else 'tier'
    return jsonify(ranking_service.hall_of_fame(sort=sort, page=page, per_page=per_page))


@rankings_bp.route('/hall-of-shame')
def hall_of_shame():
    page, per_page = _page_args()
    sort = 'claims' if request.args.get('sort') == 'claims' else 'tier'
    return jsonify(ranking_service.hall_of_shame(sort=sort, page=page, per_page=per_page))


@rankings_bp.route('/recent')
def recent():
    limit = request.args.get('limit', 20, type=int)
    return jsonify(ranking_service.recently_added(limit=limit))


@rankings_bp.route('/controversial')
def controversial():
    page, per_page = _page_args()
    sort = 'votes' if request.args.get('sort') == 'votes' else 'controversy'
    return jsonify(ranking_service.most_controversial(sort=sort, page=page, per_page=per_page))


@rankings_bp.route('/disputed')
def disputed():
    page, per_page = _page_args()
    return jsonify(ranking_service.most_disputed(page=page, per_page=per_page))
