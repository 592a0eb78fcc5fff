from flask import current_app
from sqlalchemy import func, or_
from app.errors import ValidationError
from app.extensions import db
from app.models.source import Source, SourceAncestorPath, split_path
from app.models.score_cache import SourceScoreCache
from app.utils.db import safe_query

# Depth loaded by the unfiltered browse view (0 = roots, 1 = roots + children)
INITIAL_LOAD_DEPTH = 1
DEFAULT_MATCH_LIMIT = 200
DEFAULT_CHILDREN_PER_PAGE = 20


def _page_limit(limit, config_key, default):
    if limit is None:
        return current_app.config.get(config_key, default)
    if isinstance(limit, bool) or not isinstance(limit, int) or limit < 1:
        raise ValidationError('"limit" must be a positive integer')
    return limit


def _escape_like(term):
    return term.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


def _visible():
    return (
        Source.deleted_at.is_(None),
        Source.approval_status != 'rejected',
    )


def _node_query():
    return db.session.query(
        Source.id,
        Source.slug,
        Source.name,
        Source.type,
        Source.depth,
        Source.parent_id,
        Source.path,
        SourceScoreCache.tier,
        SourceScoreCache.claim_count,
    ).outerjoin(SourceScoreCache, SourceScoreCache.source_id == Source.id)


def _node_dict(row, child_counts, is_match):
    return {
        'id': row.id,
        'slug': row.slug,
        'name': row.name,
        'type': row.type,
        'tier': row.tier,
        'claim_count': row.claim_count or 0,
        'depth': row.depth,
        'parent_id': row.parent_id,
        'child_count': child_counts.get(row.id, 0),
        'is_match': is_match,
    }


class TreeQueryService:
    """Read-side views over the source hierarchy and its cached scores."""

    def breadcrumbs(self, path):
        """Root-to-self trail for a materialized path, one lookup for all ids."""
        def query():
            ids = split_path(path)
            if not ids:
                return []
            rows = db.session.query(
                Source.id, Source.slug, Source.name, Source.depth,
            ).filter(Source.id.in_(ids)).all()
            rows = sorted(rows, key=lambda r: r.depth)
            return [
                {'id': r.id, 'slug': r.slug, 'name': r.name, 'depth': r.depth}
                for r in rows
            ]

        return safe_query(query, [], 'breadcrumbs')

    def child_counts(self, parent_ids):
        """Direct visible children per parent, as one grouped count."""
        parent_ids = list(parent_ids)
        if not parent_ids:
            return {}
        rows = db.session.query(
            Source.parent_id, func.count(Source.id),
        ).filter(
            Source.parent_id.in_(parent_ids),
            *_visible(),
        ).group_by(Source.parent_id).all()
        return {parent_id: count for parent_id, count in rows}

    def children_page(self, parent_id, limit=None, offset=0):
        """
        One page of a node's children, busiest first.
        Fetches limit+1 rows so has_more needs no separate count.
        """
        limit = _page_limit(limit, 'CHILDREN_PER_PAGE', DEFAULT_CHILDREN_PER_PAGE)
        offset = max(offset or 0, 0)

        def query():
            rows = _node_query().filter(
                Source.parent_id == parent_id,
                *_visible(),
            ).order_by(
                func.coalesce(SourceScoreCache.claim_count, 0).desc(),
                Source.name.asc(),
            ).limit(limit + 1).offset(offset).all()

            has_more = len(rows) > limit
            rows = rows[:limit]
            counts = self.child_counts(r.id for r in rows)
            return {
                'children': [_node_dict(r, counts, True) for r in rows],
                'has_more': has_more,
            }

        return safe_query(query, {'children': [], 'has_more': False}, 'children_page')

    def browse(self, query=None, source_type=None, tier_min=None, tier_max=None, limit=None):
        """
        Flat node list for the browse tree.
        Without filters only the shallow tree is returned. With filters the
        matches come back together with every ancestor needed to place them,
        ancestors flagged is_match=False.
        """
        limit = _page_limit(limit, 'BROWSE_MATCH_LIMIT', DEFAULT_MATCH_LIMIT)
        has_filters = bool(query) or bool(source_type) or tier_min is not None or tier_max is not None

        def run():
            conditions = list(_visible())
            if source_type:
                conditions.append(Source.type == source_type)
            if tier_min is not None:
                conditions.append(SourceScoreCache.tier >= tier_min)
            if tier_max is not None:
                conditions.append(SourceScoreCache.tier <= tier_max)
            if query:
                term = f'%{_escape_like(query)}%'
                conditions.append(or_(
                    Source.name.ilike(term, escape='\\'),
                    Source.description.ilike(term, escape='\\'),
                ))
            if not has_filters:
                conditions.append(Source.depth <= INITIAL_LOAD_DEPTH)

            matches = _node_query().filter(*conditions).order_by(
                Source.depth.asc(), Source.name.asc(),
            ).limit(limit).all()
            match_ids = {r.id for r in matches}

            ancestors = []
            if has_filters and matches:
                ancestor_ids = set()
                for row in matches:
                    for ancestor_id in split_path(row.path)[:-1]:
                        if ancestor_id not in match_ids:
                            ancestor_ids.add(ancestor_id)
                if ancestor_ids:
                    ancestors = _node_query().filter(
                        Source.id.in_(ancestor_ids),
                        Source.deleted_at.is_(None),
                    ).all()

            seen = set()
            combined = []
            for row in list(ancestors) + list(matches):
                if row.id in seen:
                    continue
                seen.add(row.id)
                combined.append(row)
            combined.sort(key=lambda r: (r.depth, r.name.lower()))

            counts = self.child_counts(r.id for r in combined)
            return [_node_dict(r, counts, r.id in match_ids) for r in combined]

        return safe_query(run, [], 'browse')

    def source_types(self):
        def query():
            rows = db.session.query(Source.type).filter(
                Source.type.isnot(None),
                *_visible(),
            ).distinct().order_by(Source.type.asc()).all()
            return [r[0] for r in rows]

        return safe_query(query, [], 'source_types')

    def descendant_count(self, source_id):
        def query():
            return db.session.query(func.count(SourceAncestorPath.id)).join(
                Source, Source.id == SourceAncestorPath.source_id,
            ).filter(
                SourceAncestorPath.ancestor_id == source_id,
                SourceAncestorPath.source_id != source_id,
                *_visible(),
            ).scalar() or 0

        return safe_query(query, 0, 'descendant_count')

    def source_detail(self, source):
        """Source payload with score, breadcrumbs and subtree counts."""
        payload = source.to_dict()
        payload['breadcrumbs'] = self.breadcrumbs(source.path)
        counts = safe_query(lambda: self.child_counts([source.id]), {}, 'child_counts')
        payload['child_count'] = counts.get(source.id, 0)
        payload['descendant_count'] = self.descendant_count(source.id)
        return payload
