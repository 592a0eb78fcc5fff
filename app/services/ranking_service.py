from sqlalchemy import func
from app.extensions import db
from app.models.claim import Claim, ClaimComment
from app.models.score_cache import SourceScoreCache
from app.models.source import Source
from app.utils.db import safe_query

DEFAULT_PER_PAGE = 20
MAX_PER_PAGE = 100

# Tier bands shown on each hall
FAME_TIERS = (0, 1)
SHAME_TIERS = (3, 4)


def _page_bounds(page, per_page):
    page = max(int(page or 1), 1)
    per_page = max(1, min(int(per_page or DEFAULT_PER_PAGE), MAX_PER_PAGE))
    return page, per_page, (page - 1) * per_page


def _empty_page(page, per_page):
    return {'items': [], 'total': 0, 'page': page, 'per_page': per_page, 'has_more': False}


def controversy_score(helpful, not_helpful):
    """Vote balance times volume. Zero unless both sides have votes."""
    if helpful <= 0 or not_helpful <= 0:
        return 0.0
    balance = min(helpful, not_helpful) / max(helpful, not_helpful)
    return round(balance * (helpful + not_helpful), 2)


def _source_summary(source_row):
    return {
        'id': source_row.id,
        'slug': source_row.slug,
        'name': source_row.name,
        'type': source_row.type,
        'path': source_row.path,
        'depth': source_row.depth,
    }


class RankingService:
    """Derived leaderboards over the score cache and claim activity."""

    def _visible_sources(self):
        return db.session.query(
            Source.id, Source.slug, Source.name, Source.type, Source.path, Source.depth,
            SourceScoreCache.tier, SourceScoreCache.claim_count,
            SourceScoreCache.normalized_score,
        ).join(
            SourceScoreCache, SourceScoreCache.source_id == Source.id,
        ).filter(
            Source.deleted_at.is_(None),
            Source.approval_status != 'rejected',
        )

    def _tier_page(self, tiers, worst_first, sort, page, per_page, context):
        page, per_page, offset = _page_bounds(page, per_page)

        def query():
            base = self._visible_sources().filter(
                SourceScoreCache.tier.isnot(None),
                SourceScoreCache.tier.in_(tiers),
            )
            tier_order = SourceScoreCache.tier.desc() if worst_first else SourceScoreCache.tier.asc()
            if sort == 'claims':
                ordering = (SourceScoreCache.claim_count.desc(), tier_order)
            else:
                ordering = (tier_order, SourceScoreCache.claim_count.desc())

            total = base.count()
            rows = base.order_by(*ordering, Source.name.asc()).limit(per_page).offset(offset).all()
            items = []
            for row in rows:
                item = _source_summary(row)
                item['tier'] = row.tier
                item['claim_count'] = row.claim_count
                item['normalized_score'] = round(row.normalized_score or 0.0, 2)
                items.append(item)
            return {
                'items': items,
                'total': total,
                'page': page,
                'per_page': per_page,
                'has_more': offset + len(items) < total,
            }

        return safe_query(query, _empty_page(page, per_page), context)

    def hall_of_fame(self, sort='tier', page=1, per_page=DEFAULT_PER_PAGE):
        """Most human sources (tiers 0-1). Sources without claims are not ranked."""
        return self._tier_page(FAME_TIERS, False, sort, page, per_page, 'hall_of_fame')

    def hall_of_shame(self, sort='tier', page=1, per_page=DEFAULT_PER_PAGE):
        """Most AI-heavy sources (tiers 3-4)."""
        return self._tier_page(SHAME_TIERS, True, sort, page, per_page, 'hall_of_shame')

    def recently_added(self, limit=DEFAULT_PER_PAGE):
        limit = max(1, min(int(limit or DEFAULT_PER_PAGE), MAX_PER_PAGE))

        def query():
            rows = db.session.query(
                Source.id, Source.slug, Source.name, Source.type, Source.path, Source.depth,
                Source.created_at, SourceScoreCache.tier, SourceScoreCache.claim_count,
            ).outerjoin(
                SourceScoreCache, SourceScoreCache.source_id == Source.id,
            ).filter(
                Source.deleted_at.is_(None),
                Source.approval_status != 'rejected',
            ).order_by(Source.created_at.desc(), Source.id.desc()).limit(limit).all()

            items = []
            for row in rows:
                item = _source_summary(row)
                item['tier'] = row.tier
                item['claim_count'] = row.claim_count or 0
                item['created_at'] = row.created_at.isoformat() if row.created_at else None
                items.append(item)
            return items

        return safe_query(query, [], 'recently_added')

    def most_controversial(self, sort='controversy', page=1, per_page=DEFAULT_PER_PAGE):
        """
        Sources whose claims split the voters.
        H and N are summed over a source's live claims; only sources with
        votes on both sides are listed. sort='votes' ranks by H + N instead.
        """
        page, per_page, offset = _page_bounds(page, per_page)

        def query():
            helpful = func.sum(Claim.helpful_votes)
            not_helpful = func.sum(Claim.not_helpful_votes)
            rows = db.session.query(
                Source.id, Source.slug, Source.name, Source.type, Source.path, Source.depth,
                SourceScoreCache.tier,
                helpful.label('helpful'),
                not_helpful.label('not_helpful'),
            ).join(
                Claim, Claim.source_id == Source.id,
            ).outerjoin(
                SourceScoreCache, SourceScoreCache.source_id == Source.id,
            ).filter(
                Claim.deleted_at.is_(None),
                Source.deleted_at.is_(None),
                Source.approval_status != 'rejected',
            ).group_by(
                Source.id, Source.slug, Source.name, Source.type, Source.path, Source.depth,
                SourceScoreCache.tier,
            ).having(helpful > 0, not_helpful > 0).all()

            ranked = []
            for row in rows:
                item = _source_summary(row)
                item['tier'] = row.tier
                item['helpful_votes'] = int(row.helpful)
                item['not_helpful_votes'] = int(row.not_helpful)
                item['total_votes'] = item['helpful_votes'] + item['not_helpful_votes']
                item['controversy'] = controversy_score(item['helpful_votes'], item['not_helpful_votes'])
                ranked.append(item)

            key = 'total_votes' if sort == 'votes' else 'controversy'
            ranked.sort(key=lambda i: (-i[key], i['name'].lower()))
            items = ranked[offset:offset + per_page]
            return {
                'items': items,
                'total': len(ranked),
                'page': page,
                'per_page': per_page,
                'has_more': offset + len(items) < len(ranked),
            }

        return safe_query(query, _empty_page(page, per_page), 'most_controversial')

    def most_disputed(self, page=1, per_page=DEFAULT_PER_PAGE):
        """Sources ranked by live dispute comments on their live claims."""
        page, per_page, offset = _page_bounds(page, per_page)

        def query():
            dispute_count = func.count(ClaimComment.id)
            base = db.session.query(
                Source.id, Source.slug, Source.name, Source.type, Source.path, Source.depth,
                SourceScoreCache.tier,
                dispute_count.label('dispute_count'),
            ).join(
                Claim, Claim.source_id == Source.id,
            ).join(
                ClaimComment, ClaimComment.claim_id == Claim.id,
            ).outerjoin(
                SourceScoreCache, SourceScoreCache.source_id == Source.id,
            ).filter(
                ClaimComment.is_dispute.is_(True),
                ClaimComment.deleted_at.is_(None),
                Claim.deleted_at.is_(None),
                Source.deleted_at.is_(None),
                Source.approval_status != 'rejected',
            ).group_by(
                Source.id, Source.slug, Source.name, Source.type, Source.path, Source.depth,
                SourceScoreCache.tier,
            )

            total = base.count()
            rows = base.order_by(
                dispute_count.desc(), Source.name.asc(),
            ).limit(per_page).offset(offset).all()

            items = []
            for row in rows:
                item = _source_summary(row)
                item['tier'] = row.tier
                item['dispute_count'] = row.dispute_count
                items.append(item)
            return {
                'items': items,
                'total': total,
                'page': page,
                'per_page': per_page,
                'has_more': offset + len(items) < total,
            }

        return safe_query(query, _empty_page(page, per_page), 'most_disputed')
