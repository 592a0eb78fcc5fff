import logging
from datetime import datetime, timezone
from flask import current_app
from sqlalchemy.exc import IntegrityError
from app.errors import NotFound, PermissionDenied, ValidationError
from app.extensions import db
from app.models.claim import Claim, ClaimComment, ClaimVote
from app.models.source import Source
from app.services.score_cache_service import ScoreCacheService

logger = logging.getLogger(__name__)

CLAIM_MIN_LENGTH = 100
CLAIM_MAX_LENGTH = 2000
COMMENT_MIN_LENGTH = 10
COMMENT_MAX_LENGTH = 1000
SCALE_MIN = 1
SCALE_MAX = 5


def validate_scale(value, label):
    if isinstance(value, bool) or not isinstance(value, int) or not SCALE_MIN <= value <= SCALE_MAX:
        raise ValidationError(f'{label} must be between {SCALE_MIN} and {SCALE_MAX}')
    return value


def validate_length(text, label, min_length, max_length):
    text = (text or '').strip()
    if len(text) < min_length:
        raise ValidationError(f'{label} must be at least {min_length} characters')
    if len(text) > max_length:
        raise ValidationError(f'{label} must be at most {max_length} characters')
    return text


class ClaimService:
    """
    Claim, vote and comment writes.

    Every write that changes a source's claim-weight surface marks the
    source's score stale in the same transaction, then (when
    INSTANT_SCORE_RECALC is on) recomputes it right away.
    """

    def __init__(self, cache_service=None):
        self.cache = cache_service or ScoreCacheService()

    def submit_claim(self, user, source_id, content, impact, confidence):
        source = db.session.get(Source, source_id)
        if source is None or source.deleted_at is not None:
            raise NotFound(f'Source {source_id} not found')
        if source.approval_status == 'rejected':
            raise ValidationError('Claims cannot be added to a rejected source')

        content = validate_length(content, 'Claim', CLAIM_MIN_LENGTH, CLAIM_MAX_LENGTH)
        validate_scale(impact, 'Impact')
        validate_scale(confidence, 'Confidence')

        claim = Claim(
            source_id=source_id,
            user_id=user.id,
            content=content,
            impact=impact,
            confidence=confidence,
            helpful_votes=0,
            not_helpful_votes=0,
        )
        db.session.add(claim)
        self.cache.mark_stale(source_id)
        db.session.commit()
        logger.info("Claim %s submitted on source %s by user %s", claim.id, source_id, user.id)

        self.refresh_score(source_id)
        return claim

    def edit_claim(self, user, claim_id, content=None, impact=None, confidence=None):
        claim = self._active_claim(claim_id)
        if claim.user_id != user.id:
            raise PermissionDenied('Only the author can edit this claim')

        weight_changed = False
        content_changed = False
        if content is not None:
            content = validate_length(content, 'Claim', CLAIM_MIN_LENGTH, CLAIM_MAX_LENGTH)
            if content != claim.content:
                claim.content = content
                content_changed = True
        if impact is not None:
            validate_scale(impact, 'Impact')
            if impact != claim.impact:
                claim.impact = impact
                weight_changed = True
        if confidence is not None:
            validate_scale(confidence, 'Confidence')
            if confidence != claim.confidence:
                claim.confidence = confidence
                weight_changed = True

        if not (content_changed or weight_changed):
            return claim

        claim.content_updated_at = datetime.now(timezone.utc)
        if weight_changed:
            self.cache.mark_stale(claim.source_id)
        db.session.commit()

        if weight_changed:
            self.refresh_score(claim.source_id)
        return claim

    def delete_claim(self, user, claim_id):
        claim = self._active_claim(claim_id)
        if claim.user_id != user.id and not user.is_moderator:
            raise PermissionDenied('Only the author can delete this claim')
        self.soft_delete(claim)
        db.session.commit()
        self.refresh_score(claim.source_id)
        return claim

    def soft_delete(self, claim):
        """Mark a claim deleted and its source stale; the caller commits."""
        claim.deleted_at = datetime.now(timezone.utc)
        self.cache.mark_stale(claim.source_id)

    def vote_on_claim(self, user, claim_id, is_helpful):
        """
        Record or change a user's vote. One row per (claim, user); switching
        sides moves the count from one column to the other.
        """
        if not isinstance(is_helpful, bool):
            raise ValidationError('"is_helpful" must be a boolean')

        claim = self._active_claim(claim_id)
        if claim.user_id == user.id:
            raise ValidationError('You cannot vote on your own claim')
        source_id = claim.source_id

        try:
            changed = self._apply_vote(claim_id, user.id, is_helpful)
        except IntegrityError:
            # A concurrent request inserted the same (claim, user) row first.
            db.session.rollback()
            changed = self._apply_vote(claim_id, user.id, is_helpful)

        if changed:
            self.refresh_score(source_id)
        return self._vote_summary(claim_id, is_helpful)

    def _apply_vote(self, claim_id, user_id, is_helpful):
        existing = db.session.get(ClaimVote, (claim_id, user_id))
        if existing is not None and existing.is_helpful == is_helpful:
            return False

        if existing is None:
            db.session.add(ClaimVote(claim_id=claim_id, user_id=user_id, is_helpful=is_helpful))
            db.session.flush()
            deltas = (1, 0) if is_helpful else (0, 1)
        else:
            existing.is_helpful = is_helpful
            deltas = (1, -1) if is_helpful else (-1, 1)

        self._shift_counts(claim_id, *deltas)
        claim = db.session.get(Claim, claim_id)
        self.cache.mark_stale(claim.source_id)
        db.session.commit()
        return True

    def remove_vote(self, user, claim_id):
        claim = self._active_claim(claim_id)
        vote = db.session.get(ClaimVote, (claim_id, user.id))
        if vote is None:
            raise NotFound('No vote to remove')

        deltas = (-1, 0) if vote.is_helpful else (0, -1)
        db.session.delete(vote)
        self._shift_counts(claim_id, *deltas)
        self.cache.mark_stale(claim.source_id)
        source_id = claim.source_id
        db.session.commit()

        self.refresh_score(source_id)
        return self._vote_summary(claim_id, None)

    def _shift_counts(self, claim_id, helpful_delta, not_helpful_delta):
        Claim.query.filter(Claim.id == claim_id).update({
            Claim.helpful_votes: Claim.helpful_votes + helpful_delta,
            Claim.not_helpful_votes: Claim.not_helpful_votes + not_helpful_delta,
        }, synchronize_session=False)

    def _vote_summary(self, claim_id, user_vote):
        claim = db.session.get(Claim, claim_id)
        db.session.refresh(claim)
        return {
            'claim_id': claim_id,
            'helpful_votes': claim.helpful_votes,
            'not_helpful_votes': claim.not_helpful_votes,
            'user_vote': user_vote,
        }

    def add_comment(self, user, claim_id, content, is_dispute=False):
        """Comments and disputes do not feed the score."""
        self._active_claim(claim_id)
        content = validate_length(content, 'Comment', COMMENT_MIN_LENGTH, COMMENT_MAX_LENGTH)
        comment = ClaimComment(
            claim_id=claim_id,
            user_id=user.id,
            content=content,
            is_dispute=bool(is_dispute),
        )
        db.session.add(comment)
        db.session.commit()
        return comment

    def list_claims(self, source_id, page=1, per_page=20):
        pagination = Claim.query.filter(
            Claim.source_id == source_id,
            Claim.deleted_at.is_(None),
        ).order_by(
            Claim.helpful_votes.desc(),
            Claim.created_at.desc(),
            Claim.id.desc(),
        ).paginate(page=page, per_page=per_page, error_out=False)
        return pagination

    def _active_claim(self, claim_id):
        claim = db.session.get(Claim, claim_id)
        if claim is None or claim.deleted_at is not None:
            raise NotFound(f'Claim {claim_id} not found')
        return claim

    def refresh_score(self, source_id):
        if not current_app.config.get('INSTANT_SCORE_RECALC', True):
            return
        try:
            self.cache.recalculate(source_id)
        except Exception as e:
            # The stale marker is already committed; the batch job will pick it up.
            db.session.rollback()
            logger.warning(f"Instant score refresh failed for source {source_id}: {e}")
