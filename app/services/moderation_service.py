import logging
from datetime import datetime, timezone
from sqlalchemy.exc import IntegrityError
from app.errors import AuthError, ConflictError, NotFound, PermissionDenied, ValidationError
from app.extensions import db
from app.models.claim import Claim, ClaimComment
from app.models.moderation import FLAG_REASONS, FLAG_STATUSES, TARGET_TYPES, Flag, ModerationLog
from app.models.source import Source, SourceAncestorPath
from app.services.claim_service import ClaimService
from app.utils.db import is_unique_violation

logger = logging.getLogger(__name__)

PENDING_FLAG_INDEX = 'uq_flags_pending_per_user'
FLAG_ACTIONS = {
    'approve': ('resolved', 'resolve_flag'),
    'dismiss': ('dismissed', 'dismiss_flag'),
}


class ModerationService:
    """
    Moderator actions. Each action and its audit entry commit together;
    the log is append-only and never edited here.
    """

    def __init__(self, claim_service=None):
        self.claims = claim_service or ClaimService()

    def approve_source(self, moderator, source_id, reason=None):
        return self._set_source_status(moderator, source_id, 'approved', 'approve_source', reason)

    def reject_source(self, moderator, source_id, reason=None):
        return self._set_source_status(moderator, source_id, 'rejected', 'reject_source', reason)

    def _set_source_status(self, moderator, source_id, status, action, reason):
        self._require_moderator(moderator)
        source = db.session.get(Source, source_id)
        if source is None or source.deleted_at is not None:
            raise NotFound(f'Source {source_id} not found')

        source.approval_status = status
        self._log(moderator, action, 'source', source_id, reason)
        db.session.commit()
        logger.info("Moderator %s set source %s to %s", moderator.id, source_id, status)
        return source

    def remove_content(self, moderator, target_type, target_id, reason=None):
        """Soft-delete a source, claim or comment."""
        self._require_moderator(moderator)
        if target_type not in TARGET_TYPES:
            raise ValidationError(f'Invalid target type: {target_type}')
        if isinstance(target_id, bool) or not isinstance(target_id, int):
            raise ValidationError('"target_id" must be an integer')
        if not (reason or '').strip():
            raise ValidationError('A reason is required to remove content')

        now = datetime.now(timezone.utc)
        source_to_refresh = None

        if target_type == 'claim':
            claim = db.session.get(Claim, target_id)
            if claim is None or claim.deleted_at is not None:
                raise NotFound(f'Claim {target_id} not found')
            self.claims.soft_delete(claim)
            source_to_refresh = claim.source_id
        elif target_type == 'comment':
            comment = db.session.get(ClaimComment, target_id)
            if comment is None or comment.deleted_at is not None:
                raise NotFound(f'Comment {target_id} not found')
            comment.deleted_at = now
        else:
            source = db.session.get(Source, target_id)
            if source is None or source.deleted_at is not None:
                raise NotFound(f'Source {target_id} not found')
            self._soft_delete_subtree(source, now)

        entry = self._log(moderator, f'remove_{target_type}', target_type, target_id, reason.strip())
        db.session.commit()
        logger.info("Moderator %s removed %s %s", moderator.id, target_type, target_id)

        if source_to_refresh is not None:
            self.claims.refresh_score(source_to_refresh)
        return entry

    def _soft_delete_subtree(self, source, now):
        """Removing a source removes everything under it."""
        subtree = db.select(SourceAncestorPath.source_id).where(
            SourceAncestorPath.ancestor_id == source.id,
        )
        removed = Source.query.filter(
            Source.id.in_(subtree),
            Source.deleted_at.is_(None),
        ).update({'deleted_at': now}, synchronize_session='fetch')
        logger.info("Soft-deleted source %s and %s descendants", source.id, removed - 1)

    def flag_content(self, user, target_type, target_id, reason):
        """
        Report an item for moderator review. Members cannot flag their own
        content and hold at most one pending flag per item.
        """
        if user is None:
            raise AuthError('Authentication required')
        if target_type not in TARGET_TYPES:
            raise ValidationError(f'Invalid target type: {target_type}')
        if isinstance(target_id, bool) or not isinstance(target_id, int):
            raise ValidationError('"target_id" must be an integer')
        if reason not in FLAG_REASONS:
            raise ValidationError(f'Invalid flag reason: {reason}')

        owner_id = self._target_owner(target_type, target_id)
        if owner_id == user.id:
            raise ValidationError('You cannot flag your own content')

        already = Flag.query.filter_by(
            user_id=user.id, target_type=target_type, target_id=target_id, status='pending',
        ).first()
        if already is not None:
            raise ConflictError('You already flagged this item')

        flag = Flag(target_type=target_type, target_id=target_id, user_id=user.id, reason=reason)
        db.session.add(flag)
        try:
            db.session.commit()
        except IntegrityError as e:
            db.session.rollback()
            if is_unique_violation(e, constraint_names=(PENDING_FLAG_INDEX,), columns=('flags.user_id',)):
                raise ConflictError('You already flagged this item')
            raise
        logger.info("User %s flagged %s %s as %s", user.id, target_type, target_id, reason)
        return flag

    def list_flags(self, moderator, page=1, per_page=20, status='pending'):
        """Moderator queue, newest first."""
        self._require_moderator(moderator)
        if status not in FLAG_STATUSES:
            raise ValidationError(f'Invalid flag status: {status}')
        return Flag.query.filter(Flag.status == status).order_by(
            Flag.created_at.desc(), Flag.id.desc(),
        ).paginate(page=page, per_page=per_page, error_out=False)

    def resolve_flag(self, moderator, flag_id, action, reason=None, remove=False):
        """
        Close a pending flag. 'approve' marks it resolved, 'dismiss' marks it
        dismissed. With remove=True an approved flag also removes the
        flagged item first.
        """
        self._require_moderator(moderator)
        if not isinstance(action, str) or action not in FLAG_ACTIONS:
            raise ValidationError(f'Invalid flag action: {action}')
        flag = db.session.get(Flag, flag_id)
        if flag is None:
            raise NotFound(f'Flag {flag_id} not found')
        if flag.status != 'pending':
            raise ConflictError(f'Flag {flag_id} is already {flag.status}')
        if remove and action != 'approve':
            raise ValidationError('Only an approved flag can remove content')

        if remove:
            self.remove_content(
                moderator, flag.target_type, flag.target_id,
                (reason or '').strip() or f'Flagged as {flag.reason}',
            )

        status, log_action = FLAG_ACTIONS[action]
        flag.status = status
        flag.resolved_by_user_id = moderator.id
        flag.resolved_at = datetime.now(timezone.utc)
        self._log(moderator, log_action, 'flag', flag.id, reason)
        db.session.commit()
        logger.info("Moderator %s %s flag %s", moderator.id, status, flag.id)
        return flag

    def _target_owner(self, target_type, target_id):
        if target_type == 'claim':
            item, owner = db.session.get(Claim, target_id), 'user_id'
        elif target_type == 'comment':
            item, owner = db.session.get(ClaimComment, target_id), 'user_id'
        else:
            item, owner = db.session.get(Source, target_id), 'created_by_user_id'
        if item is None or item.deleted_at is not None:
            raise NotFound(f'{target_type.capitalize()} {target_id} not found')
        return getattr(item, owner)

    def list_logs(self, page=1, per_page=50, target_type=None):
        query = ModerationLog.query
        if target_type:
            query = query.filter(ModerationLog.target_type == target_type)
        return query.order_by(
            ModerationLog.created_at.desc(), ModerationLog.id.desc(),
        ).paginate(page=page, per_page=per_page, error_out=False)

    def _log(self, moderator, action, target_type, target_id, reason):
        entry = ModerationLog(
            moderator_id=moderator.id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            reason=reason,
        )
        db.session.add(entry)
        return entry

    def _require_moderator(self, user):
        if user is None or not user.is_moderator:
            raise PermissionDenied('Moderator role required')
