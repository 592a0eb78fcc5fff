import logging
from app.errors import (
    DuplicateSlug, MaxDepthExceeded, NotFound, ParentNotFound, ValidationError,
)
from app.extensions import db
from app.models.source import (
    APPROVAL_STATUSES, MAX_DEPTH, PATH_SEPARATOR, Source, SourceAncestorPath, split_path,
)
from app.utils.db import UniqueConflict, insert_with_conflict_retries, is_unique_violation
from app.utils.text import slugify

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 200
SLUG_CONFLICT_RETRIES = 3
TEMPORARY_PATH = 'pending'
SLUG_CONSTRAINTS = ('uq_sources_parent_slug', 'uq_sources_root_slug')
SLUG_COLUMNS = ('sources.slug',)


def _is_slug_conflict(error):
    return is_unique_violation(error, constraint_names=SLUG_CONSTRAINTS, columns=SLUG_COLUMNS)


class SourceRegistry:
    """Creates and resolves sources in the materialized-path hierarchy."""

    def create_source(self, name, created_by_user_id, source_type=None, description=None,
                      url=None, parent_id=None, approval_status='pending'):
        """
        Create a source under parent_id (or at the root).
        Returns {'source_id', 'slug'}; the slug may carry a numeric suffix
        if the base slug was taken under the same parent.
        """
        name = (name or '').strip()
        if not name:
            raise ValidationError('Source name is required')
        if len(name) > MAX_NAME_LENGTH:
            raise ValidationError(f'Source name must be at most {MAX_NAME_LENGTH} characters')
        if approval_status not in APPROVAL_STATUSES:
            raise ValidationError(f'Invalid approval status: {approval_status}')

        base_slug = slugify(name)
        if not base_slug:
            raise ValidationError('Invalid source name')

        if parent_id is not None:
            parent = self._active_source(parent_id)
            if parent is None:
                raise ParentNotFound(parent_id)
            if parent.depth >= MAX_DEPTH:
                raise MaxDepthExceeded(MAX_DEPTH)

        def attempt(slug):
            return self._insert_source(
                slug=slug,
                name=name,
                source_type=(source_type or '').strip() or None,
                description=description,
                url=url,
                parent_id=parent_id,
                created_by_user_id=created_by_user_id,
                approval_status=approval_status,
            )

        try:
            slug, source_id = insert_with_conflict_retries(
                attempt, base_slug, max_retries=SLUG_CONFLICT_RETRIES, is_conflict=_is_slug_conflict,
            )
        except UniqueConflict:
            raise DuplicateSlug(base_slug)

        logger.info("Created source %s (%s) under parent %s", source_id, slug, parent_id)
        return {'source_id': source_id, 'slug': slug}

    def _insert_source(self, slug, name, source_type, description, url, parent_id,
                       created_by_user_id, approval_status):
        """One transaction: insert, assign the id-based path, write ancestor rows."""
        parent = None
        if parent_id is not None:
            parent = db.session.get(Source, parent_id)
            if parent is None or parent.deleted_at is not None:
                raise ParentNotFound(parent_id)

        if self._slug_taken(parent_id, slug):
            raise UniqueConflict(slug)

        source = Source(
            slug=slug,
            name=name,
            type=source_type,
            description=description,
            url=url,
            parent_id=parent_id,
            path=TEMPORARY_PATH,
            depth=parent.depth + 1 if parent else 0,
            approval_status=approval_status,
            created_by_user_id=created_by_user_id,
        )
        db.session.add(source)
        db.session.flush()

        if parent is not None:
            source.path = f'{parent.path}{PATH_SEPARATOR}{source.id}'
        else:
            source.path = str(source.id)

        for depth, ancestor_id in enumerate(split_path(source.path)):
            db.session.add(SourceAncestorPath(
                source_id=source.id,
                ancestor_id=ancestor_id,
                path=source.path,
                path_type='primary',
                depth=depth,
            ))

        db.session.commit()
        return source.id

    def _slug_taken(self, parent_id, slug):
        query = Source.query.filter(Source.slug == slug)
        if parent_id is None:
            query = query.filter(Source.parent_id.is_(None))
        else:
            query = query.filter(Source.parent_id == parent_id)
        return db.session.query(query.exists()).scalar()

    def _active_source(self, source_id):
        source = db.session.get(Source, source_id)
        if source is None or source.deleted_at is not None:
            return None
        return source

    def get_source(self, source_id):
        source = self._active_source(source_id)
        if source is None:
            raise NotFound(f'Source {source_id} not found')
        return source

    def resolve_by_slug_path(self, segments):
        """Walk slugs from the root down, like a directory lookup."""
        segments = [s for s in (segments or []) if s]
        if not segments:
            raise NotFound('Empty source path')

        parent_id = None
        for segment in segments:
            query = Source.query.filter(
                Source.slug == segment.lower(),
                Source.deleted_at.is_(None),
            )
            if parent_id is None:
                query = query.filter(Source.parent_id.is_(None))
            else:
                query = query.filter(Source.parent_id == parent_id)
            source = query.first()
            if source is None:
                raise NotFound(f"No source at '{'/'.join(segments)}' (missing '{segment}')")
            parent_id = source.id

        return parent_id

    def ancestor_ids(self, source_id, include_self=False):
        """Ancestors root-first, read from the ancestor index."""
        query = SourceAncestorPath.query.filter(
            SourceAncestorPath.source_id == source_id,
            SourceAncestorPath.path_type == 'primary',
        )
        if not include_self:
            query = query.filter(SourceAncestorPath.ancestor_id != source_id)
        return [row.ancestor_id for row in query.order_by(SourceAncestorPath.depth).all()]

    def descendant_ids(self, source_id):
        rows = db.session.query(SourceAncestorPath.source_id).join(
            Source, Source.id == SourceAncestorPath.source_id,
        ).filter(
            SourceAncestorPath.ancestor_id == source_id,
            SourceAncestorPath.source_id != source_id,
            SourceAncestorPath.path_type == 'primary',
            Source.deleted_at.is_(None),
        ).all()
        return [row[0] for row in rows]
