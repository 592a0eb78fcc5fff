import pytest
from types import SimpleNamespace
from unittest.mock import patch
from sqlalchemy.exc import IntegrityError
from app.errors import DuplicateSlug, MaxDepthExceeded, NotFound, ParentNotFound, ValidationError
from app.extensions import db
from app.models.source import MAX_DEPTH, Source, SourceAncestorPath
from app.services.source_registry import SourceRegistry
from app.utils.db import UniqueConflict, insert_with_conflict_retries, is_unique_violation
from app.utils.text import numeric_suffix, slugify


class TestSlugs:
    def test_slugify(self):
        assert slugify('r/Programming') == 'r-programming'
        assert slugify('  Hello,   World!! ') == 'hello-world'
        assert slugify('***') == ''

    def test_slugify_truncates(self):
        slug = slugify('a' * 150)
        assert len(slug) == 100

    def test_numeric_suffix_fits_limit(self):
        assert numeric_suffix('reddit', 2) == 'reddit-2'
        long_slug = 'b' * 100
        assert numeric_suffix(long_slug, 3) == 'b' * 98 + '-3'


class TestCreateSource:
    def test_root_source(self, registry, alice):
        result = registry.create_source('Reddit', alice.id, source_type='platform')
        source = db.session.get(Source, result['source_id'])

        assert result['slug'] == 'reddit'
        assert source.depth == 0
        assert source.path == str(source.id)
        assert source.parent_id is None
        assert source.approval_status == 'pending'

    def test_child_path_uses_ids(self, registry, alice):
        root = registry.create_source('Reddit', alice.id)
        child = registry.create_source('r/art', alice.id, parent_id=root['source_id'])
        grandchild = registry.create_source('Daily Sketch', alice.id, parent_id=child['source_id'])

        source = db.session.get(Source, grandchild['source_id'])
        assert source.depth == 2
        assert source.path == f"{root['source_id']}.{child['source_id']}.{grandchild['source_id']}"

    def test_ancestor_rows_written(self, registry, alice):
        root = registry.create_source('Reddit', alice.id)
        child = registry.create_source('r/art', alice.id, parent_id=root['source_id'])

        rows = SourceAncestorPath.query.filter_by(source_id=child['source_id']).order_by(
            SourceAncestorPath.depth
        ).all()
        assert [r.ancestor_id for r in rows] == [root['source_id'], child['source_id']]
        assert [r.depth for r in rows] == [0, 1]
        assert all(r.path_type == 'primary' for r in rows)

    def test_name_required(self, registry, alice):
        with pytest.raises(ValidationError):
            registry.create_source('   ', alice.id)

    def test_name_too_long(self, registry, alice):
        with pytest.raises(ValidationError):
            registry.create_source('x' * 201, alice.id)

    def test_name_without_slug_characters(self, registry, alice):
        with pytest.raises(ValidationError):
            registry.create_source('!!!', alice.id)

    def test_missing_parent(self, registry, alice):
        with pytest.raises(ParentNotFound):
            registry.create_source('Orphan', alice.id, parent_id=9999)

    def test_deleted_parent(self, registry, alice, sample_tree):
        from datetime import datetime, timezone
        parent = db.session.get(Source, sample_tree['r/art'])
        parent.deleted_at = datetime.now(timezone.utc)
        db.session.commit()

        with pytest.raises(ParentNotFound):
            registry.create_source('Sketches', alice.id, parent_id=sample_tree['r/art'])

    def test_max_depth(self, registry, alice):
        parent_id = None
        for level in range(MAX_DEPTH + 1):
            parent_id = registry.create_source(f'Level {level}', alice.id, parent_id=parent_id)['source_id']

        assert db.session.get(Source, parent_id).depth == MAX_DEPTH
        with pytest.raises(MaxDepthExceeded):
            registry.create_source('Too Deep', alice.id, parent_id=parent_id)
        assert Source.query.filter(Source.depth > MAX_DEPTH).count() == 0


class TestSlugConflicts:
    def test_same_name_same_parent_gets_suffix(self, registry, alice):
        first = registry.create_source('Reddit', alice.id)
        second = registry.create_source('Reddit', alice.id)
        assert first['slug'] == 'reddit'
        assert second['slug'] == 'reddit-2'

    def test_same_name_different_parents_ok(self, registry, alice, sample_tree):
        a = registry.create_source('Memes', alice.id, parent_id=sample_tree['Reddit'])
        b = registry.create_source('Memes', alice.id, parent_id=sample_tree['YouTube'])
        assert a['slug'] == b['slug'] == 'memes'

    def test_race_past_precheck_retries_on_unique_index(self, registry, alice):
        """Another writer wins between the check and the insert."""
        registry.create_source('Reddit', alice.id)

        with patch.object(SourceRegistry, '_slug_taken', return_value=False):
            result = registry.create_source('Reddit', alice.id)

        assert result['slug'] == 'reddit-2'
        assert Source.query.filter_by(slug='reddit').count() == 1

    def test_race_under_parent(self, registry, alice, sample_tree):
        registry.create_source('Memes', alice.id, parent_id=sample_tree['Reddit'])

        with patch.object(SourceRegistry, '_slug_taken', return_value=False):
            result = registry.create_source('Memes', alice.id, parent_id=sample_tree['Reddit'])

        assert result['slug'] == 'memes-2'
        assert SourceAncestorPath.query.filter_by(source_id=result['source_id']).count() == 3

    def test_retries_exhausted(self, registry, alice):
        slugs = [registry.create_source('Reddit', alice.id)['slug'] for _ in range(4)]
        assert slugs == ['reddit', 'reddit-2', 'reddit-3', 'reddit-4']

        with pytest.raises(DuplicateSlug):
            registry.create_source('Reddit', alice.id)
        assert Source.query.count() == 4

    def test_missing_creator_is_not_a_slug_conflict(self, registry, alice):
        with pytest.raises(IntegrityError) as excinfo:
            registry.create_source('Reddit', None)

        assert 'NOT NULL' in str(excinfo.value)
        assert Source.query.count() == 0
        assert registry.create_source('Reddit', alice.id)['slug'] == 'reddit'


class TestConflictRetryHelper:
    def test_returns_first_free_value(self, app):
        taken = {'a', 'a-2'}

        def attempt(value):
            if value in taken:
                raise UniqueConflict(value)
            return value.upper()

        assert insert_with_conflict_retries(attempt, 'a') == ('a-3', 'A-3')

    def test_other_errors_propagate(self, app):
        def attempt(value):
            raise RuntimeError('boom')

        with pytest.raises(RuntimeError):
            insert_with_conflict_retries(attempt, 'a')

    def test_custom_suffix(self, app):
        seen = []

        def attempt(value):
            seen.append(value)
            raise UniqueConflict(value)

        with pytest.raises(UniqueConflict):
            insert_with_conflict_retries(attempt, 'x', suffix_fn=lambda base, n: f'{base}_{n}', max_retries=2)
        assert seen == ['x', 'x_2', 'x_3']

    def test_non_unique_integrity_error_is_not_retried(self, app):
        seen = []

        def attempt(value):
            seen.append(value)
            raise IntegrityError(
                'INSERT', {}, Exception('NOT NULL constraint failed: sources.created_by_user_id'),
            )

        with pytest.raises(IntegrityError):
            insert_with_conflict_retries(attempt, 'a')
        assert seen == ['a']

    def test_unique_index_error_is_retried(self, app):
        def attempt(value):
            if value == 'a':
                raise IntegrityError(
                    'INSERT', {}, Exception('UNIQUE constraint failed: sources.parent_id, sources.slug'),
                )
            return value

        assert insert_with_conflict_retries(attempt, 'a') == ('a-2', 'a-2')


class TestUniqueViolation:
    def test_sqlite_messages(self):
        unique = IntegrityError('INSERT', {}, Exception('UNIQUE constraint failed: sources.slug'))
        not_null = IntegrityError('INSERT', {}, Exception('NOT NULL constraint failed: sources.name'))

        assert is_unique_violation(unique, columns=('sources.slug',)) is True
        assert is_unique_violation(unique, columns=('claim_votes.user_id',)) is False
        assert is_unique_violation(not_null) is False

    def test_postgres_codes(self):
        class PgError(Exception):
            def __init__(self, pgcode, constraint_name):
                super().__init__('pg error')
                self.pgcode = pgcode
                self.diag = SimpleNamespace(constraint_name=constraint_name)

        slug_clash = IntegrityError('INSERT', {}, PgError('23505', 'uq_sources_root_slug'))
        other_unique = IntegrityError('INSERT', {}, PgError('23505', 'uq_ancestor_paths_pair'))
        fk_violation = IntegrityError('INSERT', {}, PgError('23503', 'sources_created_by_user_id_fkey'))

        names = ('uq_sources_parent_slug', 'uq_sources_root_slug')
        assert is_unique_violation(slug_clash, constraint_names=names) is True
        assert is_unique_violation(other_unique, constraint_names=names) is False
        assert is_unique_violation(fk_violation) is False


class TestResolveBySlugPath:
    def test_walks_segments(self, registry, sample_tree):
        source_id = registry.resolve_by_slug_path(['reddit', 'r-programming', 'weekly-thread'])
        assert source_id == sample_tree['weekly-thread']

    def test_case_insensitive(self, registry, sample_tree):
        assert registry.resolve_by_slug_path(['Reddit']) == sample_tree['Reddit']

    def test_missing_segment(self, registry, sample_tree):
        with pytest.raises(NotFound):
            registry.resolve_by_slug_path(['reddit', 'r-missing'])

    def test_segment_under_wrong_parent(self, registry, sample_tree):
        with pytest.raises(NotFound):
            registry.resolve_by_slug_path(['youtube', 'r-art'])

    def test_empty_path(self, registry):
        with pytest.raises(NotFound):
            registry.resolve_by_slug_path([])

    def test_ancestors_and_descendants(self, registry, sample_tree):
        assert registry.ancestor_ids(sample_tree['weekly-thread']) == [
            sample_tree['Reddit'], sample_tree['r/programming'],
        ]
        assert sorted(registry.descendant_ids(sample_tree['Reddit'])) == sorted([
            sample_tree['r/programming'], sample_tree['r/art'], sample_tree['weekly-thread'],
        ])
