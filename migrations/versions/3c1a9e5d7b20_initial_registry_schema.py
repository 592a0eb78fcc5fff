"""Initial registry schema: users, sources, claims, score cache, moderation

Revision ID: 3c1a9e5d7b20
Revises:
Create Date: 2026-10-16 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3c1a9e5d7b20'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=256), nullable=False),
        sa.Column('email_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('role', sa.String(length=16), nullable=False, server_default='member'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('username'),
        sa.UniqueConstraint('email'),
    )

    op.create_table(
        'sources',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('slug', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('type', sa.String(length=64), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('url', sa.String(length=2048), nullable=True),
        sa.Column('parent_id', sa.Integer(), nullable=True),
        sa.Column('path', sa.Text(), nullable=False),
        sa.Column('depth', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('approval_status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('created_by_user_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('depth >= 0 AND depth <= 5', name='ck_sources_max_depth'),
        sa.ForeignKeyConstraint(['parent_id'], ['sources.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('parent_id', 'slug', name='uq_sources_parent_slug'),
    )
    op.create_index(
        'uq_sources_root_slug', 'sources', ['slug'], unique=True,
        postgresql_where=sa.text('parent_id IS NULL'),
    )
    op.create_index('ix_sources_parent', 'sources', ['parent_id'], unique=False)
    op.create_index('ix_sources_depth', 'sources', ['depth'], unique=False)
    op.create_index(
        'ix_sources_path_pattern', 'sources', ['path'], unique=False,
        postgresql_ops={'path': 'text_pattern_ops'},
    )

    op.create_table(
        'source_ancestor_paths',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('source_id', sa.Integer(), nullable=False),
        sa.Column('ancestor_id', sa.Integer(), nullable=False),
        sa.Column('path', sa.Text(), nullable=False),
        sa.Column('path_type', sa.String(length=32), nullable=False, server_default='primary'),
        sa.Column('depth', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['source_id'], ['sources.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['ancestor_id'], ['sources.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('source_id', 'ancestor_id', 'path_type', name='uq_ancestor_paths_pair'),
    )
    op.create_index('ix_ancestor_paths_source', 'source_ancestor_paths', ['source_id'], unique=False)
    op.create_index('ix_ancestor_paths_ancestor', 'source_ancestor_paths', ['ancestor_id'], unique=False)

    op.create_table(
        'claims',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('source_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('impact', sa.Integer(), nullable=False),
        sa.Column('confidence', sa.Integer(), nullable=False),
        sa.Column('helpful_votes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('not_helpful_votes', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('content_updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('impact >= 1 AND impact <= 5', name='ck_claims_impact_range'),
        sa.CheckConstraint('confidence >= 1 AND confidence <= 5', name='ck_claims_confidence_range'),
        sa.ForeignKeyConstraint(['source_id'], ['sources.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_claims_source', 'claims', ['source_id'], unique=False)
    op.create_index('ix_claims_user', 'claims', ['user_id'], unique=False)
    op.create_index('ix_claims_source_active', 'claims', ['source_id', 'deleted_at'], unique=False)

    op.create_table(
        'claim_votes',
        sa.Column('claim_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('is_helpful', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['claim_id'], ['claims.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('claim_id', 'user_id'),
    )
    op.create_index('ix_claim_votes_claim', 'claim_votes', ['claim_id'], unique=False)

    op.create_table(
        'claim_comments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('claim_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('is_dispute', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('deleted_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['claim_id'], ['claims.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_claim_comments_claim', 'claim_comments', ['claim_id'], unique=False)

    op.create_table(
        'source_score_cache',
        sa.Column('source_id', sa.Integer(), nullable=False),
        sa.Column('tier', sa.SmallInteger(), nullable=True),
        sa.Column('raw_score', sa.Float(), nullable=True),
        sa.Column('normalized_score', sa.Float(), nullable=True),
        sa.Column('claim_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_calculated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('recalculation_requested_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_failed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['source_id'], ['sources.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('source_id'),
    )
    op.create_index('ix_score_cache_tier', 'source_score_cache', ['tier'], unique=False)
    op.create_index('ix_score_cache_requested', 'source_score_cache', ['recalculation_requested_at'], unique=False)

    op.create_table(
        'moderation_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('moderator_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=32), nullable=False),
        sa.Column('target_type', sa.String(length=16), nullable=False),
        sa.Column('target_id', sa.Integer(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.ForeignKeyConstraint(['moderator_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_moderation_logs_moderator', 'moderation_logs', ['moderator_id'], unique=False)
    op.create_index('ix_moderation_logs_target', 'moderation_logs', ['target_type', 'target_id'], unique=False)
    op.create_index('ix_moderation_logs_created', 'moderation_logs', ['created_at'], unique=False)

    op.create_table(
        'flags',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('target_type', sa.String(length=16), nullable=False),
        sa.Column('target_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('reason', sa.String(length=32), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('resolved_by_user_id', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.ForeignKeyConstraint(['resolved_by_user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'uq_flags_pending_per_user', 'flags', ['user_id', 'target_type', 'target_id'], unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )
    op.create_index(
        'ix_flags_pending', 'flags', ['created_at'], unique=False,
        postgresql_where=sa.text("status = 'pending'"),
    )
    op.create_index('ix_flags_target', 'flags', ['target_type', 'target_id'], unique=False)

    op.create_table(
        'system_settings',
        sa.Column('key', sa.String(length=128), nullable=False),
        sa.Column('value_json', sa.JSON(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=True),
        sa.PrimaryKeyConstraint('key'),
    )


def downgrade():
    op.drop_table('system_settings')

    op.drop_index('ix_flags_target', table_name='flags')
    op.drop_index('ix_flags_pending', table_name='flags')
    op.drop_index('uq_flags_pending_per_user', table_name='flags')
    op.drop_table('flags')

    op.drop_index('ix_moderation_logs_created', table_name='moderation_logs')
    op.drop_index('ix_moderation_logs_target', table_name='moderation_logs')
    op.drop_index('ix_moderation_logs_moderator', table_name='moderation_logs')
    op.drop_table('moderation_logs')

    op.drop_index('ix_score_cache_requested', table_name='source_score_cache')
    op.drop_index('ix_score_cache_tier', table_name='source_score_cache')
    op.drop_table('source_score_cache')

    op.drop_index('ix_claim_comments_claim', table_name='claim_comments')
    op.drop_table('claim_comments')

    op.drop_index('ix_claim_votes_claim', table_name='claim_votes')
    op.drop_table('claim_votes')

    op.drop_index('ix_claims_source_active', table_name='claims')
    op.drop_index('ix_claims_user', table_name='claims')
    op.drop_index('ix_claims_source', table_name='claims')
    op.drop_table('claims')

    op.drop_index('ix_ancestor_paths_ancestor', table_name='source_ancestor_paths')
    op.drop_index('ix_ancestor_paths_source', table_name='source_ancestor_paths')
    op.drop_table('source_ancestor_paths')

    op.drop_index('ix_sources_path_pattern', table_name='sources')
    op.drop_index('ix_sources_depth', table_name='sources')
    op.drop_index('ix_sources_parent', table_name='sources')
    op.drop_index('uq_sources_root_slug', table_name='sources')
    op.drop_table('sources')

    op.drop_table('users')
