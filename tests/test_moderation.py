import pytest
from unittest.mock import patch
from app.errors import ConflictError, NotFound, PermissionDenied, ValidationError
from app.extensions import db
from app.models.claim import Claim, ClaimComment
from app.models.moderation import Flag, ModerationLog
from app.models.source import Source
from app.services.claim_service import ClaimService
from app.services.moderation_service import ModerationService
from app.services.score_cache_service import ScoreCacheService
from app.services.tree_query_service import TreeQueryService


@pytest.fixture
def service():
    return ModerationService()


@pytest.fixture
def claim(sample_tree, alice, claim_text):
    return ClaimService().submit_claim(alice, sample_tree['r/art'], claim_text, impact=4, confidence=4)


class TestSourceApproval:
    def test_approve_logs_action(self, service, moderator, registry, alice):
        created = registry.create_source('New Forum', alice.id)
        source = service.approve_source(moderator, created['source_id'], 'Looks legitimate')

        assert source.approval_status == 'approved'
        entry = ModerationLog.query.one()
        assert entry.action == 'approve_source'
        assert entry.target_id == created['source_id']
        assert entry.moderator_id == moderator.id

    def test_reject(self, service, moderator, sample_tree):
        source = service.reject_source(moderator, sample_tree['r/art'])
        assert source.approval_status == 'rejected'
        assert ModerationLog.query.filter_by(action='reject_source').count() == 1

    def test_members_cannot_moderate(self, service, alice, sample_tree):
        with pytest.raises(PermissionDenied):
            service.approve_source(alice, sample_tree['r/art'])
        assert ModerationLog.query.count() == 0

    def test_unknown_source(self, service, moderator):
        with pytest.raises(NotFound):
            service.reject_source(moderator, 999)


class TestRemoveContent:
    def test_remove_claim_rescores_source(self, service, moderator, claim, sample_tree):
        service.remove_content(moderator, 'claim', claim.id, 'Spam')

        assert db.session.get(Claim, claim.id).deleted_at is not None
        assert ScoreCacheService().get(sample_tree['r/art']) is None
        assert ModerationLog.query.filter_by(action='remove_claim').one().reason == 'Spam'

    def test_remove_comment(self, service, moderator, claim, bob):
        comment = ClaimService().add_comment(bob, claim.id, 'Personal attack on the author.')
        service.remove_content(moderator, 'comment', comment.id, 'Harassment')
        assert db.session.get(ClaimComment, comment.id).deleted_at is not None

    def test_remove_source(self, service, moderator, sample_tree):
        service.remove_content(moderator, 'source', sample_tree['r/art'], 'Duplicate')
        assert db.session.get(Source, sample_tree['r/art']).deleted_at is not None

    def test_reason_required(self, service, moderator, claim):
        with pytest.raises(ValidationError):
            service.remove_content(moderator, 'claim', claim.id, '  ')

    def test_bad_target_type(self, service, moderator):
        with pytest.raises(ValidationError):
            service.remove_content(moderator, 'user', 1, 'Nope')

    def test_already_removed(self, service, moderator, claim):
        service.remove_content(moderator, 'claim', claim.id, 'Spam')
        with pytest.raises(NotFound):
            service.remove_content(moderator, 'claim', claim.id, 'Spam again')
        assert ModerationLog.query.count() == 1

    def test_list_logs_newest_first(self, service, moderator, sample_tree):
        service.approve_source(moderator, sample_tree['r/art'])
        service.reject_source(moderator, sample_tree['YouTube'])

        page = service.list_logs()
        assert [e.action for e in page.items] == ['reject_source', 'approve_source']
        assert service.list_logs(target_type='claim').total == 0

    def test_remove_source_removes_subtree(self, service, moderator, sample_tree):
        service.remove_content(moderator, 'source', sample_tree['Reddit'], 'Closed platform')

        for name in ('Reddit', 'r/programming', 'r/art', 'weekly-thread'):
            assert db.session.get(Source, sample_tree[name]).deleted_at is not None
        assert db.session.get(Source, sample_tree['YouTube']).deleted_at is None
        assert TreeQueryService().children_page(sample_tree['r/programming'])['children'] == []
        assert [n['name'] for n in TreeQueryService().browse(query='AMA')] == []


class TestFlags:
    def test_member_flags_claim(self, service, claim, bob):
        flag = service.flag_content(bob, 'claim', claim.id, 'spam')

        assert flag.status == 'pending'
        assert flag.to_dict()['flagger_username'] == 'bob'

    def test_cannot_flag_own_content(self, service, claim, alice):
        with pytest.raises(ValidationError):
            service.flag_content(alice, 'claim', claim.id, 'spam')

    def test_one_pending_flag_per_member(self, service, claim, bob):
        service.flag_content(bob, 'claim', claim.id, 'spam')
        with pytest.raises(ConflictError):
            service.flag_content(bob, 'claim', claim.id, 'abuse')
        assert Flag.query.count() == 1

    def test_unique_index_backs_the_precheck(self, service, claim, bob):
        service.flag_content(bob, 'claim', claim.id, 'spam')

        with patch.object(Flag, 'query') as query:
            query.filter_by.return_value.first.return_value = None
            with pytest.raises(ConflictError):
                service.flag_content(bob, 'claim', claim.id, 'abuse')

    def test_invalid_reason_and_missing_target(self, service, claim, bob):
        with pytest.raises(ValidationError):
            service.flag_content(bob, 'claim', claim.id, 'boring')
        with pytest.raises(NotFound):
            service.flag_content(bob, 'comment', 999, 'spam')

    def test_queue_is_moderator_only_and_newest_first(self, service, moderator, claim, bob, sample_tree):
        first = service.flag_content(bob, 'claim', claim.id, 'spam')
        second = service.flag_content(bob, 'source', sample_tree['YouTube'], 'duplicate')

        with pytest.raises(PermissionDenied):
            service.list_flags(bob)
        page = service.list_flags(moderator)
        assert [f.id for f in page.items] == [second.id, first.id]

    def test_dismiss(self, service, moderator, claim, bob):
        flag = service.flag_content(bob, 'claim', claim.id, 'incorrect_info')
        service.resolve_flag(moderator, flag.id, 'dismiss')

        assert flag.status == 'dismissed'
        assert flag.resolved_by_user_id == moderator.id
        assert service.list_flags(moderator).total == 0
        assert ModerationLog.query.filter_by(action='dismiss_flag', target_type='flag').count() == 1
        assert db.session.get(Claim, claim.id).deleted_at is None

    def test_approve_and_remove(self, service, moderator, claim, bob, sample_tree):
        flag = service.flag_content(bob, 'claim', claim.id, 'spam')
        service.resolve_flag(moderator, flag.id, 'approve', remove=True)

        assert flag.status == 'resolved'
        assert db.session.get(Claim, claim.id).deleted_at is not None
        assert ScoreCacheService().get(sample_tree['r/art']) is None
        actions = {e.action for e in ModerationLog.query.all()}
        assert actions == {'remove_claim', 'resolve_flag'}

    def test_resolved_flag_cannot_be_resolved_again(self, service, moderator, claim, bob):
        flag = service.flag_content(bob, 'claim', claim.id, 'spam')
        service.resolve_flag(moderator, flag.id, 'dismiss')

        with pytest.raises(ConflictError):
            service.resolve_flag(moderator, flag.id, 'approve')
        # A closed flag no longer blocks a new report.
        assert service.flag_content(bob, 'claim', claim.id, 'abuse').status == 'pending'
