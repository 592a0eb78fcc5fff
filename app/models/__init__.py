from app.models.user import User
from app.models.source import Source, SourceAncestorPath
from app.models.claim import Claim, ClaimVote, ClaimComment
from app.models.score_cache import SourceScoreCache
from app.models.moderation import Flag, ModerationLog
from app.models.setting import SystemSetting

__all__ = [
    'User',
    'Source', 'SourceAncestorPath',
    'Claim', 'ClaimVote', 'ClaimComment',
    'SourceScoreCache',
    'ModerationLog', 'Flag',
    'SystemSetting',
]
