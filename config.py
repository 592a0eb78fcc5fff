import os
from dotenv import load_dotenv

load_dotenv()


class Config:
    SECRET_KEY = os.getenv('SECRET_KEY', 'dev-secret-change-me')
    APP_ENV = os.getenv('APP_ENV', 'development')
    ADMIN_API_KEY = os.getenv('ADMIN_API_KEY')
    CRON_SECRET = os.getenv('CRON_SECRET')
    SQLALCHEMY_DATABASE_URI = os.getenv('DATABASE_URL', 'postgresql://localhost/slop_registry')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    SQLALCHEMY_ENGINE_OPTIONS = {'pool_pre_ping': True, 'pool_size': 5}

    # Score recalculation
    RECALC_BATCH_SIZE = int(os.getenv('RECALC_BATCH_SIZE', '100'))
    RECALC_MAX_BATCH_SIZE = int(os.getenv('RECALC_MAX_BATCH_SIZE', '500'))
    RECALC_INTERVAL_MINUTES = int(os.getenv('RECALC_INTERVAL_MINUTES', '5'))
    INSTANT_SCORE_RECALC = os.getenv('INSTANT_SCORE_RECALC', 'true').lower() == 'true'

    # Tree queries
    BROWSE_MATCH_LIMIT = int(os.getenv('BROWSE_MATCH_LIMIT', '200'))
    CHILDREN_PER_PAGE = int(os.getenv('CHILDREN_PER_PAGE', '20'))

    # Scheduler
    SCHEDULER_ENABLED = os.getenv('SCHEDULER_ENABLED', 'true').lower() == 'true'
    SCHEDULER_API_ENABLED = False

    # Logging
    LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')


class TestConfig(Config):
    TESTING = True
    APP_ENV = 'test'
    ADMIN_API_KEY = 'test-admin-key'
    CRON_SECRET = None
    SQLALCHEMY_DATABASE_URI = 'sqlite:///:memory:'
    SQLALCHEMY_ENGINE_OPTIONS = {}  # SQLite doesn't support pool_size
    SCHEDULER_ENABLED = False
    RECALC_BATCH_SIZE = 100
    INSTANT_SCORE_RECALC = True
