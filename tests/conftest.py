import pytest

from app import create_app
from app.extensions import db as _db
from app.models.user import User
from app.services.source_registry import SourceRegistry
from config import TestConfig

CLAIM_TEXT = (
    'The last dozen posts share the same template, the same stock phrasing and '
    'images with the usual generator artifacts in hands and text.'
)


@pytest.fixture(scope='session')
def app():
    """Create app with test config."""
    app = create_app(TestConfig)
    return app


@pytest.fixture(autouse=True)
def setup_db(app):
    """Create tables before each test, drop after."""
    with app.app_context():
        _db.create_all()
        yield
        _db.session.rollback()
        _db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def admin_headers(app):
    return {'X-Admin-Key': app.config['ADMIN_API_KEY']}


@pytest.fixture
def db_session(app):
    with app.app_context():
        yield _db.session


@pytest.fixture
def users(db_session):
    """alice and bob are verified members, carol is unverified, mia moderates."""
    people = {
        'alice': User(username='alice', email='alice@example.com', email_verified=True),
        'bob': User(username='bob', email='bob@example.com', email_verified=True),
        'carol': User(username='carol', email='carol@example.com', email_verified=False),
        'mia': User(username='mia', email='mia@example.com', email_verified=True, role='moderator'),
    }
    for user in people.values():
        db_session.add(user)
    db_session.commit()
    return people


@pytest.fixture
def alice(users):
    return users['alice']


@pytest.fixture
def bob(users):
    return users['bob']


@pytest.fixture
def moderator(users):
    return users['mia']


def user_headers(user):
    return {'X-User-Id': str(user.id)}


@pytest.fixture
def alice_headers(alice):
    return user_headers(alice)


@pytest.fixture
def bob_headers(bob):
    return user_headers(bob)


@pytest.fixture
def carol_headers(users):
    return user_headers(users['carol'])


@pytest.fixture
def moderator_headers(moderator):
    return user_headers(moderator)


@pytest.fixture
def registry():
    return SourceRegistry()


@pytest.fixture
def sample_tree(registry, alice):
    """
    Reddit
      r/programming
        weekly-thread
      r/art
    YouTube
      Faceless History
    Returns {name: source_id}.
    """
    ids = {}

    def add(name, parent=None, source_type=None, description=None):
        result = registry.create_source(
            name=name,
            created_by_user_id=alice.id,
            source_type=source_type,
            description=description,
            parent_id=ids[parent] if parent else None,
            approval_status='approved',
        )
        ids[name] = result['source_id']

    add('Reddit', source_type='platform', description='Link aggregator')
    add('YouTube', source_type='platform', description='Video hosting')
    add('r/programming', 'Reddit', 'subreddit', 'Programming news')
    add('r/art', 'Reddit', 'subreddit', 'Artwork and illustration')
    add('weekly-thread', 'r/programming', 'thread', 'Weekly AMA thread')
    add('Faceless History', 'YouTube', 'channel', 'Narrated history shorts')
    return ids


@pytest.fixture
def claim_text():
    return CLAIM_TEXT
