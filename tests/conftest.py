import pytest

from stampcard import create_app
from stampcard.models import db
from stampcard.services import get_services

ADMIN_KEY = 'test-admin-key'
REDEEM_PIN = '4321'
APP_SECRET = 'test-app-secret'
STORE_ID = 'waters-edge'


@pytest.fixture
def app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'stampcard.db'}",
        'APP_SECRET': APP_SECRET,
        'ADMIN_KEY': ADMIN_KEY,
        'REDEEM_PIN': REDEEM_PIN,
        'STORE_ID': STORE_ID,
        'PUBLIC_BASE_URL': 'http://testserver',
        'COOKIE_SECURE': False,
        'USE_REDIS': False,
        'ATTEMPT_LIMIT': 5,
        'ATTEMPT_WINDOW_SECONDS': 3600,
    })
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def services(app):
    return get_services()


@pytest.fixture
def ledger(services):
    return services.ledger
