from dotenv import load_dotenv

# Load .env before Config reads the environment
load_dotenv()

from flask import Flask
from werkzeug.middleware.proxy_fix import ProxyFix
from flask_migrate import Migrate
from loguru import logger
from .config import Config, LoyaltySettings
from .models import db
from .services import LoyaltyServices


def create_app(overrides: dict | None = None):
    app = Flask(__name__)
    app.config.from_object(Config())
    if overrides:
        app.config.update(overrides)
    db.init_app(app)
    Migrate(app, db)
    # Trust reverse proxy headers (Render/Heroku)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    with app.app_context():
        # defer migrations to Alembic; for quickstart only:
        db.create_all()

    settings = LoyaltySettings.from_mapping(app.config)
    if settings.token_max_age is None:
        logger.warning('TOKEN_MAX_AGE_SECONDS is 0: signed scan tokens never expire')
    LoyaltyServices(settings, db.session).init_app(app)

    from .routes_public import bp as public_bp
    from .routes_api import bp as api_bp
    from .routes_admin import bp as admin_bp
    app.register_blueprint(public_bp)
    app.register_blueprint(api_bp, url_prefix='/api')
    app.register_blueprint(admin_bp, url_prefix='/admin')

    @app.get('/health')
    def health():
        return {'ok': True}

    return app
