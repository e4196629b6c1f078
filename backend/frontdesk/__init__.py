from flask import Flask
from werkzeug.exceptions import HTTPException
from flask_jwt_extended import JWTManager
from sqlalchemy import create_engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import StaticPool
from sqlalchemy.orm import sessionmaker, scoped_session
from dotenv import load_dotenv
from datetime import timedelta
from typing import Optional, Dict, Any

from .config.settings import load_settings
from .errors import FrontDeskError

load_dotenv()

db_engine = None
SessionLocal = None
jwt = JWTManager()


def _error(status: int, title: str, detail: str):
    return {'error': {'status': status, 'title': title, 'detail': detail}}, status


@jwt.token_in_blocklist_loader
def _session_closed(jwt_header, jwt_payload):
    # Capability tokens are only valid while the gate still holds their session
    from flask import current_app
    return not current_app.extensions['admin_gate'].is_active(jwt_payload.get('sid'))


@jwt.revoked_token_loader
def _revoked(jwt_header, jwt_payload):
    return _error(401, 'Unauthorized', 'Admin session expired or already used')


@jwt.expired_token_loader
def _expired(jwt_header, jwt_payload):
    return _error(401, 'Unauthorized', 'Admin session expired')


@jwt.unauthorized_loader
def _missing(reason):
    return _error(401, 'Unauthorized', reason)


@jwt.invalid_token_loader
def _invalid(reason):
    return _error(401, 'Unauthorized', reason)


def create_app(config: Optional[Dict[str, Any]] = None):
    global db_engine, SessionLocal
    app = Flask(__name__)

    app.config.update(load_settings())
    if config:
        # allow tests or callers to override default config values
        app.config.update(config)
    app.config['JWT_ACCESS_TOKEN_EXPIRES'] = timedelta(seconds=int(app.config['ADMIN_SESSION_SECONDS']))

    # Database
    db_url = app.config['DATABASE_URL']
    if db_url.endswith(':memory:'):
        # Ensure a single shared in-memory SQLite database across all sessions
        db_engine = create_engine(
            db_url,
            echo=False,
            future=True,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    else:
        db_engine = create_engine(db_url, echo=False, future=True)
    SessionLocal = scoped_session(sessionmaker(bind=db_engine, expire_on_commit=False, autoflush=False))

    jwt.init_app(app)

    from .services.admin_gate import AdminGate
    app.extensions['admin_gate'] = AdminGate.from_config(app.config)

    from .routes.tickets import tickets_bp
    from .routes.frontdesk import desk_bp
    from .routes.registry import registry_bp
    from .routes.admin import admin_bp
    from .routes.reports import rpt_bp
    app.register_blueprint(tickets_bp, url_prefix='/tickets')
    app.register_blueprint(desk_bp, url_prefix='/frontdesk')
    app.register_blueprint(registry_bp, url_prefix='/registry')
    app.register_blueprint(admin_bp, url_prefix='/admin')
    app.register_blueprint(rpt_bp, url_prefix='/reports')

    @app.route('/healthz')
    def health():
        return {'status': 'ok'}

    @app.teardown_appcontext
    def remove_session(exc):
        SessionLocal.remove()

    # Unified error handler producing standardized JSON shape
    @app.errorhandler(Exception)
    def handle_errors(e):  # type: ignore
        if isinstance(e, HTTPException):
            return _error(e.code, e.name, e.description)
        if isinstance(e, FrontDeskError):
            return _error(e.status_code, e.title, e.detail)
        if isinstance(e, SQLAlchemyError):
            SessionLocal.rollback()
            app.logger.exception('Store operation failed')
            return _error(500, 'Internal Server Error', 'Store operation failed')
        app.logger.exception('Unhandled exception')
        return _error(500, 'Internal Server Error', 'Unexpected error')

    from .openapi import build_openapi_spec

    @app.route('/openapi.json')
    def openapi_spec():
        return build_openapi_spec()

    @app.route('/docs')
    def docs_index():
        # Lightweight HTML referencing Redoc CDN (no local install) for quick browsing
        return (
            "<!DOCTYPE html><html><head><title>PhoneCare Front Desk API</title>"
            "<link rel=\"stylesheet\" href=\"https://cdn.jsdelivr.net/npm/redoc@next/bundles/redoc.standalone.css\" />"
            "</head><body><redoc spec-url='/openapi.json'></redoc>"
            "<script src='https://cdn.jsdelivr.net/npm/redoc@next/bundles/redoc.standalone.js'></script>"
            "</body></html>"
        )

    return app


def get_db():
    return SessionLocal()
