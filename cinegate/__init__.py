from dotenv import load_dotenv
from flask import Flask, jsonify
from flask_migrate import Migrate
from werkzeug.middleware.proxy_fix import ProxyFix

from .config import Config
from .errors import DomainError, ErrorCode
from .models import db

load_dotenv()

STATUS_BY_CODE = {
    ErrorCode.INVALID_TOKEN_FORMAT: 401,
    ErrorCode.INVALID_TOKEN_SIGNATURE: 401,
    ErrorCode.TOKEN_EXPIRED: 401,
    ErrorCode.NOT_FOUND: 404,
    ErrorCode.UNAUTHENTICATED: 401,
    ErrorCode.VALIDATION_FAILED: 400,
    ErrorCode.PROMO_CODE_EXHAUSTED: 409,
    ErrorCode.RENTAL_CONFLICT: 409,
    ErrorCode.RENTAL_UNAVAILABLE: 400,
    ErrorCode.RENTAL_REQUIRED: 403,
    ErrorCode.RATE_LIMITED: 429,
}


def handle_domain_error(e: DomainError):
    body = {'error': e.code.value, 'message': e.message}
    reason = getattr(e, 'reason', None)
    if reason:
        body['reason'] = reason
    resp = jsonify(body)
    resp.status_code = STATUS_BY_CODE.get(e.code, 400)
    retry_after = getattr(e, 'retry_after', None)
    if retry_after:
        resp.headers['Retry-After'] = str(retry_after)
    return resp


def create_app(overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config())
    if overrides:
        app.config.update(overrides)
    app.logger.setLevel(app.config['LOG_LEVEL'])

    db.init_app(app)
    Migrate(app, db)
    # Trust reverse proxy headers (Render/Heroku)
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

    with app.app_context():
        db.create_all()

    from .routes_api import bp as api_bp
    from .routes_admin import bp as admin_bp
    app.register_blueprint(api_bp, url_prefix='/api')
    app.register_blueprint(admin_bp, url_prefix='/admin')
    app.register_error_handler(DomainError, handle_domain_error)

    @app.get('/health')
    def health():
        return {'ok': True}

    return app
