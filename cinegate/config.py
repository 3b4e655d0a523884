import os


def _read_secret_file(name: str):
    # Secret Files on Render are mounted under /etc/secrets
    for p in (f'/etc/secrets/{name}', name):
        try:
            with open(p, 'r') as f:
                return f.read().strip()
        except OSError:
            continue
    return None


class Config:
    SECRET_KEY = os.environ.get('SECRET_KEY', 'dev')
    SQLALCHEMY_DATABASE_URI = os.environ.get('DATABASE_URL', 'sqlite:///local.db')
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    REDIS_URL = os.environ.get('REDIS_URL', 'redis://localhost:6379/0')
    USE_REDIS = os.environ.get('USE_REDIS', '1').lower() not in ('0', 'false', 'no')
    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')

    # One secret per token class; rotating one leaves the others valid.
    ANONYMOUS_ID_SECRET = os.environ.get('ANONYMOUS_ID_SECRET')
    VIDEO_TOKEN_SECRET = os.environ.get('VIDEO_TOKEN_SECRET')
    TRAILER_TOKEN_SECRET = os.environ.get('TRAILER_TOKEN_SECRET')

    ANONYMOUS_ID_LIFETIME_DAYS = int(os.environ.get('ANONYMOUS_ID_LIFETIME_DAYS', '90'))
    VIDEO_TOKEN_TTL = int(os.environ.get('VIDEO_TOKEN_TTL', '900'))
    TRAILER_TOKEN_TTL = int(os.environ.get('TRAILER_TOKEN_TTL', '7200'))
    RENTAL_DURATION_HOURS = int(os.environ.get('RENTAL_DURATION_HOURS', '24'))
    DEFAULT_PACK_PRICE_LAK = int(os.environ.get('DEFAULT_PACK_PRICE_LAK', '0'))

    VIDEO_SERVER_URL = os.environ.get('VIDEO_SERVER_URL', 'http://localhost:3002')
    ADMIN_API_KEY = os.environ.get('ADMIN_API_KEY')

    # requests per minute, per viewer
    VIDEO_TOKEN_RATE_LIMIT = int(os.environ.get('VIDEO_TOKEN_RATE_LIMIT', '30'))
    TRAILER_TOKEN_RATE_LIMIT = int(os.environ.get('TRAILER_TOKEN_RATE_LIMIT', '60'))

    def __init__(self):
        # Optional fallbacks for secrets not present in the environment
        if not self.ANONYMOUS_ID_SECRET:
            self.ANONYMOUS_ID_SECRET = _read_secret_file('anonymous_id_secret') or 'dev-anonymous-secret'
        if not self.VIDEO_TOKEN_SECRET:
            self.VIDEO_TOKEN_SECRET = _read_secret_file('video_token_secret') or 'dev-video-secret'
        if not self.TRAILER_TOKEN_SECRET:
            self.TRAILER_TOKEN_SECRET = _read_secret_file('trailer_token_secret') or 'dev-trailer-secret'
        if (not self.SECRET_KEY) or self.SECRET_KEY == 'dev':
            self.SECRET_KEY = _read_secret_file('secret_key') or 'dev'
        if not self.ADMIN_API_KEY:
            self.ADMIN_API_KEY = _read_secret_file('admin_api_key')
