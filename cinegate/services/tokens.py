import time
from urllib.parse import urlparse

from flask import current_app

from . import signing

VIDEO_TOKEN_TTL = 15 * 60
TRAILER_TOKEN_TTL = 2 * 60 * 60


class AccessTokenIssuer:
    """Short-lived capability tokens redeemed by the video server.

    Video tokens are only minted after an entitlement check by the caller.
    Trailer tokens skip it (marketing content) and live longer. The two
    classes use separate secrets, so neither verifies as the other.
    """

    def __init__(self, video_secret, trailer_secret,
                 video_ttl: int = VIDEO_TOKEN_TTL, trailer_ttl: int = TRAILER_TOKEN_TTL,
                 clock=time.time):
        if not video_secret or not trailer_secret:
            raise ValueError('token secrets must not be empty')
        self._video_secret = video_secret
        self._trailer_secret = trailer_secret
        self.video_ttl = video_ttl
        self.trailer_ttl = trailer_ttl
        self._clock = clock

    def _payload(self, resource_id, movie_id, identity, path, ttl):
        payload = {'movieId': movie_id, 'path': path}
        if resource_id is not None:
            payload['resourceId'] = resource_id
        payload.update(identity.payload_fields())
        payload['exp'] = int(self._clock()) + ttl
        return payload

    def issue_video_token(self, movie_id: str, identity, video_path: str, resource_id: str | None = None) -> str:
        payload = self._payload(resource_id, movie_id, identity, video_path, self.video_ttl)
        return signing.sign(self._video_secret, payload)

    def issue_trailer_token(self, trailer_id: str, movie_id: str, identity, trailer_path: str) -> str:
        payload = self._payload(trailer_id, movie_id, identity, trailer_path, self.trailer_ttl)
        return signing.sign(self._trailer_secret, payload)

    def verify_video_token(self, token: str) -> dict:
        return signing.verify(self._video_secret, token, now=int(self._clock()))

    def verify_trailer_token(self, token: str) -> dict:
        return signing.verify(self._trailer_secret, token, now=int(self._clock()))


def access_tokens() -> AccessTokenIssuer:
    issuer = current_app.extensions.get('access_tokens')
    if issuer is None:
        cfg = current_app.config
        issuer = AccessTokenIssuer(
            cfg['VIDEO_TOKEN_SECRET'],
            cfg['TRAILER_TOKEN_SECRET'],
            video_ttl=cfg['VIDEO_TOKEN_TTL'],
            trailer_ttl=cfg['TRAILER_TOKEN_TTL'],
        )
        current_app.extensions['access_tokens'] = issuer
    return issuer


def video_path(slug: str) -> str:
    return f"hls/{slug}/master.m3u8"


def trailer_path(video_url: str) -> str:
    """Normalise a trailer's stored URL to a path under ``trailers/``.

    Accepts full URLs, paths containing ``/trailers/``, bare slugs and
    relative paths.
    """
    if '/trailers/' in video_url:
        return 'trailers/' + video_url.split('/trailers/', 1)[1]
    if video_url.startswith('http'):
        return 'trailers/' + urlparse(video_url).path.lstrip('/')
    if '/' not in video_url and '.' not in video_url:
        return f"trailers/hls/{video_url}/master.m3u8"
    return 'trailers/' + video_url


def signed_url(base_url: str, path: str, token: str, local_prefix: str = '') -> str:
    base = base_url.rstrip('/')
    # GCS bases already point at the bucket; a local video server mounts under a prefix
    if local_prefix and 'storage.googleapis.com' not in base:
        return f"{base}/{local_prefix}/{path}?token={token}"
    return f"{base}/{path}?token={token}"
