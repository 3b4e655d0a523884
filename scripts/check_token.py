#!/usr/bin/env python3
import sys, pathlib

# Usage: python scripts/check_token.py <anonymous|video|trailer> <TOKEN> [SECRET]
# Verifies a signed token locally; SECRET defaults to the app config
ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from cinegate.config import Config
from cinegate.errors import TokenError
from cinegate.services import signing

SECRET_BY_KIND = {
    'anonymous': 'ANONYMOUS_ID_SECRET',
    'video': 'VIDEO_TOKEN_SECRET',
    'trailer': 'TRAILER_TOKEN_SECRET',
}


def err(msg):
    print(f"ERROR: {msg}")
    sys.exit(1)


if len(sys.argv) < 3 or sys.argv[1] not in SECRET_BY_KIND:
    err("Usage: check_token.py <anonymous|video|trailer> <TOKEN> [SECRET]")

kind, token = sys.argv[1], sys.argv[2].strip()
secret = sys.argv[3].strip() if len(sys.argv) > 3 else getattr(Config(), SECRET_BY_KIND[kind])

try:
    payload = signing.verify(secret, token)
except TokenError as e:
    err(str(e))

print(payload)
