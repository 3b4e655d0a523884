#!/usr/bin/env python3
import sys, json, time, redis

# Usage: python scripts/check_rate_limits.py <REDIS_URL> <KIND> <IDENTITY_KEY> [WINDOW]
# Shows the current fixed-window counter for a viewer, e.g. KIND=video-token IDENTITY_KEY=anon:<uuid>

if len(sys.argv) < 4:
    print("Usage: check_rate_limits.py <REDIS_URL> <KIND> <IDENTITY_KEY> [WINDOW]")
    sys.exit(1)

url = sys.argv[1].strip()
kind = sys.argv[2].strip()
identifier = sys.argv[3].strip()
window = int(sys.argv[4]) if len(sys.argv) > 4 else 60

r = redis.from_url(url, decode_responses=True)

bucket = int(time.time() // window)
key = f"rl:{kind}:{identifier}:{bucket}"
count = r.get(key)

print(json.dumps({
    'redis': url,
    'key': key,
    'count': int(count) if count else 0,
    'ttl': r.ttl(key),
}, indent=2))
