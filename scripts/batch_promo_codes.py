#!/usr/bin/env python3
import os, sys, csv, secrets
import argparse
import pathlib
import requests

# Batch-create promo codes by calling POST /admin/promo-codes
# Outputs a CSV of the created codes

ALPHABET = 'ABCDEFGHJKLMNPQRSTUVWXYZ23456789'


def parse_args():
    p = argparse.ArgumentParser(description='Batch generate promo codes using the admin API')
    p.add_argument('--base-url', default=os.environ.get('BASE_URL', 'http://localhost:8000'), help='Service base URL')
    p.add_argument('--admin-key', default=os.environ.get('ADMIN_API_KEY'), help='X-Admin-Key (env ADMIN_API_KEY)')
    p.add_argument('--prefix', default='PROMO', help='code prefix')
    p.add_argument('--type', dest='discount_type', choices=['percentage', 'fixed', 'free'], default='percentage')
    p.add_argument('--value', type=int, default=None, help='percent (1-100) or LAK amount; omit for free')
    p.add_argument('--max-uses', type=int, default=1, help='uses per code')
    p.add_argument('--movie', default=None, help='restrict codes to one movie id')
    p.add_argument('--valid-to', default=None, help='ISO 8601 expiry')
    p.add_argument('--count', type=int, default=int(os.environ.get('COUNT', '10')), help='number of codes to create')
    p.add_argument('--out', default='out/promo_codes.csv', help='CSV output path')
    return p.parse_args()


def random_code(prefix: str, length: int = 8) -> str:
    return prefix + '-' + ''.join(secrets.choice(ALPHABET) for _ in range(length))


def create_one(base_url: str, key: str, body: dict) -> dict:
    url = f"{base_url.rstrip('/')}/admin/promo-codes"
    headers = {
        'X-Admin-Key': key,
        'Accept': 'application/json',
        'Content-Type': 'application/json',
    }
    r = requests.post(url, headers=headers, json=body, timeout=30)
    if r.status_code != 201:
        raise RuntimeError(f"create promo code failed {r.status_code}: {r.text[:200]}")
    return r.json()['promoCode']


def main():
    args = parse_args()
    if not args.admin_key:
        print('ERROR: missing --admin-key or env ADMIN_API_KEY', file=sys.stderr)
        sys.exit(1)
    out_path = pathlib.Path(args.out)
    out_path.parent.mkdir(parents=True, exist_ok=True)

    rows = []
    print(f"Creating {args.count} {args.discount_type} codes on {args.base_url}")
    for i in range(args.count):
        body = {
            'code': random_code(args.prefix),
            'discountType': args.discount_type,
            'discountValue': args.value,
            'maxUses': args.max_uses,
            'movieId': args.movie,
            'validTo': args.valid_to,
        }
        try:
            promo = create_one(args.base_url, args.admin_key, body)
        except (requests.RequestException, RuntimeError) as e:
            print(f"[{i+1}/{args.count}] ERROR: {e}", file=sys.stderr)
            sys.exit(2)
        rows.append({k: promo[k] for k in ('id', 'code', 'discountType', 'discountValue', 'maxUses', 'validTo')})
        print(f"[{i+1}/{args.count}] {promo['code']}")

    with open(out_path, 'w', newline='') as f:
        w = csv.DictWriter(f, fieldnames=['id', 'code', 'discountType', 'discountValue', 'maxUses', 'validTo'])
        w.writeheader()
        for r in rows:
            w.writerow(r)
    print(f"Done. CSV: {out_path}")


if __name__ == '__main__':
    main()
