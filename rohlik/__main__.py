#!/usr/bin/env python3
"""
Command line access to the storefront client.

Usage:
    python -m rohlik product 1440986
    python -m rohlik products --known
    python -m rohlik search mleko --limit 5
    python -m rohlik category c300105000-pekarna
    python -m rohlik area 12000
    python -m rohlik health

Account commands log in with ROHLIK_EMAIL / ROHLIK_PASSWORD:
    python -m rohlik cart
    python -m rohlik orders
    python -m rohlik slots --date 2024-03-12
    python -m rohlik session
"""

import argparse
import asyncio
import json
import logging
import sys

from .config import Settings
from .errors import StorefrontError
from .logging_setup import Colors, configure_logging
from .storefront import Storefront

logger = logging.getLogger('rohlik.cli')


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, ensure_ascii=False, default=str))


def _entities(items) -> list:
    return [item.to_dict() for item in items]


async def _login(shop: Storefront) -> None:
    status = await shop.auth.login_with_settings()
    logger.info(Colors.green(f"Logged in as {status.email}"))


async def run(args: argparse.Namespace, settings: Settings) -> int:
    async with Storefront.create(settings) as shop:
        if args.command == 'product':
            product = await shop.products.get_product(args.product_id)
            if product is None:
                logger.warning(Colors.yellow(f"Product {args.product_id} not found"))
                return 1
            _print_json(product.to_dict())

        elif args.command == 'products':
            ids = args.product_ids
            products = await (shop.products.get_known_products() if args.known or not ids
                              else shop.products.get_products(ids))
            _print_json(_entities(products))

        elif args.command == 'search':
            products = await shop.products.search_products(query=args.query, limit=args.limit)
            _print_json(_entities(products))

        elif args.command == 'category':
            products = await shop.products.get_category_products(args.path, limit=args.limit)
            _print_json(_entities(products))

        elif args.command == 'area':
            area = await shop.location.get_delivery_area(args.postal_code)
            if area is None:
                print(f"No delivery to {args.postal_code}")
                return 1
            _print_json(area.to_dict())

        elif args.command == 'cart':
            await _login(shop)
            cart = await shop.cart.get_cart()
            _print_json(cart.to_dict())

        elif args.command == 'orders':
            await _login(shop)
            orders = await shop.orders.get_order_history()
            _print_json(_entities(orders))

        elif args.command == 'slots':
            await _login(shop)
            slots = await shop.location.get_delivery_slots(args.date)
            _print_json(_entities(slots))

        elif args.command == 'session':
            await _login(shop)
            valid = await shop.auth.validate_session()
            report = shop.auth.status().to_dict()
            report['validated'] = valid
            if not valid:
                logger.warning(Colors.yellow("Session did not survive the protected page check"))
            _print_json(report)

        elif args.command == 'health':
            _print_json(shop.health())

    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='rohlik', description='Rohlik.cz storefront client')
    parser.add_argument('--log-level', help='Override LOG_LEVEL')
    parser.add_argument('--no-log-file', action='store_true', help='Log to the console only')
    commands = parser.add_subparsers(dest='command', required=True)

    product = commands.add_parser('product', help='Show one product')
    product.add_argument('product_id')

    products = commands.add_parser('products', help='Fetch several products')
    products.add_argument('product_ids', nargs='*')
    products.add_argument('--known', action='store_true', help='Use the built-in product ids')

    search = commands.add_parser('search', help='Search products')
    search.add_argument('query')
    search.add_argument('--limit', type=int, default=20)

    category = commands.add_parser('category', help='List a category')
    category.add_argument('path')
    category.add_argument('--limit', type=int, default=20)

    area = commands.add_parser('area', help='Delivery area for a postal code')
    area.add_argument('postal_code')

    commands.add_parser('cart', help='Show the cart (needs credentials)')
    commands.add_parser('orders', help='Show order history (needs credentials)')

    slots = commands.add_parser('slots', help='Show delivery slots (needs credentials)')
    slots.add_argument('--date', help='YYYY-MM-DD')

    commands.add_parser('session', help='Log in and check the session (needs credentials)')
    commands.add_parser('health', help='Show client configuration and state')
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    settings = Settings()
    if args.log_level:
        settings.log_level = args.log_level
    configure_logging(settings, log_to_file=not args.no_log_file)

    try:
        return asyncio.run(run(args, settings))
    except StorefrontError as e:
        logger.error(Colors.red(f"{type(e).__name__}: {e}"))
        return 2


if __name__ == '__main__':
    sys.exit(main())
