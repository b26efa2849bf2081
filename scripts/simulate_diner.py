"""
Diner Simulation Script

Opens a menu session for a short code, optionally places a sample order,
and follows order status until every order is finished.
Run from project root: python scripts/simulate_diner.py ABC1 --order
"""

import argparse
import asyncio
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from diner_session.core.dependencies import create_menu_session
from diner_session.core.logging import setup_logging
from diner_session.services.menu_session.currency import format_price

SAMPLE_ITEMS = [
    {"id": 1, "name": "Chicken Kottu", "quantity": 1, "unit_price": 1450.0},
    {"id": 2, "name": "Iced Milo", "quantity": 2, "unit_price": 450.0,
     "selectedVariation": {"name": "Large", "price": 100.0}},
]


def print_orders(session) -> None:
    if not session.orders:
        print("  (no orders)")
    for order in session.orders:
        marker = "*" if order.is_active else " "
        print(f" {marker} #{order.order_number:<10} {order.status.value:<10} {order.formatted_total}")


async def run(short_code: str, place: bool, currency: str, max_polls: int) -> int:
    async with await create_menu_session() as session:
        token, _ = await session.init_session(short_code)
        if not token:
            print(f"Could not open a session for menu {short_code}")
            return 1

        print(f"Session for {short_code}: {token[:12]}...")
        print_orders(session)

        if place:
            total = sum(item["unit_price"] * item["quantity"] for item in SAMPLE_ITEMS)
            print(f"\nPlacing sample order ({format_price(total, currency)} before variations)")
            order = await session.place_order(SAMPLE_ITEMS, currency=currency, notes="Simulated order")
            if order is None:
                print(f"Order failed: {session.order_error}")
                return 1
            print(f"Placed order #{order.order_number}")

        polls = 0
        while session.is_polling and polls < max_polls:
            await asyncio.sleep(session.poll_interval)
            polls += 1
            print(f"\nStatus after {polls} poll(s):")
            print_orders(session)

        return 0


def main() -> None:
    parser = argparse.ArgumentParser(description="Simulate a diner on a public menu")
    parser.add_argument("short_code", help="Menu short code from the QR link")
    parser.add_argument("--order", action="store_true", help="Place a sample order")
    parser.add_argument("--currency", default="LKR", help="Order currency (default: LKR)")
    parser.add_argument("--max-polls", type=int, default=60, help="Stop watching after N polls")
    args = parser.parse_args()

    setup_logging()
    sys.exit(asyncio.run(run(args.short_code, args.order, args.currency, args.max_polls)))


if __name__ == "__main__":
    main()
