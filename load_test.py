"""
Checkout contention test for the marketplace API.

Many buyers hammer POST /api/orders against a single lot at once. Reports
p50/p90/p95/p99 latency and status codes, then checks that the lot was never
oversold: remaining units == initial units - (successful orders * quantity).

Run against a seeded server (``python -m marketplace seed``).
"""
import argparse
import asyncio
import json
import statistics
import time
import uuid
from collections import defaultdict
from datetime import datetime

import aiohttp


class CheckoutLoadTester:
    def __init__(self, base_url="http://localhost:8000", buyers=20, orders_per_buyer=10, quantity=1, product_id=1):
        self.base_url = base_url.rstrip("/")
        self.buyers = buyers
        self.orders_per_buyer = orders_per_buyer
        self.quantity = quantity
        self.product_id = product_id
        self.results = {
            "created": 0,
            "failed": 0,
            "timeouts": 0,
            "response_times": [],
            "errors": defaultdict(int),
            "status_codes": defaultdict(int),
        }

    @property
    def total_requests(self) -> int:
        return self.buyers * self.orders_per_buyer

    async def register_buyer(self, session):
        name = f"load-{uuid.uuid4().hex[:10]}"
        payload = {
            "username": name,
            "password": "loadtest-pass",
            "email": f"{name}@example.com",
            "firstName": "Load",
            "lastName": "Tester",
            "role": "buyer",
        }
        async with session.post(f"{self.base_url}/api/register", json=payload) as response:
            if response.status != 201:
                raise RuntimeError(f"buyer registration failed: {response.status} {await response.text()}")

    async def get_product(self, session):
        async with session.get(f"{self.base_url}/api/products/{self.product_id}") as response:
            response.raise_for_status()
            return await response.json()

    async def place_order(self, session, product):
        body = {
            "sellerId": product["seller_id"],
            "paymentDetails": {"method": "card"},
            "items": [{
                "productId": product["id"],
                "quantity": self.quantity,
                "unitPrice": product["price"],
            }],
        }
        start_time = time.time()
        try:
            async with session.post(f"{self.base_url}/api/orders", json=body,
                                    timeout=aiohttp.ClientTimeout(total=30)) as response:
                await response.text()
                self.results["response_times"].append(time.time() - start_time)
                self.results["status_codes"][response.status] += 1
                if response.status == 201:
                    self.results["created"] += 1
                else:
                    self.results["failed"] += 1
        except asyncio.TimeoutError:
            self.results["timeouts"] += 1
            self.results["errors"]["Timeout"] += 1
        except aiohttp.ClientError as e:
            self.results["failed"] += 1
            self.results["errors"][type(e).__name__] += 1

    async def buyer_worker(self, product):
        # one cookie jar per buyer so each worker keeps its own session
        async with aiohttp.ClientSession(cookie_jar=aiohttp.CookieJar(unsafe=True)) as session:
            await self.register_buyer(session)
            for _ in range(self.orders_per_buyer):
                await self.place_order(session, product)

    async def run(self):
        async with aiohttp.ClientSession() as session:
            before = await self.get_product(session)
        adjusted_min = max(before["min_order_quantity"], self.quantity)
        if adjusted_min % before["order_multiple"]:
            adjusted_min += before["order_multiple"] - adjusted_min % before["order_multiple"]
        self.quantity = adjusted_min

        print(f"\n{'='*80}\nCHECKOUT CONTENTION TEST\n{'='*80}")
        print(f"Base URL: {self.base_url}")
        print(f"Lot: #{before['id']} {before['title']} (available={before['available_units']})")
        print(f"Buyers: {self.buyers}  Orders/buyer: {self.orders_per_buyer}  Qty/order: {self.quantity}")

        start_time = time.time()
        await asyncio.gather(*(self.buyer_worker(before) for _ in range(self.buyers)))
        total_time = time.time() - start_time

        async with aiohttp.ClientSession() as session:
            after = await self.get_product(session)
        self.print_results(total_time, before, after)

    def print_results(self, total_time, before, after):
        expected = before["available_units"] - self.results["created"] * self.quantity
        consistent = after["available_units"] == expected and after["available_units"] >= 0

        print(f"\n{'='*80}\nRESULTS\n{'='*80}")
        print(f"  Total Time: {total_time:.2f} seconds")
        print(f"  Requests: {self.total_requests:,}  ({self.total_requests/total_time:.2f} req/s)")
        print(f"  Created: {self.results['created']:,}  Failed: {self.results['failed']:,}  Timeouts: {self.results['timeouts']:,}")

        percentiles = {}
        response_times = sorted(self.results["response_times"])
        if response_times:
            for label, q in (("p50", 0.50), ("p90", 0.90), ("p95", 0.95), ("p99", 0.99)):
                percentiles[label] = response_times[min(int(len(response_times) * q), len(response_times) - 1)] * 1000
            print("\nLATENCY:")
            print(f"  Mean: {statistics.mean(response_times)*1000:.2f} ms")
            for label, value in percentiles.items():
                print(f"  {label}: {value:.2f} ms")

        print("\nSTATUS CODES:")
        for code, count in sorted(self.results["status_codes"].items()):
            print(f"  {code}: {count:,}")
        if self.results["errors"]:
            print("\nERRORS:")
            for error, count in sorted(self.results["errors"].items(), key=lambda x: x[1], reverse=True):
                print(f"  {error}: {count:,}")

        print("\nINVENTORY:")
        print(f"  Before: {before['available_units']}  After: {after['available_units']}  Expected: {expected}")
        print(f"  {'OK - no oversell' if consistent else 'MISMATCH - inventory drifted'}")

        results_file = f"checkout_load_{datetime.now().strftime('%Y%m%d_%H%M%S')}.json"
        with open(results_file, "w") as f:
            json.dump({
                "total_time": total_time,
                "requests": self.total_requests,
                "created": self.results["created"],
                "failed": self.results["failed"],
                "timeouts": self.results["timeouts"],
                "latency_ms": percentiles,
                "status_codes": dict(self.results["status_codes"]),
                "inventory": {"before": before["available_units"], "after": after["available_units"],
                              "expected": expected, "consistent": consistent},
            }, f, indent=2)
        print(f"\nResults saved to: {results_file}\n")


def main():
    parser = argparse.ArgumentParser(description=__doc__.strip().splitlines()[0])
    parser.add_argument("--base-url", default="http://localhost:8000")
    parser.add_argument("--buyers", type=int, default=20)
    parser.add_argument("--orders-per-buyer", type=int, default=10)
    parser.add_argument("--quantity", type=int, default=1)
    parser.add_argument("--product-id", type=int, default=1)
    args = parser.parse_args()
    tester = CheckoutLoadTester(args.base_url, args.buyers, args.orders_per_buyer, args.quantity, args.product_id)
    asyncio.run(tester.run())


if __name__ == "__main__":
    main()
