"""
Lifecycle Simulation Script

Drives a running server through a full day of service: sets up a
restaurant, fires concurrent customer orders, walks them through the
kitchen and delivery flows, and races two managers on the same order.

Run from project root (server and Celery worker up):
    python scripts/simulate.py --orders 30

Version: 1.0.0
"""

import asyncio
import sys
import os
import random
import time
import argparse
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import httpx

# Windows event loop fix
if sys.platform == "win32":
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())

# Configuration
API_BASE_URL = os.getenv("SERVESOFT_API_URL", "http://localhost:8001")
ADMIN_EMAIL = os.getenv("BOOTSTRAP_ADMIN_EMAIL", "admin@servesoft.local")
ADMIN_PASSWORD = os.getenv("BOOTSTRAP_ADMIN_PASSWORD", "admin")
TOTAL_ORDERS = 30

# Sample data for random orders
FIRST_NAMES = ["Awa", "Jean", "Brice", "Mireille", "Paul", "Estelle", "Yannick", "Carine"]
LAST_NAMES = ["Ndiaye", "Kamga", "Fotso", "Mbarga", "Tchoumi", "Nkoulou", "Essomba"]
NEIGHBOURHOODS = ["Bonapriso", "Akwa", "Bonanjo", "Deido", "Makepe", "Logpom", "Kotto"]
MENU_ITEMS = [
    {"name": "Ndolé", "category": "Plats", "price": 3500},
    {"name": "Poulet DG", "category": "Plats", "price": 6000},
    {"name": "Eru", "category": "Plats", "price": 3000},
    {"name": "Beignets haricots", "category": "Entrées", "price": 1000},
    {"name": "Jus de foléré", "category": "Boissons", "price": 500},
    {"name": "Eau minérale", "category": "Boissons", "price": 400},
]


def auth(user_id: int) -> dict[str, str]:
    return {"X-User-ID": str(user_id)}


def check(response: httpx.Response, expected: int = 200) -> dict[str, Any]:
    if response.status_code != expected:
        raise RuntimeError(
            f"{response.request.method} {response.request.url.path} -> "
            f"{response.status_code}: {response.text[:200]}"
        )
    return response.json()


# =============================================================================
# SETUP
# =============================================================================

async def register(client: httpx.AsyncClient, name: str) -> dict[str, Any]:
    data = check(await client.post(
        f"{API_BASE_URL}/api/auth/register",
        json={
            "name": name,
            "email": f"{uuid.uuid4().hex[:10]}@sim.servesoft.local",
            "password": "simulation",
            "phone": f"6{random.randint(70000000, 99999999)}",
        },
    ), 201)
    return data["user"]


async def setup_restaurant(client: httpx.AsyncClient) -> dict[str, Any]:
    """Create a restaurant with a manager, a menu, tables and a driver."""
    admin = check(await client.post(
        f"{API_BASE_URL}/api/auth/login",
        json={"email": ADMIN_EMAIL, "password": ADMIN_PASSWORD},
    ))["user"]

    restaurant = check(await client.post(
        f"{API_BASE_URL}/api/restaurants",
        json={
            "name": f"Simulation {datetime.now().strftime('%H:%M:%S')}",
            "description": "Load test kitchen",
            "phone": "677000000",
            "address": "Rue Joss",
            "town_city": "Douala",
        },
        headers=auth(admin["id"]),
    ), 201)

    manager = await register(client, "Simulation Manager")
    check(await client.post(
        f"{API_BASE_URL}/api/restaurants/{restaurant['id']}/managers/{manager['id']}",
        headers=auth(admin["id"]),
    ), 201)
    manager_headers = auth(manager["id"])

    menu = []
    for item in MENU_ITEMS:
        menu.append(check(await client.post(
            f"{API_BASE_URL}/api/menu", json=item, headers=manager_headers
        ), 201))

    tables = []
    for number in range(1, 6):
        tables.append(check(await client.post(
            f"{API_BASE_URL}/api/tables",
            json={"table_number": f"T{number}", "capacity": random.choice([2, 4, 6])},
            headers=manager_headers,
        ), 201))

    driver = check(await client.post(
        f"{API_BASE_URL}/api/staff",
        json={
            "email": f"driver-{uuid.uuid4().hex[:8]}@sim.servesoft.local",
            "full_name": "Simulation Driver",
            "password": "simulation",
            "staff_role": "DRIVER",
        },
        headers=manager_headers,
    ), 201)
    check(await client.put(
        f"{API_BASE_URL}/api/users/me/availability",
        json={"is_available": True},
        headers=auth(driver["user_id"]),
    ))

    return {
        "restaurant": restaurant,
        "manager_headers": manager_headers,
        "driver_headers": auth(driver["user_id"]),
        "driver_id": driver["user_id"],
        "menu": menu,
        "tables": tables,
    }


# =============================================================================
# CUSTOMER ORDERS
# =============================================================================

def generate_order_payload(world: dict[str, Any]) -> dict[str, Any]:
    """Random TABLE, PREORDER or DELIVERY order against the simulated menu."""
    order_type = random.choice(["TABLE", "PREORDER", "DELIVERY"])
    payload: dict[str, Any] = {
        "restaurant_id": world["restaurant"]["id"],
        "order_type": order_type,
        "items": [
            {"menu_item_id": item["id"], "quantity": random.randint(1, 3)}
            for item in random.sample(world["menu"], random.randint(1, 3))
        ],
        "notes": random.choice([None, "Pimenté", "Sans oignons", "Bien cuit"]),
    }
    if order_type == "TABLE":
        payload["table_id"] = random.choice(world["tables"])["id"]
    elif order_type == "PREORDER":
        later = datetime.now(timezone.utc) + timedelta(minutes=random.randint(45, 180))
        payload["scheduled_for"] = later.isoformat()
    else:
        payload["delivery_address"] = f"{random.choice(NEIGHBOURHOODS)}, Douala"
    return payload


async def send_order(
    client: httpx.AsyncClient,
    world: dict[str, Any],
    order_num: int
) -> dict[str, Any]:
    """Register a customer and place one order."""
    start_time = time.time()

    try:
        customer = await register(
            client, f"{random.choice(FIRST_NAMES)} {random.choice(LAST_NAMES)}"
        )
        payload = generate_order_payload(world)
        response = await client.post(
            f"{API_BASE_URL}/api/orders",
            json=payload,
            headers=auth(customer["id"]),
            timeout=30.0
        )
        elapsed = round(time.time() - start_time, 3)

        if response.status_code == 201:
            data = response.json()
            return {
                "order_num": order_num,
                "success": True,
                "order_id": data["order_id"],
                "order_type": data["order_type"],
                "total": data["total_amount"],
                "time": elapsed,
            }
        return {
            "order_num": order_num,
            "success": False,
            "error": response.text[:100],
            "time": elapsed,
        }
    except Exception as e:
        elapsed = round(time.time() - start_time, 3)
        return {
            "order_num": order_num,
            "success": False,
            "error": str(e)[:100],
            "time": elapsed,
        }


# =============================================================================
# SERVICE FLOWS
# =============================================================================

FINISH_PATHS = {
    "TABLE": ["IN_PREP", "READY", "COMPLETED"],
    "PREORDER": ["IN_PREP", "READY", "PICKED_UP", "COMPLETED"],
    "DELIVERY": ["IN_PREP", "READY"],
}

DRIVER_PATH = ["ACCEPTED", "PICKED_UP", "OUT_FOR_DELIVERY", "DELIVERED"]


async def work_order(
    client: httpx.AsyncClient,
    world: dict[str, Any],
    order: dict[str, Any]
) -> str:
    """Walk one order to its end state; deliveries go through the driver."""
    headers = world["manager_headers"]
    for status in FINISH_PATHS[order["order_type"]]:
        check(await client.put(
            f"{API_BASE_URL}/api/orders/{order['order_id']}/status",
            json={"status": status},
            headers=headers,
        ))

    if order["order_type"] != "DELIVERY":
        return "COMPLETED"

    assignment = check(await client.post(
        f"{API_BASE_URL}/api/delivery/assign",
        json={"order_id": order["order_id"], "driver_id": world["driver_id"]},
        headers=headers,
    ), 201)
    for status in DRIVER_PATH:
        assignment = check(await client.put(
            f"{API_BASE_URL}/api/delivery/assignments/{assignment['id']}/status",
            json={"status": status},
            headers=world["driver_headers"],
        ))
    return assignment["order"]["status"]


async def race_on_order(client: httpx.AsyncClient, world: dict[str, Any]) -> list[int]:
    """Two managers move the same fresh order at once; exactly one must win."""
    customer = await register(client, "Race Customer")
    payload = generate_order_payload(world)
    payload.update(order_type="DELIVERY", delivery_address="Akwa, Douala", table_id=None)
    order = check(await client.post(
        f"{API_BASE_URL}/api/orders", json=payload, headers=auth(customer["id"])
    ), 201)

    url = f"{API_BASE_URL}/api/orders/{order['order_id']}/status"
    responses = await asyncio.gather(
        client.put(url, json={"status": "IN_PREP"}, headers=world["manager_headers"]),
        client.put(
            url,
            json={"status": "CANCELLED", "reason": "race"},
            headers=world["manager_headers"],
        ),
    )
    return sorted(r.status_code for r in responses)


# =============================================================================
# MAIN SIMULATION RUNNER
# =============================================================================

async def run_simulation(num_orders: int = TOTAL_ORDERS) -> dict[str, Any]:
    """
    Run the lifecycle simulation.

    Args:
        num_orders: Number of concurrent customer orders
    """
    print("=" * 70)
    print("🔥 LIFECYCLE SIMULATION")
    print("=" * 70)
    print(f"📋 Total Orders: {num_orders}")
    print(f"🎯 Target: {API_BASE_URL}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    start_time = time.time()

    async with httpx.AsyncClient(timeout=30.0) as client:
        world = await setup_restaurant(client)
        print(f"\n🏪 Restaurant #{world['restaurant']['id']} ready "
              f"({len(world['menu'])} dishes, {len(world['tables'])} tables)")

        print("\n🚀 Firing customer orders...\n")
        tasks = [send_order(client, world, i + 1) for i in range(num_orders)]
        results = await asyncio.gather(*tasks)

        successful = [r for r in results if r["success"]]
        failed = [r for r in results if not r["success"]]

        print("👨‍🍳 Working orders through kitchen and delivery...")
        outcomes = await asyncio.gather(
            *(work_order(client, world, order) for order in successful),
            return_exceptions=True,
        )

        race = await race_on_order(client, world)

        stats = check(await client.get(
            f"{API_BASE_URL}/api/dashboard", headers=world["manager_headers"]
        ))

    total_time = round(time.time() - start_time, 2)
    broken = [o for o in outcomes if isinstance(o, Exception)]

    # Print results
    print("\n" + "=" * 70)
    print("📊 SIMULATION RESULTS")
    print("=" * 70)

    print(f"\n✅ Successful Orders: {len(successful)}/{num_orders}")
    print(f"❌ Failed Orders: {len(failed)}/{num_orders}")
    print(f"🔁 Lifecycle errors: {len(broken)}")
    print(f"🏁 Race outcome (expect [200, 409]): {race}")
    print(f"⏱️  Total Time: {total_time}s")

    if successful:
        avg_time = round(sum(r["time"] for r in successful) / len(successful), 3)
        total_revenue = sum(r.get("total", 0) for r in successful)

        print("\n📈 Performance Metrics:")
        print(f"   Average Response: {avg_time}s")
        print(f"   Fastest: {min(r['time'] for r in successful)}s")
        print(f"   Slowest: {max(r['time'] for r in successful)}s")
        print(f"   💰 Total Revenue: {total_revenue:.0f} XAF")

    print(f"\n📋 Dashboard: {stats['orders_by_status']}")

    if failed:
        print("\n⚠️  Failed Order Details (showing first 5):")
        for f in failed[:5]:
            print(f"   Order #{f['order_num']}: {f.get('error', 'Unknown error')}")
    for error in broken[:5]:
        print(f"   Lifecycle: {error}")

    print("\n" + "=" * 70)
    print("🔍 VERIFICATION STEPS")
    print("=" * 70)
    print("1. Check Celery terminal - all export tasks should complete")
    print("2. Run: python scripts/verify.py")
    print("=" * 70)

    return {
        "total": num_orders,
        "successful": len(successful),
        "failed": len(failed),
        "lifecycle_errors": len(broken),
        "race": race,
        "total_time": total_time,
    }


async def preflight() -> bool:
    """Check the server is up before firing orders."""
    async with httpx.AsyncClient() as client:
        print("\n1️⃣ Health Check...")
        try:
            response = await client.get(f"{API_BASE_URL}/health")
        except httpx.HTTPError as e:
            print(f"   ❌ Server unreachable: {e}")
            return False

        if response.status_code != 200:
            print(f"   ❌ Failed: {response.text}")
            return False

        data = response.json()
        print(f"   ✅ Status: {data.get('status')}")
        print(f"   Database: {data.get('database')}")
        print(f"   Redis: {data.get('redis')}")
        return data.get("database") == "healthy"


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Lifecycle Simulation Script")
    parser.add_argument("--orders", type=int, default=TOTAL_ORDERS, help="Number of orders")
    parser.add_argument("--skip-preflight", action="store_true", help="Skip health check")
    args = parser.parse_args()

    if not args.skip_preflight and not asyncio.run(preflight()):
        print("\n❌ Pre-flight check failed. Start the server first.")
        sys.exit(1)

    summary = asyncio.run(run_simulation(args.orders))
    sys.exit(0 if summary["failed"] == 0 and summary["lifecycle_errors"] == 0 else 1)
