"""
Retail sale engine load test with Locust.

Run with (after `python -m flask system seed-demo`):
    locust -f backend/tests/stress/locustfile.py --host http://127.0.0.1:5001

Or headless:
    locust -f backend/tests/stress/locustfile.py --host http://127.0.0.1:5001 \
           --users 10 --spawn-rate 2 --run-time 60s --headless

Pass thresholds:
- p95 response time < 500ms for reads
- p95 response time < 1000ms for writes
- Error rate < 1% (409 insufficient stock / already void count as expected outcomes)
"""

import os
import random
import time
from datetime import date, timedelta
from typing import Dict, List

from locust import HttpUser, task, between, events


# =============================================================================
# CONFIGURATION
# =============================================================================

# User ids created by `flask system seed-demo` (admin first, then cashier)
ADMIN_USER_ID = int(os.environ.get("LOAD_ADMIN_USER_ID", "1"))
CASHIER_USER_ID = int(os.environ.get("LOAD_CASHIER_USER_ID", "2"))
PAYMENT_METHODS = ["cash", "card", "mobile", "other"]


# =============================================================================
# METRICS TRACKING
# =============================================================================

class MetricsCollector:
    """Collect and report metrics."""

    def __init__(self):
        self.request_counts: Dict[str, int] = {}
        self.error_counts: Dict[str, int] = {}
        self.response_times: Dict[str, List[float]] = {}

    def record(self, name: str, response_time: float, success: bool):
        if name not in self.request_counts:
            self.request_counts[name] = 0
            self.error_counts[name] = 0
            self.response_times[name] = []

        self.request_counts[name] += 1
        if not success:
            self.error_counts[name] += 1
        self.response_times[name].append(response_time)

    def get_summary(self) -> Dict:
        summary = {}
        for name in self.request_counts:
            times = sorted(self.response_times[name])
            count = len(times)
            if count == 0:
                continue

            p95_idx = int(count * 0.95)
            summary[name] = {
                "count": self.request_counts[name],
                "errors": self.error_counts[name],
                "error_rate": self.error_counts[name] / self.request_counts[name] * 100,
                "avg_ms": sum(times) / count,
                "p95_ms": times[p95_idx] if p95_idx < count else times[-1],
            }
        return summary


metrics = MetricsCollector()


# =============================================================================
# USER BEHAVIORS
# =============================================================================

class RetailUser(HttpUser):
    """Base user; identity is forwarded in X-User-Id like the upstream gateway does."""
    wait_time = between(0.5, 2)
    abstract = True

    user_id: int = CASHIER_USER_ID
    product_ids: List[int] = []
    created_sales: List[int] = []

    def on_start(self):
        response = self.client.get("/api/products", headers=self.get_headers(), name="products/list")
        if response.status_code == 200:
            self.product_ids = [p["id"] for p in response.json().get("items", [])]

    def get_headers(self) -> Dict:
        return {"Content-Type": "application/json", "X-User-Id": str(self.user_id)}


class CashierUser(RetailUser):
    """Rings up sales and occasionally voids one."""
    weight = 3

    @task(6)
    def create_sale(self):
        if not self.product_ids:
            return
        picks = random.sample(self.product_ids, k=min(len(self.product_ids), random.randint(1, 3)))

        start = time.time()
        response = self.client.post(
            "/api/sales",
            json={
                "items": [{"product_id": pid, "quantity": random.randint(1, 2)} for pid in picks],
                "payment_method": random.choice(PAYMENT_METHODS),
            },
            headers=self.get_headers(),
            name="sales/create",
        )
        metrics.record("sales/create", (time.time() - start) * 1000, response.status_code in (201, 409))

        if response.status_code == 201:
            self.created_sales.append(response.json()["sale"]["id"])

    @task(1)
    def void_sale(self):
        if not self.created_sales:
            return
        sale_id = random.choice(self.created_sales[-10:])

        start = time.time()
        response = self.client.patch(
            f"/api/sales/{sale_id}/void",
            headers=self.get_headers(),
            name="sales/void",
        )
        metrics.record("sales/void", (time.time() - start) * 1000, response.status_code in (200, 409))

    @task(3)
    def list_sales(self):
        start = time.time()
        response = self.client.get(
            "/api/sales", params={"limit": 20}, headers=self.get_headers(), name="sales/list"
        )
        metrics.record("sales/list", (time.time() - start) * 1000, response.status_code == 200)

    @task(2)
    def inventory_alerts(self):
        start = time.time()
        response = self.client.get("/api/inventory/alerts", headers=self.get_headers(), name="inventory/alerts")
        metrics.record("inventory/alerts", (time.time() - start) * 1000, response.status_code == 200)


class ManagerUser(RetailUser):
    """Reads reports and restocks."""
    weight = 1
    user_id = ADMIN_USER_ID

    def _window(self) -> Dict:
        today = date.today()
        return {"start": (today - timedelta(days=30)).isoformat(), "end": today.isoformat()}

    @task(3)
    def summary(self):
        start = time.time()
        response = self.client.get(
            "/api/reports/summary", params=self._window(), headers=self.get_headers(), name="reports/summary"
        )
        metrics.record("reports/summary", (time.time() - start) * 1000, response.status_code == 200)

    @task(2)
    def revenue_trends(self):
        params = dict(self._window(), granularity=random.choice(["day", "week", "month"]))
        start = time.time()
        response = self.client.get(
            "/api/reports/revenue-trends", params=params, headers=self.get_headers(), name="reports/trends"
        )
        metrics.record("reports/trends", (time.time() - start) * 1000, response.status_code == 200)

    @task(2)
    def top_products(self):
        start = time.time()
        response = self.client.get(
            "/api/reports/top-products", headers=self.get_headers(), name="reports/top_products"
        )
        metrics.record("reports/top_products", (time.time() - start) * 1000, response.status_code == 200)

    @task(1)
    def restock(self):
        if not self.product_ids:
            return
        start = time.time()
        response = self.client.put(
            f"/api/inventory/{random.choice(self.product_ids)}/stock",
            json={"quantity": random.randint(5, 20), "operation": "add"},
            headers=self.get_headers(),
            name="inventory/add",
        )
        metrics.record("inventory/add", (time.time() - start) * 1000, response.status_code == 200)

    @task(1)
    def health_check(self):
        start = time.time()
        response = self.client.get("/health", name="system/health")
        metrics.record("system/health", (time.time() - start) * 1000, response.status_code == 200)


# =============================================================================
# EVENT HANDLERS
# =============================================================================

@events.test_stop.add_listener
def on_test_stop(environment, **kwargs):
    """Print summary when test stops."""
    print("\n" + "=" * 80)
    print("LOAD TEST SUMMARY")
    print("=" * 80)

    summary = metrics.get_summary()

    print(f"\n{'Endpoint':<30} {'Count':>8} {'Errors':>8} {'Err%':>8} {'Avg(ms)':>10} {'P95(ms)':>10}")
    print("-" * 80)

    total_requests = 0
    total_errors = 0
    all_pass = True

    for name, stats in sorted(summary.items()):
        total_requests += stats["count"]
        total_errors += stats["errors"]

        p95_threshold = 1000 if name in ("sales/create", "sales/void", "inventory/add") else 500
        passed = stats["p95_ms"] < p95_threshold and stats["error_rate"] < 1

        status = "PASS" if passed else "FAIL"
        if not passed:
            all_pass = False

        print(f"{name:<30} {stats['count']:>8} {stats['errors']:>8} {stats['error_rate']:>7.2f}% {stats['avg_ms']:>9.1f} {stats['p95_ms']:>9.1f} [{status}]")

    print("-" * 80)
    print(f"{'TOTAL':<30} {total_requests:>8} {total_errors:>8} {total_errors/max(total_requests,1)*100:>7.2f}%")
    print("=" * 80)
    print("\n[PASS] All endpoints within thresholds" if all_pass else "\n[FAIL] Some endpoints exceeded thresholds")
