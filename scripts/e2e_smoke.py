#!/usr/bin/env python3
"""
End-to-end smoke test against a running order fulfillment service.

Run:
  uvicorn order_service.app.main:app --port 8000
  python scripts/e2e_smoke.py

Optional env:
  ORDER_BASE=http://localhost:8000
  TIMEOUT_SECONDS=30
  POLL_INTERVAL=0.5
  DEBUG=1

Start the service with PAYMENT_SUCCESS_RATE=1 for a deterministic happy path.
"""

from __future__ import annotations

import os
import sys
import time
import uuid
from dataclasses import dataclass
from typing import Any

import requests


# =========================
# Simple CLI UI (ANSI)
# =========================

class Style:
    RESET = "\033[0m"
    BOLD = "\033[1m"
    DIM = "\033[2m"

    RED = "\033[91m"
    GREEN = "\033[92m"
    YELLOW = "\033[93m"
    BLUE = "\033[94m"
    CYAN = "\033[96m"
    GRAY = "\033[90m"


def section_title(text: str):
    print(f"\n{Style.BLUE}{Style.BOLD}== {text} =={Style.RESET}")


def info(msg: str):
    print(f"{Style.CYAN}ℹ {msg}{Style.RESET}")


def ok(msg: str):
    print(f"{Style.GREEN}✔ {msg}{Style.RESET}")


def fail(msg: str):
    print(f"{Style.RED}✘ {msg}{Style.RESET}")


# =========================
# Config
# =========================

ORDER_BASE = os.getenv("ORDER_BASE", "http://localhost:8000")
TIMEOUT_SECONDS = float(os.getenv("TIMEOUT_SECONDS", "30"))
POLL_INTERVAL = float(os.getenv("POLL_INTERVAL", "0.5"))
DEBUG = os.getenv("DEBUG", "0").strip().lower() in {"1", "true", "yes"}

PRODUCTS_PATH = "/api/v1/products"
PRODUCT_PATH = "/api/v1/products/{product_id}"
PLACE_ORDER_PATH = "/api/v1/orders/place-order"
ORDER_STATUS_PATH = "/api/v1/orders/{order_id}/status"
CANCEL_ORDER_PATH = "/api/v1/orders/{order_id}/cancel"
STATISTICS_PATH = "/api/v1/orders/statistics"

TERMINAL_STATUSES = {"SHIPPED", "DELIVERED", "CANCELLED", "PAYMENT_FAILED"}


def debug(msg: str):
    if DEBUG:
        print(f"{Style.GRAY}… {msg}{Style.RESET}")


@dataclass
class TestResult:
    name: str
    success: bool
    details: str = ""


# =========================
# HTTP helpers
# =========================

def http(method: str, path: str, **kwargs) -> requests.Response:
    kwargs.setdefault("timeout", 8)
    url = ORDER_BASE + path
    debug(f"{method} {url} {kwargs.get('json', '')}")
    return requests.request(method, url, **kwargs)


def wait_for_health(timeout: float = 30) -> bool:
    start = time.time()
    while time.time() - start < timeout:
        try:
            if http("GET", "/").status_code == 200:
                ok("order service is healthy.")
                return True
        except requests.exceptions.RequestException as e:
            debug(f"not ready: {e}")
        time.sleep(1)
    fail(f"order service did not become healthy in {timeout} seconds.")
    return False


def create_product(name: str, stock: int) -> int:
    resp = http("POST", PRODUCTS_PATH, json={"name": name, "price": 10.0, "stock_quantity": stock})
    resp.raise_for_status()
    return resp.json()["id"]


def stock_of(product_id: int) -> int:
    resp = http("GET", PRODUCT_PATH.format(product_id=product_id))
    resp.raise_for_status()
    return resp.json()["stock_quantity"]


def place_order(product_ids: list[int]) -> dict[str, Any]:
    payload = {
        "user_id": 1,
        "product_ids": product_ids,
        "total_amount": 10.0 * len(product_ids),
        "shipping_address": f"221B Baker Street, London ({uuid.uuid4().hex[:6]})",
        "payment_method": "CREDIT_CARD",
        "shipping_method": "EXPRESS",
    }
    resp = http("POST", PLACE_ORDER_PATH, json=payload)
    if resp.status_code != 201:
        raise AssertionError(f"place-order: expected HTTP 201, got {resp.status_code}, body={resp.text}")
    return resp.json()


def wait_for_final_status(order_id: int) -> dict[str, Any]:
    start = time.time()
    last = None
    body: dict[str, Any] = {}
    while time.time() - start < TIMEOUT_SECONDS:
        body = http("GET", ORDER_STATUS_PATH.format(order_id=order_id)).json()
        if body.get("status") != last:
            last = body.get("status")
            print(f"    {Style.GRAY}Current status: {last}{Style.RESET}")
        if last in TERMINAL_STATUSES:
            return body
        time.sleep(POLL_INTERVAL)
    return body


def check(name: str, condition: bool, details: str) -> TestResult:
    (ok if condition else fail)(f"{name}: {details}")
    return TestResult(name, condition, details)


# =========================
# Scenarios
# =========================

def scenario_happy_path() -> list[TestResult]:
    section_title("Scenario 1 - Happy Path")
    product_id = create_product("Smoke Widget", 3)
    placed = place_order([product_id])
    results = [check("Order accepted", placed["status"] == "CREATED", f"status={placed['status']}")]

    final = wait_for_final_status(placed["order_id"])
    results.append(check("Order shipped", final.get("status") == "SHIPPED", f"final={final}"))
    results.append(check("Tracking number", bool(final.get("tracking_number")), f"tracking={final.get('tracking_number')}"))
    results.append(check("Stock decremented", stock_of(product_id) == 2, f"stock={stock_of(product_id)}"))
    return results


def scenario_insufficient_stock() -> list[TestResult]:
    section_title("Scenario 2 - Insufficient Stock Rollback")
    in_stock = create_product("Smoke Plenty", 5)
    empty = create_product("Smoke Empty", 0)
    placed = place_order([in_stock, empty])

    final = wait_for_final_status(placed["order_id"])
    return [
        check("Order cancelled", final.get("status") == "CANCELLED", f"final={final.get('status')}"),
        check("Reservation rolled back", stock_of(in_stock) == 5, f"stock={stock_of(in_stock)}"),
    ]


def scenario_cancel_after_shipping() -> list[TestResult]:
    section_title("Scenario 3 - Cancel Rules")
    product_id = create_product("Smoke Cancel", 1)
    placed = place_order([product_id])
    final = wait_for_final_status(placed["order_id"])

    resp = http("POST", CANCEL_ORDER_PATH.format(order_id=placed["order_id"]))
    results = [
        check(
            "Finished order not cancellable",
            resp.status_code == 400 and resp.json().get("status") == "CANCELLATION_FAILED",
            f"order status={final.get('status')}, HTTP {resp.status_code}",
        )
    ]

    stats = http("GET", STATISTICS_PATH).json()
    results.append(check("Statistics", stats.get("total", 0) >= 1, f"by_status={stats.get('by_status')}"))
    return results


# =========================
# Summary
# =========================

def print_results(results: list[TestResult]) -> int:
    passed = sum(1 for r in results if r.success)
    failed = len(results) - passed
    print(f"\n{Style.BOLD}================ TEST RESULTS ================{Style.RESET}")
    for r in results:
        color = Style.GREEN if r.success else Style.RED
        print(f"{color}{'✅' if r.success else '❌'} {r.name}{Style.RESET}")
        if r.details:
            print(f"    {Style.DIM}{r.details}{Style.RESET}")
    print(f"Total tests: {len(results)}  |  Passed: {Style.GREEN}{passed}{Style.RESET}  |  Failed: {Style.RED}{failed}{Style.RESET}")
    if failed:
        print(f"{Style.YELLOW}- If orders stay CREATED, check the service logs for stage errors.{Style.RESET}")
        print(f"{Style.YELLOW}- A PAYMENT_FAILED happy path means PAYMENT_SUCCESS_RATE is below 1.{Style.RESET}")
    return failed


def main():
    info(f"Target: {ORDER_BASE}")
    if not wait_for_health():
        sys.exit(1)

    results: list[TestResult] = []
    for scenario in (scenario_happy_path, scenario_insufficient_stock, scenario_cancel_after_shipping):
        try:
            results.extend(scenario())
        except (requests.exceptions.RequestException, AssertionError, KeyError) as e:
            results.append(check(scenario.__name__, False, str(e)))

    sys.exit(1 if print_results(results) else 0)


if __name__ == "__main__":
    main()
