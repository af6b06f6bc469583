# Copyright (c) Microsoft Corporation.
# Licensed under the MIT license.

"""
OData client quickstart.

Walks through queries, single-entity CRUD with ETags, a ``$batch`` with a
changeset and a ``Prefer: respond-async`` action against an OData v4 service.

Usage:
    python examples/basic/quickstart.py

Read-only steps work against the public sample service
(https://services.odata.org/V4/OData/OData.svc); write steps need a writable one.
"""

import logging
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

# Add src to PYTHONPATH for local runs
sys.path.append(str(Path(__file__).resolve().parents[2] / "src"))

from odata_client import ODataClient, ODataConfig, col
from odata_client.core.errors import ConcurrencyError, HttpError, ODataError
from odata_client.models.open_type import OpenType

DEFAULT_URL = "https://services.odata.org/V4/OData/OData.svc"


@dataclass
class Product(OpenType):
    id: int = 0
    name: str = ""
    price: float = 0.0
    rating: Optional[int] = None
    description: Optional[str] = field(default=None)


def log_call(call: str) -> None:
    print({"call": call})


def run_queries(client: ODataClient) -> None:
    print("\nQueries:")
    query = (
        client.query.builder("Products")
        .filter((col.Price > 10) & (col.Rating >= 3))
        .select("ID", "Name", "Price", "Rating")
        .order_by("Price", descending=True)
        .top(5)
        .count()
        .as_type(Product)
    )
    log_call(query.build_url())
    page = query.execute()
    print({"count": page.count, "returned": len(page)})
    for product in page:
        print({"id": product.id, "name": product.name, "price": product.price})

    cheap = client.query.builder("Products").filter(lambda p: p.Name.lower().contains("milk")).page_size(2)
    log_call(cheap.build_url())
    names = [p["Name"] for p in client.query.get_all(cheap)]
    print({"matching": names})


def run_crud(client: ODataClient) -> None:
    print("\nCRUD with optimistic concurrency:")
    log_call("client.records.create('Products', Product(...))")
    created = client.records.create("Products", Product(id=999, name="Quickstart Widget", price=12.5, rating=4))
    print({"created": created.entity, "etag": created.etag})

    current = client.records.get("Products", 999, result_type=Product)
    client.records.update("Products", 999, {"Price": 14.0}, etag=current.etag)
    try:
        # The ETag read before the update is stale now
        client.records.update("Products", 999, {"Price": 15.0}, etag=current.etag)
    except ConcurrencyError as ex:
        print({"conflict": True, "sent": ex.request_etag, "current": ex.current_etag})

    client.records.delete("Products", 999)
    print({"deleted": 999})


def run_batch(client: ODataClient) -> None:
    print("\nBatch:")
    batch = client.batch.create()
    first = batch.get("Products", 1, result_type=Product)
    batch.query(client.query.builder("Categories").top(3))
    with batch.changeset() as cs:
        cs.create("Products", Product(id=1000, name="Batch Widget", price=3.0))
        cs.delete("Products", 1000)
    response = batch.execute()
    for result in response:
        print({"id": result.operation_id, "status": result.status_code})
    product = response.get_by_id(first)
    if product is not None and product.result is not None:
        print({"first": product.result.name})


def run_async_action(client: ODataClient) -> None:
    print("\nLong-running action:")
    outcome = client.actions.call_with_prefer_async("ResetDataSource")
    print(outcome)
    if outcome.is_async:
        print({"monitor": outcome.operation.monitor_url})
    outcome.get_result(timeout=120)
    print({"done": True})


def main() -> None:
    logging.basicConfig(level=logging.INFO)
    entered = input(f"Enter OData service root URL [{DEFAULT_URL}]: ").strip()
    base_url = (entered or DEFAULT_URL).rstrip("/")
    config = ODataConfig(http_retries=3, poll_interval=2.0)

    with ODataClient(base_url, config=config) as client:
        run_queries(client)
        for step in (run_crud, run_batch, run_async_action):
            try:
                step(client)
            except HttpError as ex:
                print({"step": step.__name__, "status": ex.status_code, "error": str(ex)})
            except ODataError as ex:
                print({"step": step.__name__, "error": ex.to_dict()})


if __name__ == "__main__":
    main()
