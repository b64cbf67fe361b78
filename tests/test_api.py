"""
API Tests: /products, /cart, /orders

The app runs in-process over httpx's ASGI transport. Each request gets its
own session on the shared in-memory SQLite engine; notifications are
recorded instead of queued.
"""

from decimal import Decimal

import httpx
import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from cartsync.api import create_app
from cartsync.data.database import get_db
from cartsync.data.models.cart_item import CartItemModel
from cartsync.data.models.order import OrderModel
from cartsync.data.models.order_item import OrderItemModel
from cartsync.data.models.product import ProductModel
from cartsync.services.event_bus import EventBus
from cartsync.services.notification_service import NotificationService

OWNER = "user-1"


@pytest.fixture
def notifications(monkeypatch):
    sent = []

    async def success(owner_id, message):
        sent.append(("success", message))

    async def error(owner_id, message):
        sent.append(("error", message))

    monkeypatch.setattr(NotificationService, "success", staticmethod(success))
    monkeypatch.setattr(NotificationService, "error", staticmethod(error))
    return sent


@pytest_asyncio.fixture
async def products_in_db(sql_engine):
    maker = async_sessionmaker(sql_engine, class_=AsyncSession, expire_on_commit=False)
    async with maker() as db:
        flour = ProductModel(name="Maize Flour 2kg", price=Decimal("230.00"), stock=50)
        lantern = ProductModel(name="Solar Lantern", price=Decimal("2500.00"), stock=2)
        basket = ProductModel(name="Sisal Basket", price=Decimal("1800.00"), stock=0)
        db.add_all([flour, lantern, basket])
        await db.commit()
    return {"flour": flour.id, "lantern": lantern.id, "basket": basket.id}


@pytest_asyncio.fixture
async def client(sql_engine, feed, notifications, products_in_db):
    maker = async_sessionmaker(sql_engine, class_=AsyncSession, expire_on_commit=False)

    async def override_get_db():
        async with maker() as session:
            yield session

    app = create_app()
    app.state.event_bus = EventBus()
    app.state.change_feed = feed
    app.dependency_overrides[get_db] = override_get_db

    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


async def add(client, product_id, quantity=1, owner_id=OWNER):
    return await client.post(
        "/cart/items",
        params={"owner_id": owner_id},
        json={"product_id": product_id, "quantity": quantity},
    )


@pytest.mark.asyncio
async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


class TestProducts:
    @pytest.mark.asyncio
    async def test_list(self, client):
        response = await client.get("/products/", params={"limit": 10})

        assert response.status_code == 200
        assert len(response.json()) == 3

    @pytest.mark.asyncio
    async def test_get_missing(self, client):
        response = await client.get("/products/nope")

        assert response.status_code == 404


class TestCart:
    @pytest.mark.asyncio
    async def test_add_returns_summary(self, client, products_in_db, notifications):
        response = await add(client, products_in_db["flour"], 2)

        assert response.status_code == 201
        body = response.json()
        assert body["count"] == 2
        assert Decimal(body["total"]) == Decimal("460.00")
        assert body["items"][0]["name"] == "Maize Flour 2kg"
        assert notifications == [("success", "Added 2 item(s) to cart!")]

    @pytest.mark.asyncio
    async def test_add_same_product_merges(self, client, products_in_db):
        await add(client, products_in_db["flour"], 2)
        response = await add(client, products_in_db["flour"], 3)

        body = response.json()
        assert len(body["items"]) == 1
        assert body["items"][0]["quantity"] == 5

    @pytest.mark.asyncio
    async def test_add_unknown_product(self, client):
        response = await add(client, "nope")

        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_add_out_of_stock_is_refused(self, client, products_in_db):
        response = await add(client, products_in_db["basket"])

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_add_zero_is_rejected_by_schema(self, client, products_in_db):
        response = await add(client, products_in_db["flour"], 0)

        assert response.status_code == 422

    @pytest.mark.asyncio
    async def test_count(self, client, products_in_db):
        await add(client, products_in_db["flour"], 2)
        await add(client, products_in_db["lantern"], 1)

        response = await client.get("/cart/count", params={"owner_id": OWNER})

        assert response.json() == {"owner_id": OWNER, "count": 3}

    @pytest.mark.asyncio
    async def test_update_quantity(self, client, products_in_db):
        item_id = (await add(client, products_in_db["flour"], 2)).json()["items"][0]["item_id"]

        response = await client.patch(
            f"/cart/items/{item_id}", params={"owner_id": OWNER}, json={"quantity": 4}
        )

        assert response.status_code == 200
        assert response.json()["count"] == 4

    @pytest.mark.asyncio
    async def test_update_below_one_is_noop(self, client, products_in_db):
        item_id = (await add(client, products_in_db["flour"], 2)).json()["items"][0]["item_id"]

        response = await client.patch(
            f"/cart/items/{item_id}", params={"owner_id": OWNER}, json={"quantity": 0}
        )

        assert response.status_code == 200
        assert response.json()["count"] == 2

    @pytest.mark.asyncio
    async def test_update_above_stock_is_refused(self, client, products_in_db):
        item_id = (await add(client, products_in_db["lantern"], 1)).json()["items"][0]["item_id"]

        response = await client.patch(
            f"/cart/items/{item_id}", params={"owner_id": OWNER}, json={"quantity": 3}
        )

        assert response.status_code == 409

    @pytest.mark.asyncio
    async def test_other_owners_item_is_not_found(self, client, products_in_db):
        item_id = (await add(client, products_in_db["flour"])).json()["items"][0]["item_id"]

        patch = await client.patch(
            f"/cart/items/{item_id}", params={"owner_id": "user-2"}, json={"quantity": 3}
        )
        delete = await client.delete(f"/cart/items/{item_id}", params={"owner_id": "user-2"})

        assert patch.status_code == 404
        assert delete.status_code == 404

    @pytest.mark.asyncio
    async def test_remove(self, client, products_in_db, feed):
        item_id = (await add(client, products_in_db["flour"])).json()["items"][0]["item_id"]

        response = await client.delete(f"/cart/items/{item_id}", params={"owner_id": OWNER})

        assert response.status_code == 200
        assert response.json()["items"] == []
        assert [e.type for e in feed.published] == ["INSERT", "DELETE"]


class TestOrders:
    @pytest.mark.asyncio
    async def test_checkout_and_history(self, client, products_in_db, notifications):
        await add(client, products_in_db["flour"], 2)
        await add(client, products_in_db["lantern"], 1)

        response = await client.post("/orders/checkout", params={"owner_id": OWNER})

        assert response.status_code == 201
        result = response.json()
        assert Decimal(result["total_amount"]) == Decimal("2960.00")
        assert result["item_count"] == 2
        assert notifications[-1] == ("success", "Order placed successfully!")

        cart = await client.get("/cart/", params={"owner_id": OWNER})
        assert cart.json()["count"] == 0

        history = await client.get("/orders/", params={"owner_id": OWNER})
        assert [o["id"] for o in history.json()] == [result["order_id"]]

        order = await client.get(f"/orders/{result['order_id']}", params={"owner_id": OWNER})
        assert order.status_code == 200
        assert order.json()["status"] == "pending"
        assert len(order.json()["items"]) == 2

    @pytest.mark.asyncio
    async def test_checkout_empty_cart(self, client):
        response = await client.post("/orders/checkout", params={"owner_id": OWNER})

        assert response.status_code == 400

    @pytest.mark.asyncio
    async def test_checkout_failure_names_step_and_orphan(
        self, client, sql_engine, products_in_db, notifications
    ):
        await add(client, products_in_db["flour"], 1)
        async with sql_engine.begin() as conn:
            await conn.run_sync(OrderItemModel.__table__.drop)

        response = await client.post("/orders/checkout", params={"owner_id": OWNER})

        assert response.status_code == 502
        detail = response.json()["detail"]
        assert detail["step"] == "write_order_items"
        assert detail["reached"] == "order_created"
        assert detail["order_id"]
        assert notifications[-1] == ("error", "Failed to create order items")

        # the orphaned order is listed, the cart is still full
        history = await client.get("/orders/", params={"owner_id": OWNER})
        assert [o["id"] for o in history.json()] == [detail["order_id"]]
        cart = await client.get("/cart/count", params={"owner_id": OWNER})
        assert cart.json()["count"] == 1

    @pytest.mark.asyncio
    async def test_other_owners_order_is_not_found(self, client, products_in_db):
        await add(client, products_in_db["flour"], 1)
        order_id = (await client.post("/orders/checkout", params={"owner_id": OWNER})).json()["order_id"]

        response = await client.get(f"/orders/{order_id}", params={"owner_id": "user-2"})

        assert response.status_code == 404


class TestReadFailures:
    @pytest.mark.asyncio
    async def test_cart_read_failure_queues_error_notice(self, client, sql_engine, notifications):
        async with sql_engine.begin() as conn:
            await conn.run_sync(CartItemModel.__table__.drop)

        count = await client.get("/cart/count", params={"owner_id": OWNER})
        cart = await client.get("/cart/", params={"owner_id": OWNER})

        assert count.status_code == 502
        assert cart.status_code == 502
        assert notifications == [("error", "Failed to load cart"), ("error", "Failed to load cart")]

    @pytest.mark.asyncio
    async def test_item_lookup_failure_queues_error_notice(self, client, sql_engine, notifications):
        async with sql_engine.begin() as conn:
            await conn.run_sync(CartItemModel.__table__.drop)

        response = await client.delete("/cart/items/some-item", params={"owner_id": OWNER})

        assert response.status_code == 502
        assert notifications == [("error", "Failed to load cart")]

    @pytest.mark.asyncio
    async def test_product_lookup_failure_on_add(self, client, sql_engine, notifications):
        async with sql_engine.begin() as conn:
            await conn.run_sync(ProductModel.__table__.drop)

        response = await add(client, "some-product")

        assert response.status_code == 502
        assert notifications == [("error", "Failed to load product")]

    @pytest.mark.asyncio
    async def test_order_history_failure_queues_error_notice(self, client, sql_engine, notifications):
        async with sql_engine.begin() as conn:
            await conn.run_sync(OrderItemModel.__table__.drop)
            await conn.run_sync(OrderModel.__table__.drop)

        history = await client.get("/orders/", params={"owner_id": OWNER})
        order = await client.get("/orders/some-order", params={"owner_id": OWNER})

        assert history.status_code == 502
        assert order.status_code == 502
        assert notifications == [("error", "Failed to load orders"), ("error", "Failed to load order")]

    @pytest.mark.asyncio
    async def test_catalog_failure_notifies_only_a_known_owner(self, client, sql_engine, notifications):
        async with sql_engine.begin() as conn:
            await conn.run_sync(ProductModel.__table__.drop)

        anonymous = await client.get("/products/")
        signed_in = await client.get("/products/", params={"owner_id": OWNER})

        assert anonymous.status_code == 502
        assert signed_in.status_code == 502
        assert notifications == [("error", "Failed to load products")]
