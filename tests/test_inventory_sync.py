import json

import httpx
import pytest

from app.config import Settings
from app.services.inventory_sync import (
    InventoryOperation,
    InventorySyncClient,
    InventorySyncError,
    InventoryUpdate,
)


def make_update() -> InventoryUpdate:
    return InventoryUpdate(
        sku="SKU-1",
        operation=InventoryOperation.PUTAWAY,
        quantity=4,
        reference_id="PUTAWAY-GRN-42",
        performed_by="picker-7",
        operation_details={"bin_code": "A-01"},
    )


def client_for(handler, api_key=None) -> InventorySyncClient:
    return InventorySyncClient(
        base_url="http://inventory.test/api/inventory/update",
        api_key=api_key,
        transport=httpx.MockTransport(handler),
    )


async def test_disabled_client_is_a_no_op():
    def handler(request):
        raise AssertionError("no request expected")

    for client in (
        InventorySyncClient(base_url="", transport=httpx.MockTransport(handler)),
        InventorySyncClient(base_url="http://inventory.test", enabled=False, transport=httpx.MockTransport(handler)),
    ):
        result = await client.update_inventory(make_update())
        assert result.success is True
        assert result.message == "inventory sync disabled"


async def test_posts_payload_with_bearer_token():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"success": True, "message": "stored"})

    result = await client_for(handler, api_key="secret").update_inventory(make_update())

    assert result.success is True
    assert result.message == "stored"
    assert seen["url"] == "http://inventory.test/api/inventory/update"
    assert seen["auth"] == "Bearer secret"
    assert seen["body"] == {
        "sku": "SKU-1",
        "operation": "putaway",
        "quantity": 4,
        "reference_id": "PUTAWAY-GRN-42",
        "operation_details": {"bin_code": "A-01"},
        "performed_by": "picker-7",
    }


async def test_no_auth_header_without_api_key():
    def handler(request):
        assert "Authorization" not in request.headers
        return httpx.Response(200, json={"success": True})

    result = await client_for(handler).update_inventory(make_update())
    assert result.message == "inventory updated"


async def test_error_response_raises():
    def handler(request):
        return httpx.Response(500, json={"message": "ledger locked", "errors": {"sku": "busy"}})

    with pytest.raises(InventorySyncError) as exc:
        await client_for(handler).update_inventory(make_update())

    assert exc.value.status_code == 500
    assert exc.value.message == "ledger locked"
    assert exc.value.errors == {"sku": "busy"}


async def test_plain_text_error_body():
    def handler(request):
        return httpx.Response(502, text="Bad Gateway")

    with pytest.raises(InventorySyncError) as exc:
        await client_for(handler).update_inventory(make_update())

    assert exc.value.status_code == 502
    assert exc.value.message == "Bad Gateway"


async def test_transport_error_raises():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(InventorySyncError) as exc:
        await client_for(handler).update_inventory(make_update())

    assert exc.value.status_code is None


async def test_unsuccessful_body_raises():
    def handler(request):
        return httpx.Response(200, json={"success": False, "message": "unknown sku"})

    with pytest.raises(InventorySyncError) as exc:
        await client_for(handler).update_inventory(make_update())

    assert exc.value.message == "unknown sku"


async def test_non_json_success_body_raises():
    def handler(request):
        return httpx.Response(200, text="OK")

    with pytest.raises(InventorySyncError) as exc:
        await client_for(handler).update_inventory(make_update())

    assert exc.value.status_code == 200
    assert exc.value.message == "invalid response body"


def test_from_settings():
    settings = Settings(
        INVENTORY_SERVICE_URL="http://inventory.test",
        INVENTORY_SERVICE_API_KEY="k",
        INVENTORY_SYNC_TIMEOUT=3.0,
    )
    client = InventorySyncClient.from_settings(settings)

    assert client.is_configured
    assert client.api_key == "k"
    assert client.timeout == 3.0
