"""
Inventory ledger integration.

Publishes stock movements to the external inventory service after the
local transaction has committed. Failures are reported to the caller and
never undo the committed movement.
"""
import httpx
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, Any

from app.config import Settings

logger = logging.getLogger(__name__)


class InventoryOperation(str, Enum):
    """Operations understood by the inventory ledger service."""
    PO = "po"
    GRN = "grn"
    PUTAWAY = "putaway"
    PICKLIST = "picklist"
    RETURN_TRY_AND_BUY = "return_try_and_buy"
    RETURN_OTHER = "return_other"


@dataclass
class InventoryUpdate:
    """One stock movement event."""
    sku: str
    operation: InventoryOperation
    quantity: int
    reference_id: str
    performed_by: str
    operation_details: Dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> Dict[str, Any]:
        return {
            "sku": self.sku,
            "operation": self.operation.value,
            "quantity": self.quantity,
            "reference_id": self.reference_id,
            "operation_details": self.operation_details,
            "performed_by": self.performed_by,
        }


@dataclass
class InventorySyncResult:
    success: bool
    message: str


class InventorySyncError(Exception):
    """Inventory service call failed (transport error or error response)."""

    def __init__(self, status_code: Optional[int], message: str, errors: Dict = None):
        self.status_code = status_code
        self.message = message
        self.errors = errors or {}
        super().__init__(f"Inventory sync error ({status_code}): {message}")


class InventorySyncClient:
    """
    Client for the inventory ledger service.

    Usage:
        client = InventorySyncClient.from_settings(settings)
        result = await client.update_inventory(update)
    """

    def __init__(
        self,
        base_url: str = "",
        api_key: Optional[str] = None,
        timeout: float = 10.0,
        enabled: bool = True,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url
        self.api_key = api_key
        self.timeout = timeout
        self.enabled = enabled
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "InventorySyncClient":
        return cls(
            base_url=settings.INVENTORY_SERVICE_URL,
            api_key=settings.INVENTORY_SERVICE_API_KEY,
            timeout=settings.INVENTORY_SYNC_TIMEOUT,
            enabled=settings.INVENTORY_SYNC_ENABLED,
        )

    @property
    def is_configured(self) -> bool:
        return self.enabled and bool(self.base_url)

    async def update_inventory(self, update: InventoryUpdate) -> InventorySyncResult:
        """
        Post one stock movement.

        Returns a successful no-op result when sync is disabled or no service
        URL is configured.

        Raises:
            InventorySyncError: transport failure or a >= 400 response
        """
        if not self.is_configured:
            logger.debug("Inventory sync disabled, skipping %s", update.reference_id)
            return InventorySyncResult(success=True, message="inventory sync disabled")

        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"

        try:
            async with httpx.AsyncClient(transport=self._transport) as client:
                response = await client.post(
                    self.base_url,
                    headers=headers,
                    json=update.to_payload(),
                    timeout=self.timeout,
                )
        except httpx.HTTPError as e:
            logger.error("Inventory service unreachable for %s: %s", update.reference_id, e)
            raise InventorySyncError(status_code=None, message=str(e)) from e

        if response.status_code >= 400:
            logger.error(
                "Inventory service error for %s: %s - %s",
                update.reference_id, response.status_code, response.text,
            )
            try:
                error_data = response.json() if response.text else {}
            except ValueError:
                error_data = {}
            if not isinstance(error_data, dict):
                error_data = {}
            raise InventorySyncError(
                status_code=response.status_code,
                message=error_data.get("message", response.text),
                errors=error_data.get("errors", {}),
            )

        try:
            data = response.json() if response.text else {}
        except ValueError as e:
            logger.error(
                "Inventory service sent an unreadable body for %s: %r",
                update.reference_id, response.text[:200],
            )
            raise InventorySyncError(
                status_code=response.status_code,
                message="invalid response body",
            ) from e

        if isinstance(data, dict) and data.get("success") is False:
            raise InventorySyncError(
                status_code=response.status_code,
                message=data.get("message", "inventory update rejected"),
            )

        message = data.get("message", "inventory updated") if isinstance(data, dict) else "inventory updated"
        logger.info("Inventory updated for %s (%s x%d)", update.reference_id, update.sku, update.quantity)
        return InventorySyncResult(success=True, message=message)
