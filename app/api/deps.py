from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from app.config import PutawayConfig, Settings, get_settings
from app.database import get_db
from app.services.inventory_sync import InventorySyncClient
from app.services.putaway_service import PutawayService
from app.services.wms_service import WMSService


def get_putaway_config(
    settings: Annotated[Settings, Depends(get_settings)],
) -> PutawayConfig:
    """Putaway configuration derived from settings."""
    return PutawayConfig.from_settings(settings)


def get_inventory_client(
    settings: Annotated[Settings, Depends(get_settings)],
) -> InventorySyncClient:
    """Client for the external inventory ledger service."""
    return InventorySyncClient.from_settings(settings)


def get_wms_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    config: Annotated[PutawayConfig, Depends(get_putaway_config)],
) -> WMSService:
    return WMSService(db, config)


def get_putaway_service(
    db: Annotated[AsyncSession, Depends(get_db)],
    config: Annotated[PutawayConfig, Depends(get_putaway_config)],
    inventory_client: Annotated[InventorySyncClient, Depends(get_inventory_client)],
) -> PutawayService:
    return PutawayService(db, config, inventory_client)


# Type aliases for cleaner endpoint signatures
DB = Annotated[AsyncSession, Depends(get_db)]
Wms = Annotated[WMSService, Depends(get_wms_service)]
Putaway = Annotated[PutawayService, Depends(get_putaway_service)]
