# Services module
from app.services.audit_service import PutawayAuditService
from app.services.product_service import ProductService
from app.services.grn_service import GRNService
from app.services.inventory_sync import InventorySyncClient

# WMS / Putaway Services
from app.services.bin_allocator import BinAllocator
from app.services.scan_tracking_service import ScanTrackingStore
from app.services.wms_service import WMSService
from app.services.putaway_service import PutawayService

__all__ = [
    "PutawayAuditService",
    "ProductService",
    "GRNService",
    "InventorySyncClient",
    # WMS / Putaway
    "BinAllocator",
    "ScanTrackingStore",
    "WMSService",
    "PutawayService",
]
