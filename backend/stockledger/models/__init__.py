from .catalog import StoreLocation, InventoryItem, InventoryVariation, Staff
from .inventory import (
    AuditStatus,
    TransferStatus,
    InventoryStockLevel,
    InventoryAdjustment,
    InventoryAudit,
    InventoryTransfer,
    BundleComponent,
)

__all__ = [
    'StoreLocation', 'InventoryItem', 'InventoryVariation', 'Staff',
    'AuditStatus', 'TransferStatus',
    'InventoryStockLevel', 'InventoryAdjustment',
    'InventoryAudit', 'InventoryTransfer', 'BundleComponent',
]
