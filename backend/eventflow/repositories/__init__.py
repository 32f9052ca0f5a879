from eventflow.repositories.inventory import InventoryRepository
from eventflow.repositories.ledger import BookingLedger

__all__ = ["InventoryRepository", "BookingLedger"]
