from washbay.stores.ledger import BookingLedger, PartitionKey, partition_key
from washbay.stores.partner_store import CapacityStore, ScheduleStore
from washbay.stores.service_catalog import ServiceCatalog

__all__ = [
    "BookingLedger",
    "PartitionKey",
    "partition_key",
    "CapacityStore",
    "ScheduleStore",
    "ServiceCatalog",
]
