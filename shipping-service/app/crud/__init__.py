from .crud_event_sequence import event_sequence
from .crud_processed_event import processed_event
from .crud_shipment import shipment
