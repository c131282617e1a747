# Import every model so Base.metadata knows all tables before create_all.
from .event_sequence import EventSequence
from .processed_event import ProcessedEvent
from .shipment import Shipment
