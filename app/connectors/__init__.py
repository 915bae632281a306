"""
app/connectors package marker.
"""

from app.connectors.base import BaseConnector, ConnectorRequestError
from app.connectors.ticketmaster_connector import TicketmasterConnector

__all__ = [
    "BaseConnector",
    "ConnectorRequestError",
    "TicketmasterConnector",
]
