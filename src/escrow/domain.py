"""Escrow bounded context — marketplace orders, escrowed payments and disputes.

Handles the order lifecycle from placement through delivery, holds buyer
funds until release (buyer, admin or automatic), and resolves disputes
raised by either party.
"""

import structlog
from protean.domain import Domain

escrow = Domain(name="escrow")

logger = structlog.get_logger(__name__)
