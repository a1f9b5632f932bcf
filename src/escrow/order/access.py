"""Who may see or act on an order.

A caller who is neither a party to the order nor an administrator gets the
same ObjectNotFoundError as for an order that does not exist, so order ids
cannot be guessed at.
"""

from enum import Enum

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from escrow.order.order import ActorRole, Order


class Access(Enum):
    BUYER = "buyer"
    SELLER = "seller"
    PARTY = "party"  # buyer or seller
    PARTY_OR_ADMIN = "party_or_admin"
    ADMIN = "admin"
    SYSTEM = "system"


def not_found(kind: str, identifier) -> ObjectNotFoundError:
    return ObjectNotFoundError({"_entity": f"{kind} {identifier} not found"})


def is_allowed(order: Order, actor_id, actor_role, access: Access) -> bool:
    role = ActorRole(actor_role)
    actor = str(actor_id)
    is_buyer = actor == str(order.buyer_id)
    is_seller = actor == str(order.seller_id)

    if access == Access.BUYER:
        return role == ActorRole.MEMBER and is_buyer
    if access == Access.SELLER:
        return role == ActorRole.MEMBER and is_seller
    if access == Access.PARTY:
        return role == ActorRole.MEMBER and (is_buyer or is_seller)
    if access == Access.PARTY_OR_ADMIN:
        return role in (ActorRole.ADMIN, ActorRole.SYSTEM) or is_buyer or is_seller
    if access == Access.ADMIN:
        return role == ActorRole.ADMIN
    return role == ActorRole.SYSTEM


def load_order_for(order_id, actor_id, actor_role, access: Access) -> Order:
    """Fetch an order, hiding it from callers without the required access."""
    try:
        order = current_domain.repository_for(Order).get(str(order_id))
    except ObjectNotFoundError:
        raise not_found("Order", order_id) from None

    if not is_allowed(order, actor_id, actor_role, access):
        raise not_found("Order", order_id)
    return order
