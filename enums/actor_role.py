from enum import Enum


class ActorRole(str, Enum):
    """
    Who is acting on an order.

    BUYER: End customer placing orders from a local cart
    RETAILER: Reseller buying from a branch (no local cart view)
    STAFF: Branch fulfillment staff working the incoming order queue
    """
    BUYER = "buyer"
    RETAILER = "retailer"
    STAFF = "staff"
