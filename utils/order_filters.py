"""
Order Filter Utilities

Maps OrderTab enum to the list of OrderStatus shown in that tab.
"""
from enums.order_status import OrderStatus
from enums.order_tab import OrderTab

FULFILLMENT_TABS = [OrderTab.PENDING, OrderTab.PREPARING, OrderTab.ON_DELIVERY, OrderTab.DELIVERED]


def get_statuses_for_tab(tab: OrderTab) -> list[OrderStatus]:
    """
    Converts an OrderTab to the statuses listed in it.

    Buyer tabs group statuses:
        CART → [CART]
        CURRENT → everything in progress (PENDING, PREPARING, ON_DELIVERY)
        FINISHED → [DELIVERED]
        CANCELLED → [CANCELLED]

    Fulfillment tabs map one-to-one to a status.

    Args:
        tab: OrderTab enum value

    Returns:
        List of OrderStatus shown in the tab
    """
    if tab == OrderTab.CART:
        return [OrderStatus.CART]

    if tab == OrderTab.CURRENT:
        return [OrderStatus.PENDING, OrderStatus.PREPARING, OrderStatus.ON_DELIVERY]

    if tab == OrderTab.FINISHED:
        return [OrderStatus.DELIVERED]

    if tab == OrderTab.CANCELLED:
        return [OrderStatus.CANCELLED]

    # Fulfillment tabs share their value with the status
    return [OrderStatus(tab.value)]
