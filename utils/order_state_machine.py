"""
Order State Machine for validating order status transitions and maintaining consistency.

This module implements the forward-only status pipeline shared by the buyer
order list and the fulfillment queue, and provides audit logging for all
status changes.
"""

import logging
from typing import Dict, List, Optional, Set, FrozenSet

from enums.actor_role import ActorRole
from enums.order_status import OrderStatus
from exceptions import InvalidTransitionException

logger = logging.getLogger(__name__)

ALL_ROLES: FrozenSet[ActorRole] = frozenset(ActorRole)
PLACING_ROLES: FrozenSet[ActorRole] = frozenset({ActorRole.BUYER, ActorRole.RETAILER})
STAFF_ONLY: FrozenSet[ActorRole] = frozenset({ActorRole.STAFF})


class OrderStatusTransition:
    """Represents a valid status transition with metadata"""

    def __init__(self, from_status: OrderStatus, to_status: OrderStatus,
                 allowed_roles: FrozenSet[ActorRole] = ALL_ROLES, description: str = ""):
        self.from_status = from_status
        self.to_status = to_status
        self.allowed_roles = allowed_roles
        self.description = description

    def __repr__(self):
        roles = ",".join(sorted(role.value for role in self.allowed_roles))
        return f"{self.from_status.value} -> {self.to_status.value} ({roles})"


class OrderStateMachine:
    """
    Finite state machine for order status transitions with validation and audit logging.

    Forward pipeline:
    - CART -> PENDING (checkout by the placing party)
    - PENDING -> PREPARING (staff only)
    - PREPARING -> ON_DELIVERY (staff only)
    - ON_DELIVERY -> DELIVERED (staff, or the buyer confirming receipt)

    Cancellation:
    - PENDING / PREPARING / ON_DELIVERY -> CANCELLED
    - CART -> CANCELLED is the local "clear cart" action

    Invalid transitions (will be rejected):
    - DELIVERED -> any status (final state)
    - CANCELLED -> any status (final state)
    - skipping a step of the pipeline, or moving backwards
    """

    FORWARD_SEQUENCE: List[OrderStatus] = [
        OrderStatus.CART,
        OrderStatus.PENDING,
        OrderStatus.PREPARING,
        OrderStatus.ON_DELIVERY,
        OrderStatus.DELIVERED,
    ]

    FINAL_STATUSES: Set[OrderStatus] = {OrderStatus.DELIVERED, OrderStatus.CANCELLED}

    CANCELLABLE_STATUSES: Set[OrderStatus] = {
        OrderStatus.CART,
        OrderStatus.PENDING,
        OrderStatus.PREPARING,
        OrderStatus.ON_DELIVERY,
    }

    # Define all valid transitions
    VALID_TRANSITIONS: List[OrderStatusTransition] = [
        # Forward pipeline
        OrderStatusTransition(
            OrderStatus.CART,
            OrderStatus.PENDING,
            allowed_roles=PLACING_ROLES,
            description="Cart checked out"
        ),
        OrderStatusTransition(
            OrderStatus.PENDING,
            OrderStatus.PREPARING,
            allowed_roles=STAFF_ONLY,
            description="Order accepted by branch"
        ),
        OrderStatusTransition(
            OrderStatus.PREPARING,
            OrderStatus.ON_DELIVERY,
            allowed_roles=STAFF_ONLY,
            description="Order handed to delivery"
        ),
        OrderStatusTransition(
            OrderStatus.ON_DELIVERY,
            OrderStatus.DELIVERED,
            allowed_roles=ALL_ROLES,
            description="Order delivered / receipt confirmed"
        ),

        # Cancellation branch
        OrderStatusTransition(
            OrderStatus.CART,
            OrderStatus.CANCELLED,
            allowed_roles=PLACING_ROLES,
            description="Cart cleared"
        ),
        OrderStatusTransition(
            OrderStatus.PENDING,
            OrderStatus.CANCELLED,
            description="Order cancelled before preparation"
        ),
        OrderStatusTransition(
            OrderStatus.PREPARING,
            OrderStatus.CANCELLED,
            description="Order cancelled during preparation"
        ),
        OrderStatusTransition(
            OrderStatus.ON_DELIVERY,
            OrderStatus.CANCELLED,
            description="Order cancelled during delivery (stock restored)"
        ),
    ]

    # Build transition map for fast lookup
    _transition_map: Dict[OrderStatus, Dict[OrderStatus, OrderStatusTransition]] = {}

    @classmethod
    def _build_transition_map(cls):
        """Build internal transition map for performance"""
        if cls._transition_map:
            return  # Already built

        for transition in cls.VALID_TRANSITIONS:
            cls._transition_map.setdefault(transition.from_status, {})[transition.to_status] = transition

    @classmethod
    def is_valid_transition(cls, from_status: OrderStatus, to_status: OrderStatus) -> bool:
        """
        Check if a status transition is a legal single step.

        Args:
            from_status: Current order status
            to_status: Desired new status

        Returns:
            True if transition is valid, False otherwise
        """
        cls._build_transition_map()
        return to_status in cls._transition_map.get(from_status, {})

    @classmethod
    def is_role_allowed(cls, from_status: OrderStatus, to_status: OrderStatus, role: ActorRole) -> bool:
        """
        Check if a role may perform a (valid) status transition.

        Args:
            from_status: Current order status
            to_status: Desired new status
            role: Acting role

        Returns:
            True if the transition exists and the role may perform it
        """
        cls._build_transition_map()
        transition = cls._transition_map.get(from_status, {}).get(to_status)
        return transition is not None and role in transition.allowed_roles

    @classmethod
    def get_valid_transitions(cls, from_status: OrderStatus) -> List[OrderStatus]:
        """
        Get all valid next statuses from the current status.

        Args:
            from_status: Current order status

        Returns:
            List of valid next statuses
        """
        cls._build_transition_map()
        return list(cls._transition_map.get(from_status, {}).keys())

    @classmethod
    def get_transition_description(cls, from_status: OrderStatus, to_status: OrderStatus) -> str:
        cls._build_transition_map()
        transition = cls._transition_map.get(from_status, {}).get(to_status)
        if transition is None:
            return f"Transition from {from_status.value} to {to_status.value}"
        return transition.description

    @classmethod
    def is_final_status(cls, status: OrderStatus) -> bool:
        """
        Check if a status is final (no transitions allowed from it).

        Args:
            status: Order status to check

        Returns:
            True if status is final, False otherwise
        """
        return status in cls.FINAL_STATUSES

    @classmethod
    def ordinal(cls, status: OrderStatus) -> int | None:
        """Position of a status in the forward pipeline (None for CANCELLED)."""
        if status in cls.FORWARD_SEQUENCE:
            return cls.FORWARD_SEQUENCE.index(status)
        return None

    @classmethod
    def next_status(cls, current: OrderStatus, role: Optional[ActorRole] = None) -> OrderStatus | None:
        """
        Get the single next forward status.

        Args:
            current: Current order status
            role: Acting role; None follows the pipeline regardless of role

        Returns:
            Next status, or None if current is final or the role may not take the step
        """
        if cls.is_final_status(current):
            return None

        position = cls.ordinal(current)
        candidate = cls.FORWARD_SEQUENCE[position + 1]
        if role is not None and not cls.is_role_allowed(current, candidate, role):
            return None
        return candidate

    @classmethod
    def advance(cls, current: OrderStatus, role: Optional[ActorRole] = None) -> OrderStatus:
        """
        Next forward status, raising instead of returning None.

        Raises:
            InvalidTransitionException: current is final or the role may not advance it
        """
        candidate = cls.next_status(current, role)
        if candidate is None:
            if cls.is_final_status(current):
                raise InvalidTransitionException(current.value, "next")
            # Name the step the role was refused
            raise InvalidTransitionException(current.value, cls.next_status(current).value)
        return candidate

    @classmethod
    def cancel(cls, current: OrderStatus) -> OrderStatus:
        """
        Cancel from the current status.

        Raises:
            InvalidTransitionException: current is DELIVERED or CANCELLED
        """
        if current not in cls.CANCELLABLE_STATUSES:
            raise InvalidTransitionException(current.value, OrderStatus.CANCELLED.value)
        return OrderStatus.CANCELLED

    @classmethod
    def is_reachable(cls, from_status: OrderStatus, to_status: OrderStatus) -> bool:
        """
        Check whether to_status lies strictly ahead of from_status.

        Used to filter realtime events: anything not ahead of the local status
        (older or equal) is stale. Steps may have been skipped by missed events,
        so any later pipeline status counts, not only the next one.
        """
        if cls.is_final_status(from_status) or from_status == to_status:
            return False
        if to_status == OrderStatus.CANCELLED:
            return from_status in cls.CANCELLABLE_STATUSES and from_status != OrderStatus.CART
        from_position = cls.ordinal(from_status)
        to_position = cls.ordinal(to_status)
        return to_position is not None and to_position > from_position

    @classmethod
    def validate_transition(cls, order_id: str, from_status: OrderStatus, to_status: OrderStatus,
                            role: ActorRole, actor_id: Optional[str] = None) -> None:
        """
        Validate a status transition and create an audit log entry.

        Args:
            order_id: ID of the order being transitioned
            from_status: Current order status
            to_status: Desired new status
            role: Role performing the transition
            actor_id: ID of the user/branch performing the transition (for the audit line)

        Raises:
            InvalidTransitionException: the step is not legal, or not legal for this role
        """
        if not cls.is_valid_transition(from_status, to_status):
            logger.error(f"Invalid status transition for order {order_id}: {from_status.value} -> {to_status.value}")
            raise InvalidTransitionException(from_status.value, to_status.value, order_id=order_id)

        if not cls.is_role_allowed(from_status, to_status, role):
            logger.error(f"Role {role.value} may not move order {order_id}: {from_status.value} -> {to_status.value}")
            raise InvalidTransitionException(from_status.value, to_status.value, order_id=order_id)

        transition_desc = cls.get_transition_description(from_status, to_status)
        performer = f"{role.value} {actor_id}" if actor_id else role.value
        logger.info(f"ORDER_STATUS_TRANSITION: Order {order_id} {from_status.value} -> {to_status.value} by {performer}: {transition_desc}")

    @classmethod
    def get_status_summary(cls) -> Dict[str, object]:
        """
        Get a summary of the state machine configuration.

        Returns:
            Dictionary with state machine statistics and configuration
        """
        cls._build_transition_map()

        all_statuses = set()
        for from_status, destinations in cls._transition_map.items():
            all_statuses.add(from_status)
            all_statuses.update(destinations.keys())

        staff_only = [t for t in cls.VALID_TRANSITIONS if t.allowed_roles == STAFF_ONLY]

        return {
            'total_statuses': len(all_statuses),
            'total_transitions': len(cls.VALID_TRANSITIONS),
            'staff_only_transitions': len(staff_only),
            'final_statuses': sorted(status.value for status in all_statuses if cls.is_final_status(status)),
            'valid_transitions': [str(t) for t in cls.VALID_TRANSITIONS]
        }


# Convenience functions for common operations
def next_status(current: OrderStatus, role: Optional[ActorRole] = None) -> OrderStatus | None:
    return OrderStateMachine.next_status(current, role)


def cancel(current: OrderStatus) -> OrderStatus:
    return OrderStateMachine.cancel(current)


def get_next_valid_statuses(current_status: OrderStatus) -> List[OrderStatus]:
    """
    Get all valid next statuses for an order.

    Args:
        current_status: Current status of the order

    Returns:
        List of valid next statuses
    """
    return OrderStateMachine.get_valid_transitions(current_status)


def can_staff_transition(from_status: OrderStatus, to_status: OrderStatus) -> bool:
    return OrderStateMachine.is_role_allowed(from_status, to_status, ActorRole.STAFF)


def can_buyer_transition(from_status: OrderStatus, to_status: OrderStatus) -> bool:
    return OrderStateMachine.is_role_allowed(from_status, to_status, ActorRole.BUYER)
