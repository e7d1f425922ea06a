import logging
from typing import Callable

from sqlalchemy.orm import Session, sessionmaker

from db import get_db_session
from exceptions import InvalidCartStateException
from models.cart import CartDTO, CartLineDTO
from models.identity import IdentityDTO
from repositories.cart import CartRepository

logger = logging.getLogger(__name__)

CartListener = Callable[[CartDTO], None]


class CartStore:
    """
    Client-local pre-checkout cart, one per identity, persisted on every write.

    All operations are synchronous: a mutation is committed before the call
    returns, and every view subscribed to the same identity is told about it
    right away, so no open view keeps reading a stale cart.
    """

    def __init__(self, session_maker: sessionmaker[Session]):
        self._session_maker = session_maker
        self._listeners: dict[str, list[CartListener]] = {}

    def get_cart(self, identity: IdentityDTO) -> CartDTO:
        """
        Persisted cart of the identity; an identity without a cart gets an empty one.
        """
        with get_db_session(self._session_maker) as session:
            lines = CartRepository.get_lines(identity.cart_key, session)
        return CartDTO(identity_key=identity.cart_key, lines=lines)

    def add_line(self, identity: IdentityDTO, line: CartLineDTO) -> CartLineDTO | None:
        """
        Add a product to the cart, summing with the quantity already in it.

        The price and display snapshot are refreshed from the given line and
        the resulting quantity is capped at the stock ceiling.

        Returns:
            The stored line, or None if nothing could be stored (no stock left)
        """
        with get_db_session(self._session_maker) as session:
            existing = CartRepository.get_line(identity.cart_key, line.product_id, session)
            quantity = line.quantity + (existing.quantity if existing is not None else 0)
            stored = self._write_line(identity, line.model_copy(update={'quantity': quantity}), session)
            session.commit()

        self._notify(identity)
        return stored

    def set_line_quantity(self, identity: IdentityDTO, product_id: str, quantity: int,
                          line: CartLineDTO | None = None) -> CartLineDTO | None:
        """
        Set the quantity of a cart line.

        Args:
            identity: Cart owner
            product_id: Product of the line
            quantity: New quantity; zero or less removes the line
            line: Price/display snapshot, required only when the product is not in the cart yet

        Returns:
            The stored line (quantity possibly capped at its stock ceiling), or None if removed

        Raises:
            InvalidCartStateException: The product is not in the cart and no snapshot was given
        """
        with get_db_session(self._session_maker) as session:
            if quantity <= 0:
                CartRepository.delete_line(identity.cart_key, product_id, session)
                stored = None
            else:
                existing = CartRepository.get_line(identity.cart_key, product_id, session)
                if existing is not None:
                    snapshot = CartLineDTO.model_validate(existing, from_attributes=True)
                    if line is not None:
                        snapshot = line
                elif line is not None:
                    snapshot = line
                else:
                    raise InvalidCartStateException(identity.cart_key, f"product {product_id} is not in the cart")
                stored = self._write_line(
                    identity,
                    snapshot.model_copy(update={'product_id': product_id, 'quantity': quantity}),
                    session
                )
            session.commit()

        self._notify(identity)
        return stored

    def remove_line(self, identity: IdentityDTO, product_id: str) -> None:
        with get_db_session(self._session_maker) as session:
            CartRepository.delete_line(identity.cart_key, product_id, session)
            session.commit()
        logger.info(f"Removed product {product_id} from {identity.cart_key}")
        self._notify(identity)

    def clear(self, identity: IdentityDTO) -> None:
        with get_db_session(self._session_maker) as session:
            removed = CartRepository.delete_all(identity.cart_key, session)
            session.commit()
        logger.info(f"Cleared {identity.cart_key} ({removed} lines)")
        self._notify(identity)

    def consume_lines(self, identity: IdentityDTO, product_ids: list[str]) -> int:
        """
        Remove exactly the checked-out lines in one transaction.

        Lines that are already gone count as consumed.

        Returns:
            Number of lines actually removed
        """
        with get_db_session(self._session_maker) as session:
            removed = CartRepository.delete_lines(identity.cart_key, list(product_ids), session)
            session.commit()
        logger.info(f"Consumed {removed}/{len(product_ids)} lines from {identity.cart_key}")
        self._notify(identity)
        return removed

    def subscribe(self, identity: IdentityDTO, listener: CartListener) -> None:
        self._listeners.setdefault(identity.cart_key, []).append(listener)

    def unsubscribe(self, identity: IdentityDTO, listener: CartListener) -> None:
        listeners = self._listeners.get(identity.cart_key, [])
        if listener in listeners:
            listeners.remove(listener)

    def _write_line(self, identity: IdentityDTO, line: CartLineDTO, session: Session) -> CartLineDTO | None:
        quantity = line.quantity
        if line.stock_ceiling is not None and quantity > line.stock_ceiling:
            logger.info(
                f"Capped product {line.product_id} in {identity.cart_key}: "
                f"requested {quantity}, stock ceiling {line.stock_ceiling}"
            )
            quantity = line.stock_ceiling

        if quantity <= 0:
            CartRepository.delete_line(identity.cart_key, line.product_id, session)
            return None

        stored = line.model_copy(update={'quantity': quantity})
        CartRepository.upsert_line(identity.cart_key, stored, session)
        return stored

    def _notify(self, identity: IdentityDTO) -> None:
        listeners = list(self._listeners.get(identity.cart_key, []))
        if not listeners:
            return
        cart = self.get_cart(identity)
        for listener in listeners:
            try:
                listener(cart)
            except Exception as e:
                logger.error(f"Cart listener failed for {identity.cart_key}: {e}", exc_info=True)
