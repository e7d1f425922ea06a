from sqlalchemy import select, delete
from sqlalchemy.orm import Session

from models.cart import CartLine, CartLineDTO


class CartRepository:
    @staticmethod
    def get_lines(cart_key: str, session: Session) -> list[CartLineDTO]:
        stmt = select(CartLine).where(CartLine.cart_key == cart_key).order_by(CartLine.id)
        lines = session.execute(stmt).scalars().all()
        return [CartLineDTO.model_validate(line, from_attributes=True) for line in lines]

    @staticmethod
    def get_line(cart_key: str, product_id: str, session: Session) -> CartLine | None:
        stmt = select(CartLine).where(
            CartLine.cart_key == cart_key,
            CartLine.product_id == product_id
        )
        return session.execute(stmt).scalar()

    @staticmethod
    def upsert_line(cart_key: str, line: CartLineDTO, session: Session) -> None:
        # one row per (cart, product): an existing row is overwritten with the new
        # quantity and snapshot, otherwise a new row is appended at the end of the cart
        existing = CartRepository.get_line(cart_key, line.product_id, session)
        if existing is None:
            session.add(CartLine(cart_key=cart_key, **line.model_dump()))
        else:
            for field, value in line.model_dump().items():
                setattr(existing, field, value)
        session.flush()

    @staticmethod
    def delete_line(cart_key: str, product_id: str, session: Session) -> int:
        stmt = delete(CartLine).where(
            CartLine.cart_key == cart_key,
            CartLine.product_id == product_id
        )
        return session.execute(stmt).rowcount

    @staticmethod
    def delete_lines(cart_key: str, product_ids: list[str], session: Session) -> int:
        """
        Delete the given products from the cart.

        Args:
            cart_key: Cart identity key
            product_ids: Products to remove (unknown ids are ignored)
            session: Database session

        Returns:
            Number of rows actually deleted
        """
        if not product_ids:
            return 0
        stmt = delete(CartLine).where(
            CartLine.cart_key == cart_key,
            CartLine.product_id.in_(product_ids)
        )
        return session.execute(stmt).rowcount

    @staticmethod
    def delete_all(cart_key: str, session: Session) -> int:
        stmt = delete(CartLine).where(CartLine.cart_key == cart_key)
        return session.execute(stmt).rowcount
