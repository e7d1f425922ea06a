# the cart is the buyer's pre-checkout basket. It lives only on the client side
# (durable local storage keyed by identity) and is never sent to the order service
# until checkout.
#
# note that stock is NOT reserved while an item sits in the cart: stock_ceiling is
# the last known inventory and the server re-validates stock at checkout
from decimal import Decimal

from pydantic import BaseModel
from sqlalchemy import Column, Integer, String, Numeric, Text, CheckConstraint, UniqueConstraint

from models.base import Base


class CartLine(Base):
    __tablename__ = "cart_lines"

    id = Column(Integer, primary_key=True)
    cart_key = Column(String(128), nullable=False, index=True)
    product_id = Column(String(64), nullable=False)
    quantity = Column(Integer, nullable=False)
    # Price snapshot taken when the product was added to the cart
    unit_price = Column(Numeric(12, 2), nullable=False)
    stock_ceiling = Column(Integer, nullable=True)
    seller_ref = Column(String(64), nullable=True)  # Fulfilling branch
    product_name = Column(String(255), nullable=True)
    image_url = Column(Text, nullable=True)
    description = Column(Text, nullable=True)

    __table_args__ = (
        UniqueConstraint('cart_key', 'product_id', name='uq_cart_line_product'),
        CheckConstraint('quantity > 0', name='check_cart_line_quantity_positive'),
    )


class CartLineDTO(BaseModel):
    product_id: str
    quantity: int
    unit_price: Decimal
    stock_ceiling: int | None = None
    seller_ref: str | None = None
    product_name: str | None = None
    image_url: str | None = None
    description: str | None = None

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


class CartDTO(BaseModel):
    identity_key: str
    lines: list[CartLineDTO] = []

    @property
    def is_empty(self) -> bool:
        return len(self.lines) == 0

    @property
    def total_price(self) -> Decimal:
        return sum((line.line_total for line in self.lines), Decimal("0"))

    def get_line(self, product_id: str) -> CartLineDTO | None:
        for line in self.lines:
            if line.product_id == product_id:
                return line
        return None
