"""
Reference resolution: turns client and product ids into immutable snapshots.

Documents keep the snapshot, never a live reference, so later changes to a
client or a product do not alter what was quoted or invoiced.
"""
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, List, Optional

from sqlalchemy.orm import Session

from billdesk.common.exceptions import NotFoundError, ValidationError
from billdesk.modules.clients.models import Client
from billdesk.modules.ledger.calculator import line_amount, to_money, to_quantity
from billdesk.modules.products.models import Product, ProductStatus


@dataclass(frozen=True)
class ClientSnapshot:
    """Client data frozen onto a quotation or invoice"""
    id: Optional[int]
    name: Optional[str]
    email: Optional[str]

    def __composite_values__(self):
        return self.id, self.name, self.email


@dataclass(frozen=True)
class ProductSnapshot:
    id: int
    name: str
    price: Decimal


@dataclass(frozen=True)
class ResolvedLine:
    """A line item ready to be written: names and prices already settled"""
    product_id: Optional[int]
    product_name: str
    description: Optional[str]
    quantity: Decimal
    unit_price: Decimal
    amount: Decimal


def _field(item: Any, name: str):
    if isinstance(item, dict):
        return item.get(name)
    return getattr(item, name, None)


class ReferenceResolver:
    def __init__(self, db: Session):
        self.db = db

    def resolve_client(self, client_id: int) -> ClientSnapshot:
        """Snapshot of an active client; inactive clients cannot be billed."""
        client = self.db.query(Client).filter(Client.id == client_id).first()
        if not client or not client.status:
            raise NotFoundError("Client", client_id)
        return ClientSnapshot(id=client.id, name=client.business_name, email=client.email)

    def resolve_product(self, product_id: int) -> ProductSnapshot:
        """Snapshot of a sellable product; inactive or discontinued ones are refused."""
        product = self.db.query(Product).filter(Product.id == product_id).first()
        if not product:
            raise NotFoundError("Product", product_id)
        if product.status != ProductStatus.ACTIVE:
            raise ValidationError(f"Product {product.name} is {product.status.value} and cannot be added to a document")
        return ProductSnapshot(id=product.id, name=product.name, price=to_money(product.effective_price))

    def resolve_line_items(self, items: Iterable[Any]) -> List[ResolvedLine]:
        """
        Settle name and price of every line item.

        Catalogue items take the product name from the snapshot and the
        caller's unit price when one is given, the product price otherwise.
        Custom items (no product_id) must bring both name and price.
        """
        resolved = []
        for item in items:
            product_id = _field(item, "product_id")
            unit_price = _field(item, "unit_price")

            if product_id is not None:
                snapshot = self.resolve_product(product_id)
                product_name = snapshot.name
                if unit_price is None:
                    unit_price = snapshot.price
            else:
                product_name = _field(item, "product_name")
                if not product_name or unit_price is None:
                    raise ValidationError("Custom line items require product_name and unit_price")

            # Stored scale: a quantity rounding to zero is rejected by line_amount
            quantity = to_quantity(_field(item, "quantity"))
            unit_price = to_money(unit_price)
            resolved.append(ResolvedLine(
                product_id=product_id,
                product_name=product_name,
                description=_field(item, "description"),
                quantity=quantity,
                unit_price=unit_price,
                amount=line_amount(quantity, unit_price)
            ))

        if not resolved:
            raise ValidationError("A document needs at least one line item")
        return resolved
