from sqlalchemy.orm import Session
from sqlalchemy import or_, desc, update
from typing import Optional
import logging

from billdesk.common.exceptions import NotFoundError, ValidationError
from billdesk.common.transactions import unit_of_work, paginate
from billdesk.modules.invoices.models import InvoiceLineItem
from billdesk.modules.outgoing_payments.models import OutgoingPayment
from billdesk.modules.products.models import Product, ProductCategory, ProductStatus
from billdesk.modules.products.schemas import ProductCreate, ProductUpdate
from billdesk.modules.quotations.models import QuotationLineItem

logger = logging.getLogger(__name__)


class ProductService:
    def __init__(self, db: Session):
        self.db = db

    def create_product(self, product_data: ProductCreate, user_id: int) -> Product:
        with unit_of_work(self.db, "creating product"):
            product = Product(created_by=user_id, **product_data.model_dump())
            self.db.add(product)

        self.db.refresh(product)
        logger.info(f"Product {product.id} ({product.name}) created by user {user_id}")
        return product

    def get_product(self, product_id: int) -> Product:
        product = self.db.query(Product).filter(Product.id == product_id).first()
        if not product:
            raise NotFoundError("Product", product_id)
        return product

    def list_products(
        self,
        page: int = 1,
        limit: int = 10,
        search: Optional[str] = None,
        category: Optional[ProductCategory] = None,
        status: Optional[ProductStatus] = None
    ) -> dict:
        query = self.db.query(Product)
        if search:
            query = query.filter(or_(
                Product.name.ilike(f"%{search}%"),
                Product.sku.ilike(f"%{search}%")
            ))
        if category:
            query = query.filter(Product.category == category)
        if status:
            query = query.filter(Product.status == status)

        return paginate(query.order_by(desc(Product.id)), page, limit)

    def update_product(self, product_id: int, product_update: ProductUpdate) -> Product:
        """Actualizar producto; los documentos existentes conservan su precio"""
        with unit_of_work(self.db, "updating product"):
            product = self.get_product(product_id)
            for field, value in product_update.model_dump(exclude_unset=True).items():
                setattr(product, field, value)

        self.db.refresh(product)
        return product

    def delete_product(self, product_id: int) -> None:
        """
        Eliminar producto.

        Las líneas de cotizaciones y facturas quedan desvinculadas
        (product_id = NULL) y conservan nombre y precio. Un producto usado
        como beneficiario de un pago saliente no se puede eliminar.
        """
        with unit_of_work(self.db, "deleting product"):
            product = self.get_product(product_id)

            payments = self.db.query(OutgoingPayment.id).filter(OutgoingPayment.product_id == product_id).count()
            if payments:
                raise ValidationError(
                    f"Product {product_id} is the payee of {payments} outgoing payment(s) and cannot be deleted"
                )

            for line_model in (QuotationLineItem, InvoiceLineItem):
                self.db.execute(
                    update(line_model)
                    .where(line_model.product_id == product_id)
                    .values(product_id=None)
                    .execution_options(synchronize_session="fetch")
                )
            self.db.delete(product)

        logger.info(f"Product {product_id} deleted, line items detached")
