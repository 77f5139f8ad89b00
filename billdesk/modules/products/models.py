from billdesk.database.database import Base
from sqlalchemy import Column, Integer, String, Boolean, Numeric, Text, Enum
from billdesk.common.mixins import AuditMixin
import enum


class ProductCategory(str, enum.Enum):
    SOFTWARE_LICENSE = "software_license"
    SAAS_SUBSCRIPTION = "saas_subscription"
    CONSULTING_SERVICE = "consulting_service"
    SUPPORT_PACKAGE = "support_package"
    CUSTOM_DEVELOPMENT = "custom_development"


class ProductStatus(str, enum.Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"
    DISCONTINUED = "discontinued"


class Product(Base, AuditMixin):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(Enum(ProductCategory), nullable=False)
    sku = Column(String(50), nullable=True, unique=True)

    # Pricing
    price = Column(Numeric(15, 2), nullable=False)
    sale_price = Column(Numeric(15, 2), nullable=True)  # Si existe, reemplaza a price en documentos nuevos
    tax_rate = Column(Numeric(5, 2), nullable=False, default=0)

    status = Column(Enum(ProductStatus), nullable=False, default=ProductStatus.ACTIVE)
    stock_quantity = Column(Integer, nullable=False, default=0)
    is_featured = Column(Boolean, nullable=False, default=False)
    is_new = Column(Boolean, nullable=False, default=False)

    # Service attributes
    service_work_hours = Column(Integer, nullable=False, default=0)
    work_hour_by_day = Column(String(50), nullable=True)
    work_hours_per_day = Column(Numeric(5, 2), nullable=True)

    @property
    def effective_price(self):
        """Precio usado al cotizar o facturar"""
        return self.sale_price if self.sale_price is not None else self.price
