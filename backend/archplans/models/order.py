"""
订单模型
"""
from sqlalchemy import Column, Integer, String, Text, Numeric, DateTime, ForeignKey, Enum as SQLEnum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from archplans.core.database import Base
from archplans.models.enums import OrderStatus, PaymentStatus, LicenseType, ItemType


class Order(Base):
    """订单表"""
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(50), unique=True, nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    status = Column(SQLEnum(OrderStatus), default=OrderStatus.PENDING, nullable=False, index=True)
    payment_status = Column(SQLEnum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False)
    subtotal = Column(Numeric(10, 2), nullable=False)
    tax_amount = Column(Numeric(10, 2), default=0)
    total_amount = Column(Numeric(10, 2), nullable=False)
    currency = Column(String(3), default="USD")

    # 账单信息
    billing_email = Column(String(255), nullable=False)
    billing_name = Column(String(200), nullable=True)
    billing_street = Column(String(100), nullable=True)
    billing_city = Column(String(50), nullable=True)
    billing_state = Column(String(50), nullable=True)
    billing_zip = Column(String(20), nullable=True)
    billing_country = Column(String(2), nullable=True)

    # 支付服务
    payment_session_id = Column(String(255), nullable=True, index=True)
    payment_intent_id = Column(String(255), nullable=True, index=True)
    customer_ip = Column(String(64), nullable=True)
    internal_notes = Column(Text, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, server_default=func.now(), index=True)
    updated_at = Column(DateTime, server_default=func.now(), onupdate=func.now())

    # 关系
    user = relationship("User", back_populates="orders")
    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    licenses = relationship("License", back_populates="order")


class OrderItem(Base):
    """订单明细：按下单时价格记录"""
    __tablename__ = "order_items"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    item_type = Column(SQLEnum(ItemType), nullable=False)
    plan_id = Column(Integer, ForeignKey("plans.id"), nullable=True)
    image_id = Column(Integer, ForeignKey("gallery_images.id"), nullable=True)
    license_type = Column(SQLEnum(LicenseType), nullable=False)
    quantity = Column(Integer, default=1)
    unit_price = Column(Numeric(10, 2), nullable=False)
    total_price = Column(Numeric(10, 2), nullable=False)
    item_title = Column(String(200), nullable=False)
    item_description = Column(String(300), nullable=True)

    order = relationship("Order", back_populates="items")
    plan = relationship("Plan")
    image = relationship("GalleryImage")
