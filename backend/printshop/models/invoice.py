from sqlalchemy import Column, Float, ForeignKey, Integer, Text
from sqlalchemy.ext.orderinglist import ordering_list
from sqlalchemy.orm import relationship
from printshop.database import Base


class Invoice(Base):
    __tablename__ = "invoices"

    id = Column(Text, primary_key=True)
    invoice_number = Column(Text, nullable=False, unique=True)
    project_id = Column(Text, ForeignKey("projects.id", ondelete="CASCADE"), nullable=False)
    client_id = Column(Text, nullable=False)
    status = Column(Text, nullable=False, default="draft")
    invoice_type = Column(Text, nullable=False, default="final")
    subtotal = Column(Float, nullable=False, default=0.0)
    discount_amount = Column(Float, nullable=False, default=0.0)
    tax_amount = Column(Float, nullable=False, default=0.0)
    total = Column(Float, nullable=False, default=0.0)
    currency = Column(Text, nullable=False, default="AED")
    issued_at = Column(Text, nullable=False)
    due_date = Column(Text, nullable=False)
    sent_at = Column(Text)
    viewed_at = Column(Text)
    paid_at = Column(Text)
    overdue_notified_at = Column(Text)
    payment_terms = Column(Text, nullable=False, default="Net 30")
    notes = Column(Text)
    row_version = Column(Integer, nullable=False)
    created_at = Column(Text, nullable=False)
    updated_at = Column(Text, nullable=False)

    project = relationship("Project", back_populates="invoices")
    items = relationship(
        "InvoiceItem",
        back_populates="invoice",
        order_by="InvoiceItem.position",
        collection_class=ordering_list("position"),
        cascade="all, delete-orphan",
    )
    payments = relationship(
        "Payment",
        back_populates="invoice",
        order_by="Payment.created_at",
        cascade="all, delete-orphan",
    )

    __mapper_args__ = {"version_id_col": row_version}


class InvoiceItem(Base):
    __tablename__ = "invoice_items"

    id = Column(Text, primary_key=True)
    invoice_id = Column(Text, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False)
    position = Column(Integer, nullable=False)
    description = Column(Text, nullable=False)
    quantity = Column(Float, nullable=False)
    unit_price = Column(Float, nullable=False)
    discount = Column(Float, nullable=False, default=0.0)  # percent
    tax = Column(Float, nullable=False, default=0.0)  # absolute amount
    total = Column(Float, nullable=False)

    invoice = relationship("Invoice", back_populates="items")


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Text, primary_key=True)
    invoice_id = Column(Text, ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False)
    amount = Column(Float, nullable=False)
    paid_on = Column(Text, nullable=False)
    method = Column(Text, nullable=False)
    reference = Column(Text)
    notes = Column(Text)
    recorded_by = Column(Text, nullable=False)
    created_at = Column(Text, nullable=False)

    invoice = relationship("Invoice", back_populates="payments")
