from sqlalchemy import Column, Integer, BigInteger, String, DateTime, Date, ForeignKey, Text, Boolean, Numeric
from sqlalchemy.orm import relationship
from datetime import datetime
from decimal import Decimal
from enum import Enum as PyEnum
from typing import Set

from .database import Base

# Status Enums
class RecordStatus(str, PyEnum):
    ACTIVE = "active"
    INACTIVE = "inactive"

class StockStatus(str, PyEnum):
    AVAILABLE = "available"
    CONSUMED = "consumed"

class StockSource(str, PyEnum):
    MATERIAL = "material"
    SLITTING_ROLL = "slitting_roll"
    PRINT_PACK = "print_pack"
    CUTTING_ROLL = "cutting_roll"

class ClaimStatus(str, PyEnum):
    ACTIVE = "active"
    RELEASED = "released"

class StageTag(str, PyEnum):
    SLITTING = "1"
    PRINTING = "2"
    CUTTING = "3"

# ============================================================================
# MASTER TABLES - Core reference data
# ============================================================================

# User Master - Every mutation is attributed to one of these
class UserMaster(Base):
    __tablename__ = "user_master"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)
    username = Column(String(50), unique=True, nullable=False, index=True)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(50), nullable=False)  # operator, supervisor, sales, admin
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    last_login = Column(DateTime, nullable=True)
    status = Column(String(20), default=RecordStatus.ACTIVE.value, nullable=False)

class Supplier(Base):
    __tablename__ = "supplier"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    contact_person = Column(String(255), nullable=True)
    mobile = Column(String(50), nullable=True)
    address = Column(Text, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    status = Column(String(20), default=RecordStatus.ACTIVE.value, nullable=False)

    batches = relationship("MaterialBatch", back_populates="supplier")

class Customer(Base):
    __tablename__ = "customer"

    id = Column(Integer, primary_key=True, index=True)
    full_name = Column(String(255), nullable=False, index=True)
    address = Column(Text, nullable=True)
    mobile = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    status = Column(String(20), default=RecordStatus.ACTIVE.value, nullable=False)

# Particular - material type of a reel (e.g. "Kraft 80GSM")
class Particular(Base):
    __tablename__ = "particular"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    description = Column(Text, nullable=True)
    status = Column(String(20), default=RecordStatus.ACTIVE.value, nullable=False)

# Bag Type - finished good classification, carries the selling price
class BagType(Base):
    __tablename__ = "bag_type"

    id = Column(Integer, primary_key=True, index=True)
    bag_type = Column(String(100), unique=True, nullable=False, index=True)
    bag_price = Column(Numeric(10, 2), nullable=False, default=0)
    status = Column(String(20), default=RecordStatus.ACTIVE.value, nullable=False)

class CuttingType(Base):
    __tablename__ = "cutting_type"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    status = Column(String(20), default=RecordStatus.ACTIVE.value, nullable=False)

# Roll Type - slitting roll classification picked on a job card
class RollType(Base):
    __tablename__ = "roll_type"

    id = Column(Integer, primary_key=True, index=True)
    roll_type = Column(String(100), nullable=False)
    status = Column(String(20), default=RecordStatus.ACTIVE.value, nullable=False)

class PrintSize(Base):
    __tablename__ = "print_size"

    id = Column(Integer, primary_key=True, index=True)
    print_size = Column(String(50), nullable=False)
    status = Column(String(20), default=RecordStatus.ACTIVE.value, nullable=False)

# ============================================================================
# MATERIAL RECEIVING - batches of reels from a supplier
# ============================================================================

# Material Batch - aggregate over its reels, totals kept in step with children
class MaterialBatch(Base):
    __tablename__ = "material_batch"

    id = Column(Integer, primary_key=True, index=True)
    frontend_id = Column(String(50), unique=True, nullable=True, index=True)  # MRN-00001-26
    supplier_id = Column(Integer, ForeignKey("supplier.id"), nullable=False, index=True)
    total_reels = Column(Integer, default=0, nullable=False)
    total_net_weight = Column(Numeric(14, 3), default=Decimal("0"), nullable=False)
    total_gross_weight = Column(Numeric(14, 3), default=Decimal("0"), nullable=False)
    status = Column(String(20), default=RecordStatus.ACTIVE.value, nullable=False)
    created_by_id = Column(Integer, ForeignKey("user_master.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    supplier = relationship("Supplier", back_populates="batches")
    items = relationship("MaterialItem", back_populates="batch", cascade="all, delete-orphan")
    created_by = relationship("UserMaster")

# Material Item - one reel; batch_id is NULL while the reel is staged
class MaterialItem(Base):
    __tablename__ = "material_item"

    id = Column(Integer, primary_key=True, index=True)
    batch_id = Column(Integer, ForeignKey("material_batch.id"), nullable=True, index=True)
    reel_no = Column(String(50), nullable=False)
    particular_id = Column(Integer, ForeignKey("particular.id"), nullable=True, index=True)
    variety = Column(String(100), nullable=True)
    gsm = Column(Integer, nullable=False)
    size = Column(Integer, nullable=False)
    net_weight = Column(Numeric(10, 3), nullable=False)
    gross_weight = Column(Numeric(10, 3), nullable=False)
    colour = Column(String(50), nullable=True)
    barcode = Column(String(50), unique=True, nullable=True, index=True)  # Assigned after insert
    status = Column(String(20), default=RecordStatus.ACTIVE.value, nullable=False)
    created_by_id = Column(Integer, ForeignKey("user_master.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    batch = relationship("MaterialBatch", back_populates="items")
    particular = relationship("Particular")

    @property
    def is_staged(self) -> bool:
        return self.batch_id is None

# Stock Unit - a physical roll/pack that can be picked by a production stage
class StockUnit(Base):
    __tablename__ = "stock_unit"

    id = Column(Integer, primary_key=True, index=True)
    barcode = Column(BigInteger, unique=True, nullable=False, index=True)
    source_type = Column(String(30), nullable=False, index=True)  # material, slitting_roll, print_pack, cutting_roll
    source_id = Column(Integer, nullable=False)
    batch_id = Column(Integer, ForeignKey("material_batch.id"), nullable=True, index=True)
    particular_id = Column(Integer, ForeignKey("particular.id"), nullable=True)
    gsm = Column(Integer, nullable=True)
    size = Column(Integer, nullable=True)
    net_weight = Column(Numeric(10, 3), nullable=False)
    status = Column(String(20), default=StockStatus.AVAILABLE.value, nullable=False, index=True)
    consumed_at = Column(DateTime, nullable=True)
    consumed_by_id = Column(Integer, ForeignKey("user_master.id"), nullable=True)
    created_by_id = Column(Integer, ForeignKey("user_master.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    particular = relationship("Particular")

    @property
    def is_available(self) -> bool:
        return self.status == StockStatus.AVAILABLE.value

# ============================================================================
# JOB CARDS AND PRODUCTION STAGES
# ============================================================================

class JobCard(Base):
    __tablename__ = "job_card"

    id = Column(Integer, primary_key=True, index=True)
    customer_id = Column(Integer, ForeignKey("customer.id"), nullable=False, index=True)
    particular_id = Column(Integer, ForeignKey("particular.id"), nullable=True)
    gsm = Column(Integer, nullable=True)
    size = Column(Integer, nullable=True)
    unit_price = Column(Numeric(10, 2), default=Decimal("0"), nullable=False)
    stage_list = Column(String(20), default="", nullable=False, index=True)  # "1,2,3"

    # Completion flags, independent of stage_list membership
    slitting_done = Column(Boolean, default=False, nullable=False)
    printing_done = Column(Boolean, default=False, nullable=False)
    cutting_done = Column(Boolean, default=False, nullable=False)

    # Slitting instructions
    slitting_size = Column(String(50), nullable=True)
    slitting_remark = Column(Text, nullable=True)
    # Printing instructions
    printing_size = Column(String(50), nullable=True)
    printing_colour_count = Column(Integer, nullable=True)
    printing_colours = Column(String(255), nullable=True)
    printing_bag_count = Column(Integer, nullable=True)
    block_size = Column(String(50), nullable=True)
    printing_remark = Column(Text, nullable=True)
    # Cutting instructions
    cutting_type_id = Column(Integer, ForeignKey("cutting_type.id"), nullable=True)
    bag_type_id = Column(Integer, ForeignKey("bag_type.id"), nullable=True)
    cutting_print_name = Column(String(255), nullable=True)
    cutting_bag_count = Column(Integer, nullable=True)
    cutting_fold = Column(String(50), nullable=True)
    cutting_remark = Column(Text, nullable=True)

    job_date = Column(DateTime, default=datetime.utcnow, nullable=False)
    delivery_date = Column(Date, nullable=True)
    status = Column(String(20), default=RecordStatus.ACTIVE.value, nullable=False)
    created_by_id = Column(Integer, ForeignKey("user_master.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    customer = relationship("Customer")
    particular = relationship("Particular")
    cutting_type = relationship("CuttingType")
    bag_type = relationship("BagType")

    @property
    def stages(self) -> Set[StageTag]:
        from .services.stage_linker import parse_stages
        return parse_stages(self.stage_list)

# Slitting - one input roll per record, produces narrower rolls
class SlittingRecord(Base):
    __tablename__ = "slitting_record"

    id = Column(Integer, primary_key=True, index=True)
    job_card_id = Column(Integer, ForeignKey("job_card.id"), nullable=False, index=True)
    input_barcode = Column(String(50), nullable=False, index=True)
    number_of_roll = Column(Integer, default=0, nullable=False)
    wastage = Column(Numeric(10, 3), default=Decimal("0"), nullable=False)
    wastage_width = Column(Numeric(10, 3), default=Decimal("0"), nullable=False)
    created_by_id = Column(Integer, ForeignKey("user_master.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    rolls = relationship("SlittingRoll", back_populates="slitting", cascade="all, delete-orphan")

class SlittingRoll(Base):
    __tablename__ = "slitting_roll"

    id = Column(Integer, primary_key=True, index=True)
    job_card_id = Column(Integer, ForeignKey("job_card.id"), nullable=False, index=True)
    slitting_id = Column(Integer, ForeignKey("slitting_record.id"), nullable=False, index=True)
    weight = Column(Numeric(10, 3), nullable=False)
    width = Column(Numeric(10, 3), nullable=False)
    barcode = Column(String(50), unique=True, nullable=True, index=True)
    created_by_id = Column(Integer, ForeignKey("user_master.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    slitting = relationship("SlittingRecord", back_populates="rolls")

# Printing - one input roll per record, produces printed packs
class PrintRecord(Base):
    __tablename__ = "print_record"

    id = Column(Integer, primary_key=True, index=True)
    job_card_id = Column(Integer, ForeignKey("job_card.id"), nullable=False, index=True)
    input_barcode = Column(String(50), nullable=False, index=True)
    number_of_bag = Column(Integer, default=0, nullable=False)
    balance_weight = Column(Numeric(10, 3), default=Decimal("0"), nullable=False)
    balance_width = Column(Numeric(10, 3), default=Decimal("0"), nullable=False)
    print_wastage = Column(Numeric(10, 3), default=Decimal("0"), nullable=False)
    created_by_id = Column(Integer, ForeignKey("user_master.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    packs = relationship("PrintPack", back_populates="print_record", cascade="all, delete-orphan")

class PrintPack(Base):
    __tablename__ = "print_pack"

    id = Column(Integer, primary_key=True, index=True)
    job_card_id = Column(Integer, ForeignKey("job_card.id"), nullable=False, index=True)
    print_id = Column(Integer, ForeignKey("print_record.id"), nullable=False, index=True)
    weight = Column(Numeric(10, 3), nullable=False)
    bag_count = Column(Integer, default=0, nullable=False)
    barcode = Column(String(50), unique=True, nullable=True, index=True)
    created_by_id = Column(Integer, ForeignKey("user_master.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    print_record = relationship("PrintRecord", back_populates="packs")

# Cutting - one input roll/pack per record, produces rolls of finished bags
class CuttingRecord(Base):
    __tablename__ = "cutting_record"

    id = Column(Integer, primary_key=True, index=True)
    job_card_id = Column(Integer, ForeignKey("job_card.id"), nullable=False, index=True)
    input_barcode = Column(String(50), nullable=False, index=True)
    cutting_weight = Column(Numeric(10, 3), nullable=False)
    number_of_roll = Column(Integer, default=0, nullable=False)
    wastage = Column(Numeric(10, 3), default=Decimal("0"), nullable=False)
    created_by_id = Column(Integer, ForeignKey("user_master.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    rolls = relationship("CuttingRoll", back_populates="cutting", cascade="all, delete-orphan")

class CuttingRoll(Base):
    __tablename__ = "cutting_roll"

    id = Column(Integer, primary_key=True, index=True)
    job_card_id = Column(Integer, ForeignKey("job_card.id"), nullable=False, index=True)
    cutting_id = Column(Integer, ForeignKey("cutting_record.id"), nullable=False, index=True)
    weight = Column(Numeric(10, 3), nullable=False)
    no_of_bags = Column(Integer, default=0, nullable=False)
    cutting_wastage = Column(Numeric(10, 3), default=Decimal("0"), nullable=False)
    barcode = Column(String(50), unique=True, nullable=True, index=True)
    created_by_id = Column(Integer, ForeignKey("user_master.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    cutting = relationship("CuttingRecord", back_populates="rolls")

# ============================================================================
# FINISHED GOODS - bundles of complete / non-complete items
# ============================================================================

class Bundle(Base):
    __tablename__ = "bundle"

    id = Column(Integer, primary_key=True, index=True)
    cutting_roll_id = Column(Integer, ForeignKey("cutting_roll.id"), nullable=True, index=True)
    job_card_id = Column(Integer, ForeignKey("job_card.id"), nullable=True, index=True)
    bundle_type = Column(String(100), nullable=True)
    total_weight = Column(Numeric(14, 3), default=Decimal("0"), nullable=False)
    total_bags = Column(Integer, default=0, nullable=False)
    complete_count = Column(Integer, default=0, nullable=False)
    non_complete_count = Column(Integer, default=0, nullable=False)
    slitting_wastage = Column(Numeric(10, 3), default=Decimal("0"), nullable=False)
    printing_wastage = Column(Numeric(10, 3), default=Decimal("0"), nullable=False)
    cutting_wastage = Column(Numeric(10, 3), default=Decimal("0"), nullable=False)
    status = Column(String(20), default=RecordStatus.ACTIVE.value, nullable=False)
    created_by_id = Column(Integer, ForeignKey("user_master.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    cutting_roll = relationship("CuttingRoll")
    complete_items = relationship("CompleteItem", back_populates="bundle")
    non_complete_items = relationship("NonCompleteItem", back_populates="bundle")

    @property
    def total_wastage(self) -> Decimal:
        return (self.slitting_wastage or 0) + (self.printing_wastage or 0) + (self.cutting_wastage or 0)

# Complete Item - sellable unit; is_active is False once sold
class CompleteItem(Base):
    __tablename__ = "complete_item"

    id = Column(Integer, primary_key=True, index=True)
    bundle_id = Column(Integer, ForeignKey("bundle.id"), nullable=True, index=True)  # NULL while staged
    bundle_type = Column(String(100), nullable=False)
    weight = Column(Numeric(10, 3), nullable=False)
    bags = Column(Integer, nullable=False)
    barcode = Column(String(50), unique=True, nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_by_id = Column(Integer, ForeignKey("user_master.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    bundle = relationship("Bundle", back_populates="complete_items")

class NonCompleteItem(Base):
    __tablename__ = "non_complete_item"

    id = Column(Integer, primary_key=True, index=True)
    bundle_id = Column(Integer, ForeignKey("bundle.id"), nullable=True, index=True)
    weight = Column(Numeric(10, 3), nullable=False)
    bags = Column(Integer, nullable=False)
    barcode = Column(String(50), unique=True, nullable=True, index=True)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by_id = Column(Integer, ForeignKey("user_master.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    bundle = relationship("Bundle", back_populates="non_complete_items")

# ============================================================================
# SALES - delivery orders, returns, invoices
# ============================================================================

# Sales Info - delivery order header
class SalesInfo(Base):
    __tablename__ = "sales_info"

    id = Column(Integer, primary_key=True, index=True)
    frontend_id = Column(String(50), unique=True, nullable=True, index=True)  # DO-00001-26
    customer_id = Column(Integer, ForeignKey("customer.id"), nullable=False, index=True)
    customer_address = Column(Text, nullable=True)
    customer_contact = Column(String(50), nullable=True)
    total_bags = Column(Integer, default=0, nullable=False)
    total_amount = Column(Numeric(14, 2), default=Decimal("0"), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_by_id = Column(Integer, ForeignKey("user_master.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = relationship("Customer")
    items = relationship("SalesItem", back_populates="sales_info", cascade="all, delete-orphan")

class SalesItem(Base):
    __tablename__ = "sales_item"

    id = Column(Integer, primary_key=True, index=True)
    sales_info_id = Column(Integer, ForeignKey("sales_info.id"), nullable=False, index=True)
    complete_item_id = Column(Integer, ForeignKey("complete_item.id"), nullable=False, index=True)
    barcode = Column(String(50), nullable=False, index=True)
    bundle_type = Column(String(100), nullable=False)
    net_weight = Column(Numeric(10, 3), nullable=False)
    bags = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    total = Column(Numeric(14, 2), nullable=False)
    status = Column(String(20), default=ClaimStatus.ACTIVE.value, nullable=False)
    created_by_id = Column(Integer, ForeignKey("user_master.id"), nullable=False)

    sales_info = relationship("SalesInfo", back_populates="items")
    complete_item = relationship("CompleteItem")

# Return Info - soft-deleting the header releases all of its barcodes
class ReturnInfo(Base):
    __tablename__ = "return_info"

    id = Column(Integer, primary_key=True, index=True)
    frontend_id = Column(String(50), unique=True, nullable=True, index=True)  # RN-00001-26
    customer_id = Column(Integer, ForeignKey("customer.id"), nullable=False, index=True)
    customer_address = Column(Text, nullable=True)
    customer_contact = Column(String(50), nullable=True)
    total_bags = Column(Integer, default=0, nullable=False)
    total_amount = Column(Numeric(14, 2), default=Decimal("0"), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    created_by_id = Column(Integer, ForeignKey("user_master.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    customer = relationship("Customer")
    items = relationship("ReturnItem", back_populates="return_info", cascade="all, delete-orphan")

class ReturnItem(Base):
    __tablename__ = "return_item"

    id = Column(Integer, primary_key=True, index=True)
    return_info_id = Column(Integer, ForeignKey("return_info.id"), nullable=False, index=True)
    complete_item_id = Column(Integer, ForeignKey("complete_item.id"), nullable=False, index=True)
    barcode = Column(String(50), nullable=False, index=True)
    bundle_type = Column(String(100), nullable=False)
    net_weight = Column(Numeric(10, 3), nullable=False)
    bags = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    total = Column(Numeric(14, 2), nullable=False)
    status = Column(String(20), default=ClaimStatus.ACTIVE.value, nullable=False)
    created_by_id = Column(Integer, ForeignKey("user_master.id"), nullable=False)

    return_info = relationship("ReturnInfo", back_populates="items")

# Invoice Info - bill raised against a delivery order
class InvoiceInfo(Base):
    __tablename__ = "invoice_info"

    id = Column(Integer, primary_key=True, index=True)
    frontend_id = Column(String(50), unique=True, nullable=True, index=True)  # INV-00001-26
    customer_id = Column(Integer, ForeignKey("customer.id"), nullable=False, index=True)
    sales_info_id = Column(Integer, ForeignKey("sales_info.id"), nullable=False, index=True)
    total = Column(Numeric(14, 2), default=Decimal("0"), nullable=False)
    is_active = Column(Boolean, default=True, nullable=False)
    created_by_id = Column(Integer, ForeignKey("user_master.id"), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    customer = relationship("Customer")
    sales_info = relationship("SalesInfo")
    items = relationship("InvoiceItem", back_populates="invoice", cascade="all, delete-orphan")

class InvoiceItem(Base):
    __tablename__ = "invoice_item"

    id = Column(Integer, primary_key=True, index=True)
    invoice_id = Column(Integer, ForeignKey("invoice_info.id"), nullable=False, index=True)
    do_number = Column(String(50), nullable=True)
    bag_type_id = Column(Integer, ForeignKey("bag_type.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    total = Column(Numeric(14, 2), nullable=False)
    created_by_id = Column(Integer, ForeignKey("user_master.id"), nullable=False)

    invoice = relationship("InvoiceInfo", back_populates="items")
    bag_type = relationship("BagType")
