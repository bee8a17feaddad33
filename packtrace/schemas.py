from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field, field_validator
from datetime import date, datetime
from enum import Enum

# ============================================================================
# STATUS ENUMS - Validation for status fields
# ============================================================================

class RecordStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"

class StockStatus(str, Enum):
    AVAILABLE = "available"
    CONSUMED = "consumed"

class UserRole(str, Enum):
    OPERATOR = "operator"
    SUPERVISOR = "supervisor"
    SALES = "sales"
    ADMIN = "admin"

class StageName(str, Enum):
    SLITTING = "slitting"
    PRINTING = "printing"
    CUTTING = "cutting"

class FinishedGoodsStatus(str, Enum):
    ALL = "all"
    IN = "in"
    OUT = "out"

# ============================================================================
# USERS
# ============================================================================

class UserMasterBase(BaseModel):
    name: str = Field(..., max_length=255)
    username: str = Field(..., max_length=50)
    role: UserRole = Field(..., description="User role: operator, supervisor, sales, admin")

class UserMasterCreate(UserMasterBase):
    password: str = Field(..., min_length=6)  # Plain password for hashing

class UserLogin(BaseModel):
    username: str = Field(..., max_length=50)
    password: str = Field(..., min_length=1)

class UserMasterUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    password: Optional[str] = Field(None, min_length=6)
    role: Optional[UserRole] = None
    status: Optional[RecordStatus] = None

class UserMaster(UserMasterBase):
    id: int
    status: RecordStatus
    created_at: datetime
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True

# ============================================================================
# MASTER SCHEMAS - Core reference data
# ============================================================================

class SupplierBase(BaseModel):
    name: str = Field(..., max_length=255)
    contact_person: Optional[str] = Field(None, max_length=255)
    mobile: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None

class SupplierCreate(SupplierBase):
    pass

class SupplierUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    contact_person: Optional[str] = Field(None, max_length=255)
    mobile: Optional[str] = Field(None, max_length=50)
    address: Optional[str] = None
    status: Optional[RecordStatus] = None

class Supplier(SupplierBase):
    id: int
    status: RecordStatus
    created_at: datetime

    class Config:
        from_attributes = True

class CustomerBase(BaseModel):
    full_name: str = Field(..., max_length=255)
    address: Optional[str] = None
    mobile: Optional[str] = Field(None, max_length=50)

class CustomerCreate(CustomerBase):
    pass

class CustomerUpdate(BaseModel):
    full_name: Optional[str] = Field(None, max_length=255)
    address: Optional[str] = None
    mobile: Optional[str] = Field(None, max_length=50)
    status: Optional[RecordStatus] = None

class Customer(CustomerBase):
    id: int
    status: RecordStatus
    created_at: datetime

    class Config:
        from_attributes = True

class ParticularBase(BaseModel):
    name: str = Field(..., max_length=255)
    description: Optional[str] = None

class ParticularCreate(ParticularBase):
    pass

class ParticularUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=255)
    description: Optional[str] = None
    status: Optional[RecordStatus] = None

class Particular(ParticularBase):
    id: int
    status: RecordStatus

    class Config:
        from_attributes = True

class BagTypeBase(BaseModel):
    bag_type: str = Field(..., max_length=100)
    bag_price: float = Field(default=0, ge=0, description="Selling price per kg")

    @field_validator('bag_type')
    @classmethod
    def strip_bag_type(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("bag_type cannot be blank")
        return v

class BagTypeCreate(BagTypeBase):
    pass

class BagTypeUpdate(BaseModel):
    bag_price: Optional[float] = Field(None, ge=0)
    status: Optional[RecordStatus] = None

class BagType(BagTypeBase):
    id: int
    status: RecordStatus

    class Config:
        from_attributes = True

class CuttingTypeBase(BaseModel):
    name: str = Field(..., max_length=100)

class CuttingTypeCreate(CuttingTypeBase):
    pass

class CuttingTypeUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=100)
    status: Optional[RecordStatus] = None

class CuttingType(CuttingTypeBase):
    id: int
    status: RecordStatus

    class Config:
        from_attributes = True

class RollTypeBase(BaseModel):
    roll_type: str = Field(..., max_length=100)

    @field_validator('roll_type')
    @classmethod
    def strip_roll_type(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("roll_type cannot be blank")
        return v

class RollTypeCreate(RollTypeBase):
    pass

class RollTypeUpdate(BaseModel):
    roll_type: Optional[str] = Field(None, max_length=100)
    status: Optional[RecordStatus] = None

class RollType(RollTypeBase):
    id: int
    status: RecordStatus

    class Config:
        from_attributes = True

class PrintSizeBase(BaseModel):
    print_size: str = Field(..., max_length=50)

    @field_validator('print_size')
    @classmethod
    def strip_print_size(cls, v):
        v = v.strip()
        if not v:
            raise ValueError("print_size cannot be blank")
        return v

class PrintSizeCreate(PrintSizeBase):
    pass

class PrintSizeUpdate(BaseModel):
    print_size: Optional[str] = Field(None, max_length=50)
    status: Optional[RecordStatus] = None

class PrintSize(PrintSizeBase):
    id: int
    status: RecordStatus

    class Config:
        from_attributes = True

# ============================================================================
# MATERIAL RECEIVING
# ============================================================================

class MaterialItemCreate(BaseModel):
    reel_no: str = Field(..., max_length=50, description="Printed reel number, its digits become the barcode suffix")
    particular_id: Optional[int] = None
    variety: Optional[str] = Field(None, max_length=100)
    gsm: int = Field(..., gt=0)
    size: int = Field(..., gt=0)
    net_weight: float = Field(..., gt=0)
    gross_weight: float = Field(..., gt=0)
    colour: Optional[str] = Field(None, max_length=50)

    @field_validator('reel_no')
    @classmethod
    def strip_reel_no(cls, v):
        return v.strip()

class MaterialItemAdd(MaterialItemCreate):
    batch_id: Optional[int] = Field(None, description="Omit to stage the reel for a later finalize")

class MaterialItemUpdate(BaseModel):
    particular_id: Optional[int] = None
    variety: Optional[str] = Field(None, max_length=100)
    gsm: Optional[int] = Field(None, gt=0)
    size: Optional[int] = Field(None, gt=0)
    net_weight: Optional[float] = Field(None, gt=0)
    gross_weight: Optional[float] = Field(None, gt=0)
    colour: Optional[str] = Field(None, max_length=50)

class MaterialItem(BaseModel):
    id: int
    batch_id: Optional[int] = None
    reel_no: str
    particular_id: Optional[int] = None
    variety: Optional[str] = None
    gsm: int
    size: int
    net_weight: float
    gross_weight: float
    colour: Optional[str] = None
    barcode: Optional[str] = None
    status: RecordStatus
    is_staged: bool
    created_by_id: int
    created_at: datetime

    class Config:
        from_attributes = True

class MaterialBatchCreate(BaseModel):
    supplier_id: int
    items: List[MaterialItemCreate] = Field(default_factory=list)

class MaterialBatchFinalize(BaseModel):
    supplier_id: int
    item_ids: List[int] = Field(..., min_length=1, description="Staged material item ids")

class MaterialBatchSummary(BaseModel):
    id: int
    frontend_id: Optional[str] = None
    supplier_id: int
    total_reels: int
    total_net_weight: float
    total_gross_weight: float
    status: RecordStatus
    created_by_id: int
    created_at: datetime

    class Config:
        from_attributes = True

class MaterialBatch(MaterialBatchSummary):
    items: List[MaterialItem] = []

# ============================================================================
# STOCK
# ============================================================================

class StockUnit(BaseModel):
    id: int
    barcode: int
    source_type: str
    source_id: int
    batch_id: Optional[int] = None
    particular_id: Optional[int] = None
    gsm: Optional[int] = None
    size: Optional[int] = None
    net_weight: float
    status: StockStatus
    consumed_at: Optional[datetime] = None
    consumed_by_id: Optional[int] = None
    created_at: datetime

    class Config:
        from_attributes = True

class StockSummaryRow(BaseModel):
    source_type: str
    status: StockStatus
    units: int
    net_weight: float

# ============================================================================
# JOB CARDS
# ============================================================================

class JobCardBase(BaseModel):
    particular_id: Optional[int] = None
    gsm: Optional[int] = Field(None, gt=0)
    size: Optional[int] = Field(None, gt=0)
    unit_price: float = Field(default=0, ge=0)

    slitting_size: Optional[str] = Field(None, max_length=50)
    slitting_remark: Optional[str] = None

    printing_size: Optional[str] = Field(None, max_length=50)
    printing_colour_count: Optional[int] = Field(None, ge=0, le=4)
    printing_bag_count: Optional[int] = Field(None, ge=0)
    block_size: Optional[str] = Field(None, max_length=50)
    printing_remark: Optional[str] = None

    cutting_type_id: Optional[int] = None
    bag_type_id: Optional[int] = None
    cutting_print_name: Optional[str] = Field(None, max_length=255)
    cutting_bag_count: Optional[int] = Field(None, ge=0)
    cutting_fold: Optional[str] = Field(None, max_length=50)
    cutting_remark: Optional[str] = None

    delivery_date: Optional[date] = None

class JobCardCreate(JobCardBase):
    customer_id: int
    slitting: bool = False
    printing: bool = False
    cutting: bool = False
    printing_colours: Optional[List[str]] = Field(None, max_length=4)

class JobCardUpdate(BaseModel):
    customer_id: Optional[int] = None
    particular_id: Optional[int] = None
    gsm: Optional[int] = Field(None, gt=0)
    size: Optional[int] = Field(None, gt=0)
    unit_price: Optional[float] = Field(None, ge=0)
    slitting: Optional[bool] = None
    printing: Optional[bool] = None
    cutting: Optional[bool] = None
    slitting_size: Optional[str] = Field(None, max_length=50)
    slitting_remark: Optional[str] = None
    printing_size: Optional[str] = Field(None, max_length=50)
    printing_colour_count: Optional[int] = Field(None, ge=0, le=4)
    printing_colours: Optional[List[str]] = Field(None, max_length=4)
    printing_bag_count: Optional[int] = Field(None, ge=0)
    block_size: Optional[str] = Field(None, max_length=50)
    printing_remark: Optional[str] = None
    cutting_type_id: Optional[int] = None
    bag_type_id: Optional[int] = None
    cutting_print_name: Optional[str] = Field(None, max_length=255)
    cutting_bag_count: Optional[int] = Field(None, ge=0)
    cutting_fold: Optional[str] = Field(None, max_length=50)
    cutting_remark: Optional[str] = None
    delivery_date: Optional[date] = None
    status: Optional[RecordStatus] = None

class JobCard(JobCardBase):
    id: int
    customer_id: int
    stage_list: str
    printing_colours: Optional[str] = None
    slitting_done: bool
    printing_done: bool
    cutting_done: bool
    job_date: datetime
    status: RecordStatus
    created_by_id: int
    created_at: datetime

    class Config:
        from_attributes = True

class RelatedStages(BaseModel):
    job_card_id: int
    current: Optional[StageName] = None
    stages: Dict[str, bool]

class StockOption(BaseModel):
    gsm: Optional[int] = None
    size: Optional[int] = None
    units: int

class JobCardStockOptions(BaseModel):
    particular_id: int
    options: List[StockOption]

# ============================================================================
# PRODUCTION STAGES
# ============================================================================

class StageInput(BaseModel):
    barcode: str = Field(..., description="Scanned stock unit barcode")

    @field_validator('barcode', mode='before')
    @classmethod
    def barcode_as_text(cls, v):
        return str(v).strip() if v is not None else v

class SlittingInput(StageInput):
    wastage: float = Field(default=0, ge=0)
    wastage_width: float = Field(default=0, ge=0)

class SlittingRollCreate(BaseModel):
    slitting_id: int
    weight: float = Field(..., gt=0)
    width: float = Field(..., gt=0)

class SlittingWastageUpdate(BaseModel):
    slitting_id: int
    wastage: float = Field(..., ge=0)
    wastage_width: Optional[float] = Field(None, ge=0)

class SlittingRoll(BaseModel):
    id: int
    job_card_id: int
    slitting_id: int
    weight: float
    width: float
    barcode: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True

class SlittingRecord(BaseModel):
    id: int
    job_card_id: int
    input_barcode: str
    number_of_roll: int
    wastage: float
    wastage_width: float
    created_at: datetime
    rolls: List[SlittingRoll] = []

    class Config:
        from_attributes = True

class PrintInput(StageInput):
    pass

class PrintPackCreate(BaseModel):
    print_id: int
    weight: float = Field(..., gt=0)
    bag_count: int = Field(..., ge=0)

class PrintWastageUpdate(BaseModel):
    print_id: int
    print_wastage: float = Field(..., ge=0)
    balance_weight: Optional[float] = Field(None, ge=0)
    balance_width: Optional[float] = Field(None, ge=0)

class PrintPack(BaseModel):
    id: int
    job_card_id: int
    print_id: int
    weight: float
    bag_count: int
    barcode: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True

class PrintRecord(BaseModel):
    id: int
    job_card_id: int
    input_barcode: str
    number_of_bag: int
    balance_weight: float
    balance_width: float
    print_wastage: float
    created_at: datetime
    packs: List[PrintPack] = []

    class Config:
        from_attributes = True

class CuttingInput(StageInput):
    cutting_weight: Optional[float] = Field(None, gt=0, description="Defaults to the input unit's net weight")

class CuttingRollCreate(BaseModel):
    cutting_id: int
    weight: float = Field(..., gt=0)
    no_of_bags: int = Field(..., ge=0)
    cutting_wastage: float = Field(default=0, ge=0)

class CuttingWastageUpdate(BaseModel):
    cutting_id: int
    wastage: float = Field(..., ge=0)

class CuttingRoll(BaseModel):
    id: int
    job_card_id: int
    cutting_id: int
    weight: float
    no_of_bags: int
    cutting_wastage: float
    barcode: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True

class CuttingRecord(BaseModel):
    id: int
    job_card_id: int
    input_barcode: str
    cutting_weight: float
    number_of_roll: int
    wastage: float
    created_at: datetime
    rolls: List[CuttingRoll] = []

    class Config:
        from_attributes = True

class SlittingView(BaseModel):
    job_card: JobCard
    stage: str
    in_stage: bool
    records: List[SlittingRecord]

class PrintingView(BaseModel):
    job_card: JobCard
    stage: str
    in_stage: bool
    records: List[PrintRecord]

class CuttingView(BaseModel):
    job_card: JobCard
    stage: str
    in_stage: bool
    records: List[CuttingRecord]

# ============================================================================
# BUNDLES AND FINISHED GOODS
# ============================================================================

class CompleteItemCreate(BaseModel):
    bundle_type: str = Field(..., max_length=100)
    weight: float = Field(..., gt=0)
    bags: int = Field(..., gt=0)
    bundle_id: Optional[int] = Field(None, description="Omit to stage the item for the next bundle")

class NonCompleteItemCreate(BaseModel):
    weight: float = Field(..., gt=0)
    bags: int = Field(..., ge=0)
    bundle_id: Optional[int] = None

class CompleteItem(BaseModel):
    id: int
    bundle_id: Optional[int] = None
    bundle_type: str
    weight: float
    bags: int
    barcode: Optional[str] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True

class NonCompleteItem(BaseModel):
    id: int
    bundle_id: Optional[int] = None
    weight: float
    bags: int
    barcode: Optional[str] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True

class BundleFinalize(BaseModel):
    cutting_roll_id: int
    complete_item_ids: List[int] = Field(default_factory=list)
    non_complete_item_ids: List[int] = Field(default_factory=list)
    bundle_type: Optional[str] = Field(None, max_length=100)

class BundleSummary(BaseModel):
    id: int
    cutting_roll_id: Optional[int] = None
    job_card_id: Optional[int] = None
    bundle_type: Optional[str] = None
    total_weight: float
    total_bags: int
    complete_count: int
    non_complete_count: int
    slitting_wastage: float
    printing_wastage: float
    cutting_wastage: float
    total_wastage: float
    status: RecordStatus
    created_at: datetime

    class Config:
        from_attributes = True

class Bundle(BundleSummary):
    complete_items: List[CompleteItem] = []
    non_complete_items: List[NonCompleteItem] = []

class WastageTrace(BaseModel):
    cutting_roll_id: int
    job_card_id: int
    no_of_bags: int
    bag_type: str
    slitting_wastage: float
    printing_wastage: float
    cutting_wastage: float

class StockInHand(BaseModel):
    bag_type_id: Optional[int] = None
    bundle_type: str
    item_count: int
    total_weight: float
    total_bags: int

# ============================================================================
# SALES - delivery orders, returns, invoices
# ============================================================================

class SaleLine(BaseModel):
    barcode: str = Field(..., description="Complete item barcode")
    price: Optional[float] = Field(None, ge=0, description="Defaults to the bag type price")

    @field_validator('barcode', mode='before')
    @classmethod
    def barcode_as_text(cls, v):
        return str(v).strip() if v is not None else v

class BarcodeSummary(BaseModel):
    complete_item_id: int
    barcode: str
    bundle_type: str
    weight: float
    bags: int
    price: Optional[float] = None

class DeliveryOrderCreate(BaseModel):
    customer_id: int
    items: List[SaleLine] = Field(..., min_length=1)

class DeliveryOrderUpdate(BaseModel):
    customer_id: Optional[int] = None
    items: List[SaleLine] = Field(..., min_length=1)

class SalesItem(BaseModel):
    id: int
    complete_item_id: int
    barcode: str
    bundle_type: str
    net_weight: float
    bags: int
    price: float
    total: float
    status: str

    class Config:
        from_attributes = True

class DeliveryOrder(BaseModel):
    id: int
    frontend_id: Optional[str] = None
    customer_id: int
    customer_address: Optional[str] = None
    customer_contact: Optional[str] = None
    total_bags: int
    total_amount: float
    is_active: bool
    created_by_id: int
    created_at: datetime
    items: List[SalesItem] = []

    class Config:
        from_attributes = True

class DoNumber(BaseModel):
    id: int
    do_number: Optional[str] = None
    customer_id: int

class DoBagType(BaseModel):
    bag_type_id: Optional[int] = None
    bundle_type: str
    price: float
    quantity: int
    bags: int
    weight: float

class ReturnCreate(BaseModel):
    customer_id: int
    items: List[SaleLine] = Field(..., min_length=1)

class ReturnUpdate(BaseModel):
    customer_id: Optional[int] = None
    items: List[SaleLine] = Field(..., min_length=1)

class ReturnItem(BaseModel):
    id: int
    complete_item_id: int
    barcode: str
    bundle_type: str
    net_weight: float
    bags: int
    price: float
    total: float
    status: str

    class Config:
        from_attributes = True

class ReturnNote(BaseModel):
    id: int
    frontend_id: Optional[str] = None
    customer_id: int
    customer_address: Optional[str] = None
    customer_contact: Optional[str] = None
    total_bags: int
    total_amount: float
    is_active: bool
    created_by_id: int
    created_at: datetime
    items: List[ReturnItem] = []

    class Config:
        from_attributes = True

class InvoiceLine(BaseModel):
    bag_type_id: int
    quantity: int = Field(..., gt=0)
    price: float = Field(..., ge=0)

class InvoiceCreate(BaseModel):
    customer_id: int
    do_id: int
    items: List[InvoiceLine] = Field(..., min_length=1)

class InvoiceUpdate(BaseModel):
    customer_id: Optional[int] = None
    do_id: Optional[int] = None
    items: List[InvoiceLine] = Field(..., min_length=1)

class InvoiceItem(BaseModel):
    id: int
    do_number: Optional[str] = None
    bag_type_id: int
    quantity: int
    price: float
    total: float

    class Config:
        from_attributes = True

class Invoice(BaseModel):
    id: int
    frontend_id: Optional[str] = None
    customer_id: int
    sales_info_id: int
    total: float
    is_active: bool
    created_by_id: int
    created_at: datetime
    items: List[InvoiceItem] = []

    class Config:
        from_attributes = True

# ============================================================================
# LEDGER MAINTENANCE
# ============================================================================

class RecomputeResult(BaseModel):
    before: Dict[str, Any]
    after: Dict[str, Any]
    drifted: bool
