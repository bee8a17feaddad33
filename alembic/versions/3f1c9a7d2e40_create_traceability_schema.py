"""create_traceability_schema

Revision ID: 3f1c9a7d2e40
Revises:
Create Date: 2026-10-19 09:12:44.518203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9a7d2e40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _created_by() -> sa.Column:
    return sa.Column('created_by_id', sa.Integer(), sa.ForeignKey('user_master.id'), nullable=False)


def _created_at() -> sa.Column:
    return sa.Column('created_at', sa.DateTime(), nullable=False)


def _status() -> sa.Column:
    return sa.Column('status', sa.String(length=20), nullable=False, server_default='active')


def _indexes(table: str, *columns: str, unique: Sequence[str] = ()) -> None:
    op.create_index(op.f(f'ix_{table}_id'), table, ['id'], unique=False)
    for column in columns:
        op.create_index(op.f(f'ix_{table}_{column}'), table, [column], unique=column in unique)


def upgrade() -> None:
    # Step 1: Master tables
    op.create_table(
        'user_master',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('username', sa.String(length=50), nullable=False),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=50), nullable=False),
        _created_at(),
        sa.Column('last_login', sa.DateTime(), nullable=True),
        _status(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('user_master', 'username', unique=('username',))

    op.create_table(
        'supplier',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('contact_person', sa.String(length=255), nullable=True),
        sa.Column('mobile', sa.String(length=50), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        _created_at(),
        _status(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('supplier', 'name')

    op.create_table(
        'customer',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('mobile', sa.String(length=50), nullable=True),
        _created_at(),
        _status(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('customer', 'full_name')

    op.create_table(
        'particular',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        _status(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('particular', 'name')

    op.create_table(
        'bag_type',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('bag_type', sa.String(length=100), nullable=False),
        sa.Column('bag_price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        _status(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('bag_type', 'bag_type', unique=('bag_type',))

    op.create_table(
        'cutting_type',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        _status(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('cutting_type')

    # Step 2: Material receiving and stock
    op.create_table(
        'material_batch',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('frontend_id', sa.String(length=50), nullable=True),
        sa.Column('supplier_id', sa.Integer(), sa.ForeignKey('supplier.id'), nullable=False),
        sa.Column('total_reels', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_net_weight', sa.Numeric(14, 3), nullable=False, server_default='0'),
        sa.Column('total_gross_weight', sa.Numeric(14, 3), nullable=False, server_default='0'),
        _status(),
        _created_by(),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('material_batch', 'frontend_id', 'supplier_id', unique=('frontend_id',))

    op.create_table(
        'material_item',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('batch_id', sa.Integer(), sa.ForeignKey('material_batch.id'), nullable=True),
        sa.Column('reel_no', sa.String(length=50), nullable=False),
        sa.Column('particular_id', sa.Integer(), sa.ForeignKey('particular.id'), nullable=True),
        sa.Column('variety', sa.String(length=100), nullable=True),
        sa.Column('gsm', sa.Integer(), nullable=False),
        sa.Column('size', sa.Integer(), nullable=False),
        sa.Column('net_weight', sa.Numeric(10, 3), nullable=False),
        sa.Column('gross_weight', sa.Numeric(10, 3), nullable=False),
        sa.Column('colour', sa.String(length=50), nullable=True),
        sa.Column('barcode', sa.String(length=50), nullable=True),
        _status(),
        _created_by(),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('material_item', 'batch_id', 'particular_id', 'barcode', unique=('barcode',))

    op.create_table(
        'stock_unit',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('barcode', sa.BigInteger(), nullable=False),
        sa.Column('source_type', sa.String(length=30), nullable=False),
        sa.Column('source_id', sa.Integer(), nullable=False),
        sa.Column('batch_id', sa.Integer(), sa.ForeignKey('material_batch.id'), nullable=True),
        sa.Column('particular_id', sa.Integer(), sa.ForeignKey('particular.id'), nullable=True),
        sa.Column('gsm', sa.Integer(), nullable=True),
        sa.Column('size', sa.Integer(), nullable=True),
        sa.Column('net_weight', sa.Numeric(10, 3), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='available'),
        sa.Column('consumed_at', sa.DateTime(), nullable=True),
        sa.Column('consumed_by_id', sa.Integer(), sa.ForeignKey('user_master.id'), nullable=True),
        _created_by(),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('stock_unit', 'barcode', 'source_type', 'batch_id', 'status', unique=('barcode',))

    # Step 3: Job cards and production stages
    op.create_table(
        'job_card',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customer.id'), nullable=False),
        sa.Column('particular_id', sa.Integer(), sa.ForeignKey('particular.id'), nullable=True),
        sa.Column('gsm', sa.Integer(), nullable=True),
        sa.Column('size', sa.Integer(), nullable=True),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('stage_list', sa.String(length=20), nullable=False, server_default=''),
        sa.Column('slitting_done', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('printing_done', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('cutting_done', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('slitting_size', sa.String(length=50), nullable=True),
        sa.Column('slitting_remark', sa.Text(), nullable=True),
        sa.Column('printing_size', sa.String(length=50), nullable=True),
        sa.Column('printing_colour_count', sa.Integer(), nullable=True),
        sa.Column('printing_colours', sa.String(length=255), nullable=True),
        sa.Column('printing_bag_count', sa.Integer(), nullable=True),
        sa.Column('block_size', sa.String(length=50), nullable=True),
        sa.Column('printing_remark', sa.Text(), nullable=True),
        sa.Column('cutting_type_id', sa.Integer(), sa.ForeignKey('cutting_type.id'), nullable=True),
        sa.Column('bag_type_id', sa.Integer(), sa.ForeignKey('bag_type.id'), nullable=True),
        sa.Column('cutting_print_name', sa.String(length=255), nullable=True),
        sa.Column('cutting_bag_count', sa.Integer(), nullable=True),
        sa.Column('cutting_fold', sa.String(length=50), nullable=True),
        sa.Column('cutting_remark', sa.Text(), nullable=True),
        sa.Column('job_date', sa.DateTime(), nullable=False),
        sa.Column('delivery_date', sa.Date(), nullable=True),
        _status(),
        _created_by(),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('job_card', 'customer_id', 'stage_list')

    op.create_table(
        'slitting_record',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('job_card_id', sa.Integer(), sa.ForeignKey('job_card.id'), nullable=False),
        sa.Column('input_barcode', sa.String(length=50), nullable=False),
        sa.Column('number_of_roll', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('wastage', sa.Numeric(10, 3), nullable=False, server_default='0'),
        sa.Column('wastage_width', sa.Numeric(10, 3), nullable=False, server_default='0'),
        _created_by(),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('slitting_record', 'job_card_id', 'input_barcode')

    op.create_table(
        'slitting_roll',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('job_card_id', sa.Integer(), sa.ForeignKey('job_card.id'), nullable=False),
        sa.Column('slitting_id', sa.Integer(), sa.ForeignKey('slitting_record.id'), nullable=False),
        sa.Column('weight', sa.Numeric(10, 3), nullable=False),
        sa.Column('width', sa.Numeric(10, 3), nullable=False),
        sa.Column('barcode', sa.String(length=50), nullable=True),
        _created_by(),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('slitting_roll', 'job_card_id', 'slitting_id', 'barcode', unique=('barcode',))

    op.create_table(
        'print_record',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('job_card_id', sa.Integer(), sa.ForeignKey('job_card.id'), nullable=False),
        sa.Column('input_barcode', sa.String(length=50), nullable=False),
        sa.Column('number_of_bag', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('balance_weight', sa.Numeric(10, 3), nullable=False, server_default='0'),
        sa.Column('balance_width', sa.Numeric(10, 3), nullable=False, server_default='0'),
        sa.Column('print_wastage', sa.Numeric(10, 3), nullable=False, server_default='0'),
        _created_by(),
        _created_at(),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('print_record', 'job_card_id', 'input_barcode')

    op.create_table(
        'print_pack',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('job_card_id', sa.Integer(), sa.ForeignKey('job_card.id'), nullable=False),
        sa.Column('print_id', sa.Integer(), sa.ForeignKey('print_record.id'), nullable=False),
        sa.Column('weight', sa.Numeric(10, 3), nullable=False),
        sa.Column('bag_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('barcode', sa.String(length=50), nullable=True),
        _created_by(),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('print_pack', 'job_card_id', 'print_id', 'barcode', unique=('barcode',))

    op.create_table(
        'cutting_record',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('job_card_id', sa.Integer(), sa.ForeignKey('job_card.id'), nullable=False),
        sa.Column('input_barcode', sa.String(length=50), nullable=False),
        sa.Column('cutting_weight', sa.Numeric(10, 3), nullable=False),
        sa.Column('number_of_roll', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('wastage', sa.Numeric(10, 3), nullable=False, server_default='0'),
        _created_by(),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('cutting_record', 'job_card_id', 'input_barcode')

    op.create_table(
        'cutting_roll',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('job_card_id', sa.Integer(), sa.ForeignKey('job_card.id'), nullable=False),
        sa.Column('cutting_id', sa.Integer(), sa.ForeignKey('cutting_record.id'), nullable=False),
        sa.Column('weight', sa.Numeric(10, 3), nullable=False),
        sa.Column('no_of_bags', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('cutting_wastage', sa.Numeric(10, 3), nullable=False, server_default='0'),
        sa.Column('barcode', sa.String(length=50), nullable=True),
        _created_by(),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('cutting_roll', 'job_card_id', 'cutting_id', 'barcode', unique=('barcode',))

    # Step 4: Finished goods
    op.create_table(
        'bundle',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('cutting_roll_id', sa.Integer(), sa.ForeignKey('cutting_roll.id'), nullable=True),
        sa.Column('job_card_id', sa.Integer(), sa.ForeignKey('job_card.id'), nullable=True),
        sa.Column('bundle_type', sa.String(length=100), nullable=True),
        sa.Column('total_weight', sa.Numeric(14, 3), nullable=False, server_default='0'),
        sa.Column('total_bags', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('complete_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('non_complete_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('slitting_wastage', sa.Numeric(10, 3), nullable=False, server_default='0'),
        sa.Column('printing_wastage', sa.Numeric(10, 3), nullable=False, server_default='0'),
        sa.Column('cutting_wastage', sa.Numeric(10, 3), nullable=False, server_default='0'),
        _status(),
        _created_by(),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('bundle', 'cutting_roll_id', 'job_card_id')

    op.create_table(
        'complete_item',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('bundle_id', sa.Integer(), sa.ForeignKey('bundle.id'), nullable=True),
        sa.Column('bundle_type', sa.String(length=100), nullable=False),
        sa.Column('weight', sa.Numeric(10, 3), nullable=False),
        sa.Column('bags', sa.Integer(), nullable=False),
        sa.Column('barcode', sa.String(length=50), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_by(),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('complete_item', 'bundle_id', 'barcode', 'is_active', unique=('barcode',))

    op.create_table(
        'non_complete_item',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('bundle_id', sa.Integer(), sa.ForeignKey('bundle.id'), nullable=True),
        sa.Column('weight', sa.Numeric(10, 3), nullable=False),
        sa.Column('bags', sa.Integer(), nullable=False),
        sa.Column('barcode', sa.String(length=50), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_by(),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('non_complete_item', 'bundle_id', 'barcode', unique=('barcode',))

    # Step 5: Sales, returns and invoices
    for header in ('sales_info', 'return_info'):
        op.create_table(
            header,
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('frontend_id', sa.String(length=50), nullable=True),
            sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customer.id'), nullable=False),
            sa.Column('customer_address', sa.Text(), nullable=True),
            sa.Column('customer_contact', sa.String(length=50), nullable=True),
            sa.Column('total_bags', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('total_amount', sa.Numeric(14, 2), nullable=False, server_default='0'),
            sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
            _created_by(),
            _created_at(),
            sa.Column('updated_at', sa.DateTime(), nullable=True),
            sa.PrimaryKeyConstraint('id'),
        )
        _indexes(header, 'frontend_id', 'customer_id', 'is_active', unique=('frontend_id',))

    for line, header, header_key in (
        ('sales_item', 'sales_info', 'sales_info_id'),
        ('return_item', 'return_info', 'return_info_id'),
    ):
        op.create_table(
            line,
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column(header_key, sa.Integer(), sa.ForeignKey(f'{header}.id'), nullable=False),
            sa.Column('complete_item_id', sa.Integer(), sa.ForeignKey('complete_item.id'), nullable=False),
            sa.Column('barcode', sa.String(length=50), nullable=False),
            sa.Column('bundle_type', sa.String(length=100), nullable=False),
            sa.Column('net_weight', sa.Numeric(10, 3), nullable=False),
            sa.Column('bags', sa.Integer(), nullable=False),
            sa.Column('price', sa.Numeric(10, 2), nullable=False),
            sa.Column('total', sa.Numeric(14, 2), nullable=False),
            sa.Column('status', sa.String(length=20), nullable=False, server_default='active'),
            _created_by(),
            sa.PrimaryKeyConstraint('id'),
        )
        _indexes(line, header_key, 'complete_item_id', 'barcode')

    op.create_table(
        'invoice_info',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('frontend_id', sa.String(length=50), nullable=True),
        sa.Column('customer_id', sa.Integer(), sa.ForeignKey('customer.id'), nullable=False),
        sa.Column('sales_info_id', sa.Integer(), sa.ForeignKey('sales_info.id'), nullable=False),
        sa.Column('total', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _created_by(),
        _created_at(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('invoice_info', 'frontend_id', 'customer_id', 'sales_info_id', unique=('frontend_id',))

    op.create_table(
        'invoice_item',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('invoice_id', sa.Integer(), sa.ForeignKey('invoice_info.id'), nullable=False),
        sa.Column('do_number', sa.String(length=50), nullable=True),
        sa.Column('bag_type_id', sa.Integer(), sa.ForeignKey('bag_type.id'), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('total', sa.Numeric(14, 2), nullable=False),
        _created_by(),
        sa.PrimaryKeyConstraint('id'),
    )
    _indexes('invoice_item', 'invoice_id')


def downgrade() -> None:
    # Children first
    for table in (
        'invoice_item', 'invoice_info',
        'return_item', 'return_info',
        'sales_item', 'sales_info',
        'non_complete_item', 'complete_item', 'bundle',
        'cutting_roll', 'cutting_record',
        'print_pack', 'print_record',
        'slitting_roll', 'slitting_record',
        'job_card',
        'stock_unit', 'material_item', 'material_batch',
        'cutting_type', 'bag_type', 'particular', 'customer', 'supplier',
        'user_master',
    ):
        op.drop_table(table)
