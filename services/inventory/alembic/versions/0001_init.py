from alembic import op
import sqlalchemy as sa

revision = '0001_init'
down_revision = None
branch_labels = None
depends_on = None

QTY = sa.Numeric(18, 4)


def tenant_and_audit():
    return [
        sa.Column('tenant_id', sa.String(64), nullable=False, index=True),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('created_by', sa.Integer, nullable=True),
        sa.Column('updated_at', sa.DateTime, nullable=False),
        sa.Column('updated_by', sa.Integer, nullable=True),
        sa.Column('is_deleted', sa.Boolean, nullable=False, server_default=sa.false()),
    ]


def status(name, default=None):
    return sa.Column(name, sa.String(32), nullable=default is None, server_default=default)


def upgrade():
    op.create_table(
        'inventory_items',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('product_id', sa.Integer, nullable=False, index=True),
        sa.Column('variant_id', sa.Integer, nullable=True),
        sa.Column('lot_number', sa.String(64), nullable=True),
        sa.Column('serial_number', sa.String(64), nullable=True),
        sa.Column('status', sa.String(32), nullable=False, index=True),
        sa.Column('condition', sa.String(30), nullable=True),
        sa.Column('quantity_on_hand', QTY, nullable=False, server_default='0'),
        sa.Column('quantity_allocated', QTY, nullable=False, server_default='0'),
        sa.Column('quantity_available', QTY, nullable=False, server_default='0'),
        sa.Column('unit_of_measure', sa.String(16), nullable=False, server_default='EA'),
        sa.Column('location_id', sa.Integer, nullable=True, index=True),
        sa.Column('facility_id', sa.Integer, nullable=True),
        sa.Column('expiry_date', sa.DateTime, nullable=True),
        sa.Column('manufacture_date', sa.DateTime, nullable=True),
        sa.Column('received_date', sa.DateTime, nullable=True),
        sa.Column('last_counted_date', sa.DateTime, nullable=True),
        sa.Column('unit_cost', QTY, nullable=True),
        sa.Column('total_cost', QTY, nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('version_id', sa.Integer, nullable=False),
        *tenant_and_audit(),
        sa.CheckConstraint('quantity_on_hand >= 0', name='ck_inventory_items_on_hand_non_negative'),
        sa.CheckConstraint('quantity_allocated >= 0', name='ck_inventory_items_allocated_non_negative'),
    )

    op.create_table(
        'inventory_transactions',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('transaction_number', sa.String(32), nullable=False, index=True),
        sa.Column('transaction_type', sa.String(32), nullable=False),
        sa.Column('transaction_date', sa.DateTime, nullable=False),
        status('status'),
        sa.Column('reference_number', sa.String(64), nullable=True),
        sa.Column('reference_type', sa.String(32), nullable=True),
        sa.Column('reference_id', sa.Integer, nullable=True),
        sa.Column('source_type', sa.String(32), nullable=True),
        sa.Column('source_id', sa.Integer, nullable=True),
        sa.Column('destination_type', sa.String(32), nullable=True),
        sa.Column('destination_id', sa.Integer, nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        *tenant_and_audit(),
    )

    op.create_table(
        'inventory_transaction_details',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('transaction_id', sa.Integer, sa.ForeignKey('inventory_transactions.id'), nullable=False, index=True),
        sa.Column('item_id', sa.Integer, sa.ForeignKey('inventory_items.id'), nullable=False, index=True),
        sa.Column('quantity', QTY, nullable=False),
        sa.Column('unit_of_measure', sa.String(16), nullable=True),
        sa.Column('unit_cost', QTY, nullable=True),
        sa.Column('total_cost', QTY, nullable=True),
        sa.Column('lot_number', sa.String(64), nullable=True),
        sa.Column('serial_number', sa.String(64), nullable=True),
        sa.Column('from_location_id', sa.Integer, nullable=True),
        sa.Column('to_location_id', sa.Integer, nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        *tenant_and_audit(),
    )

    op.create_table(
        'inventory_adjustments',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('adjustment_number', sa.String(32), nullable=False, index=True),
        sa.Column('adjustment_date', sa.DateTime, nullable=False),
        sa.Column('adjustment_type', sa.String(32), nullable=False),
        status('status'),
        sa.Column('reason', sa.String(255), nullable=True),
        sa.Column('reason_code', sa.String(32), nullable=True),
        sa.Column('reference_number', sa.String(64), nullable=True),
        sa.Column('reference_type', sa.String(32), nullable=True),
        sa.Column('reference_id', sa.Integer, nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('is_approved', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('approved_by', sa.Integer, nullable=True),
        sa.Column('approved_at', sa.DateTime, nullable=True),
        *tenant_and_audit(),
    )

    op.create_table(
        'inventory_adjustment_details',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('adjustment_id', sa.Integer, sa.ForeignKey('inventory_adjustments.id'), nullable=False, index=True),
        sa.Column('item_id', sa.Integer, sa.ForeignKey('inventory_items.id'), nullable=False, index=True),
        sa.Column('location_id', sa.Integer, nullable=True),
        sa.Column('lot_number', sa.String(64), nullable=True),
        sa.Column('serial_number', sa.String(64), nullable=True),
        sa.Column('quantity_before', QTY, nullable=False),
        sa.Column('quantity_after', QTY, nullable=False),
        sa.Column('quantity_adjusted', QTY, nullable=False),
        sa.Column('unit_of_measure', sa.String(16), nullable=True),
        sa.Column('unit_cost', QTY, nullable=True),
        sa.Column('total_cost', QTY, nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        *tenant_and_audit(),
    )

    op.create_table(
        'inventory_reservations',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('reservation_number', sa.String(32), nullable=False, index=True),
        sa.Column('reservation_type', sa.String(32), nullable=False),
        sa.Column('status', sa.String(32), nullable=False, index=True),
        sa.Column('reference_number', sa.String(64), nullable=True),
        sa.Column('reference_type', sa.String(32), nullable=True),
        sa.Column('reference_id', sa.Integer, nullable=True),
        sa.Column('requested_date', sa.DateTime, nullable=False),
        sa.Column('expiry_date', sa.DateTime, nullable=True, index=True),
        sa.Column('priority', sa.Integer, nullable=False, server_default='0'),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('version_id', sa.Integer, nullable=False),
        *tenant_and_audit(),
    )

    op.create_table(
        'inventory_reservation_details',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('reservation_id', sa.Integer, sa.ForeignKey('inventory_reservations.id'), nullable=False, index=True),
        sa.Column('item_id', sa.Integer, sa.ForeignKey('inventory_items.id'), nullable=False, index=True),
        sa.Column('quantity_requested', QTY, nullable=False),
        sa.Column('quantity_allocated', QTY, nullable=False, server_default='0'),
        sa.Column('quantity_fulfilled', QTY, nullable=False, server_default='0'),
        sa.Column('unit_of_measure', sa.String(16), nullable=True),
        sa.Column('lot_number', sa.String(64), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        *tenant_and_audit(),
    )

    op.create_table(
        'inventory_allocations',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('reservation_detail_id', sa.Integer, sa.ForeignKey('inventory_reservation_details.id'),
                  nullable=False, index=True),
        sa.Column('item_id', sa.Integer, sa.ForeignKey('inventory_items.id'), nullable=False, index=True),
        sa.Column('location_id', sa.Integer, nullable=True),
        sa.Column('lot_number', sa.String(64), nullable=True),
        sa.Column('serial_number', sa.String(64), nullable=True),
        sa.Column('quantity_allocated', QTY, nullable=False),
        sa.Column('quantity_fulfilled', QTY, nullable=False, server_default='0'),
        sa.Column('unit_of_measure', sa.String(16), nullable=True),
        sa.Column('expiry_date', sa.DateTime, nullable=True),
        *tenant_and_audit(),
    )

    op.create_table(
        'inventory_counts',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('count_number', sa.String(32), nullable=False, index=True),
        sa.Column('count_type', sa.String(30), nullable=False, server_default='CYCLE'),
        sa.Column('status', sa.String(32), nullable=False, index=True),
        sa.Column('start_date', sa.DateTime, nullable=False),
        sa.Column('end_date', sa.DateTime, nullable=True),
        sa.Column('facility_id', sa.Integer, nullable=True),
        sa.Column('zone_id', sa.Integer, nullable=True),
        sa.Column('location_id', sa.Integer, nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('is_approved', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('approved_by', sa.Integer, nullable=True),
        sa.Column('approved_at', sa.DateTime, nullable=True),
        sa.Column('version_id', sa.Integer, nullable=False),
        *tenant_and_audit(),
    )

    op.create_table(
        'inventory_count_details',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('count_id', sa.Integer, sa.ForeignKey('inventory_counts.id'), nullable=False, index=True),
        sa.Column('item_id', sa.Integer, sa.ForeignKey('inventory_items.id'), nullable=False, index=True),
        sa.Column('expected_quantity', QTY, nullable=False),
        sa.Column('counted_quantity', QTY, nullable=False),
        sa.Column('variance', QTY, nullable=False),
        sa.Column('unit_of_measure', sa.String(16), nullable=True),
        sa.Column('lot_number', sa.String(64), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('is_recounted', sa.Boolean, nullable=False, server_default=sa.false()),
        *tenant_and_audit(),
    )

    op.create_table(
        'inventory_policies',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('product_id', sa.Integer, nullable=False, index=True),
        sa.Column('variant_id', sa.Integer, nullable=True),
        sa.Column('facility_id', sa.Integer, nullable=True, index=True),
        sa.Column('min_stock_level', QTY, nullable=True),
        sa.Column('max_stock_level', QTY, nullable=True),
        sa.Column('reorder_point', QTY, nullable=True),
        sa.Column('reorder_quantity', QTY, nullable=True),
        sa.Column('valuation_method', sa.String(32), nullable=False, server_default='FIFO'),
        sa.Column('abc_class', sa.String(32), nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        *tenant_and_audit(),
    )


def downgrade():
    for table in (
        'inventory_policies',
        'inventory_count_details',
        'inventory_counts',
        'inventory_allocations',
        'inventory_reservation_details',
        'inventory_reservations',
        'inventory_adjustment_details',
        'inventory_adjustments',
        'inventory_transaction_details',
        'inventory_transactions',
        'inventory_items',
    ):
        op.drop_table(table)
