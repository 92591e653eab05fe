from alembic import op

revision = '0002_unique_document_numbers'
down_revision = '0001_init'
branch_labels = None
depends_on = None

NUMBERED_TABLES = (
    ('inventory_transactions', 'transaction_number'),
    ('inventory_adjustments', 'adjustment_number'),
    ('inventory_reservations', 'reservation_number'),
    ('inventory_counts', 'count_number'),
)


def upgrade():
    for table, column in NUMBERED_TABLES:
        with op.batch_alter_table(table) as batch:
            batch.create_unique_constraint(f'uq_{table}_number', ['tenant_id', column])


def downgrade():
    for table, _ in reversed(NUMBERED_TABLES):
        with op.batch_alter_table(table) as batch:
            batch.drop_constraint(f'uq_{table}_number', type_='unique')
