from alembic import op
import sqlalchemy as sa

revision = '0003_add_order_pricing'
down_revision = '0002_add_webhook_events'
branch_labels = None
depends_on = None

def upgrade():
    op.add_column('orders', sa.Column('subtotal', sa.Numeric(10, 2), nullable=False, server_default='0'))
    op.add_column('orders', sa.Column('shipping_cost', sa.Numeric(10, 2), nullable=False, server_default='0'))
    op.add_column('orders', sa.Column('discount', sa.Numeric(10, 2), nullable=False, server_default='0'))
    op.add_column('orders', sa.Column('promo_code', sa.String(50), nullable=True))
    # Orders placed before pricing was itemized had no shipping or discount
    op.execute('UPDATE orders SET subtotal = total_amount')

def downgrade():
    op.drop_column('orders', 'promo_code')
    op.drop_column('orders', 'discount')
    op.drop_column('orders', 'shipping_cost')
    op.drop_column('orders', 'subtotal')
