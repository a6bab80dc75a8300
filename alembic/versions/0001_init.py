from alembic import op
import sqlalchemy as sa

revision = '0001_init'
down_revision = None
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'stock_items',
        sa.Column('id', sa.String(64), primary_key=True),
        sa.Column('kind', sa.String(20), nullable=False, server_default='COMPONENT'),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
        sa.CheckConstraint('quantity >= 0', name='ck_stock_items_quantity_non_negative'),
    )
    op.create_table(
        'orders',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=True, index=True),
        sa.Column('is_guest_order', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('status', sa.String(20), nullable=False, index=True),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('payment_method', sa.String(20), nullable=False),
        sa.Column('shipping_method', sa.String(50), nullable=False),
        sa.Column('shipping_name', sa.String(200), nullable=False),
        sa.Column('shipping_email', sa.String(255), nullable=False),
        sa.Column('shipping_phone', sa.String(50), nullable=False),
        sa.Column('shipping_address', sa.String(500), nullable=False),
        sa.Column('locale', sa.String(10), nullable=False, server_default='en'),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
    )
    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('order_id', sa.String(36), sa.ForeignKey('orders.id'), nullable=False, index=True),
        sa.Column('product_id', sa.String(64), nullable=False, index=True),
        sa.Column('product_type', sa.String(20), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
    )
    op.create_table(
        'configurations',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=False, index=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, index=True),
        sa.Column('is_public', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('is_template', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('total_price', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('rejection_reason', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
    )
    op.create_table(
        'config_items',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('configuration_id', sa.String(36), sa.ForeignKey('configurations.id'),
                  nullable=False, index=True),
        sa.Column('component_id', sa.String(64), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False, server_default='1'),
    )
    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.String(64), nullable=True),
        sa.Column('action', sa.String(30), nullable=False, index=True),
        sa.Column('entity_type', sa.String(30), nullable=False, index=True),
        sa.Column('entity_id', sa.String(64), nullable=False, index=True),
        sa.Column('details', sa.JSON, nullable=False),
        sa.Column('ip_address', sa.String(64), nullable=False, server_default=''),
        sa.Column('user_agent', sa.String(255), nullable=False, server_default=''),
        sa.Column('created_at', sa.DateTime, nullable=False),
    )

def downgrade():
    op.drop_table('audit_logs')
    op.drop_table('config_items')
    op.drop_table('configurations')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('stock_items')
