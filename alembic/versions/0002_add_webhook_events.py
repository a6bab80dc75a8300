from alembic import op
import sqlalchemy as sa

revision = '0002_add_webhook_events'
down_revision = '0001_init'
branch_labels = None
depends_on = None

def upgrade():
    op.create_table(
        'processed_webhook_events',
        sa.Column('event_id', sa.String(255), primary_key=True),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column('order_id', sa.String(36), nullable=True),
        sa.Column('processed_at', sa.DateTime, nullable=False),
    )

def downgrade():
    op.drop_table('processed_webhook_events')
