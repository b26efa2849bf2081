"""Device storage table

Revision ID: 001
Revises: 
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'device_storage',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('key', sa.String(), nullable=False),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_device_storage_id'), 'device_storage', ['id'], unique=False)
    op.create_index(op.f('ix_device_storage_key'), 'device_storage', ['key'], unique=True)


def downgrade() -> None:
    op.drop_index(op.f('ix_device_storage_key'), table_name='device_storage')
    op.drop_index(op.f('ix_device_storage_id'), table_name='device_storage')
    op.drop_table('device_storage')
