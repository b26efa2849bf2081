"""Cookie jar table

Revision ID: 002
Revises: 001
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '002'
down_revision = '001'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'cookie_jar',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(), nullable=False),
        sa.Column('value', sa.Text(), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('path', sa.String(), nullable=False),
        sa.Column('same_site', sa.String(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_cookie_jar_id'), 'cookie_jar', ['id'], unique=False)
    op.create_index(op.f('ix_cookie_jar_name'), 'cookie_jar', ['name'], unique=True)


def downgrade() -> None:
    op.drop_index(op.f('ix_cookie_jar_name'), table_name='cookie_jar')
    op.drop_index(op.f('ix_cookie_jar_id'), table_name='cookie_jar')
    op.drop_table('cookie_jar')
