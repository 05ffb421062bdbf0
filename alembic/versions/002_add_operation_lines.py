"""Add operation lines

Revision ID: 002_operation_lines
Revises: 001_pchart
Create Date: 2026-10-18

Line numbers allowed per operation, checked when an operation is completed.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

# revision identifiers
revision = '002_operation_lines'
down_revision = '001_pchart'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'operation_lines',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('operation_number', sa.String(20), nullable=False),
        sa.Column('line_number', sa.String(50), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.UniqueConstraint('operation_number', 'line_number', name='uq_operation_line'),
    )
    op.create_index('ix_operation_lines_operation_number', 'operation_lines', ['operation_number'])


def downgrade():
    op.drop_index('ix_operation_lines_operation_number', table_name='operation_lines')
    op.drop_table('operation_lines')
