"""Create P-Chart schema

Revision ID: 001_pchart
Revises:
Create Date: 2026-10-18

Tables: users, operation_steps, production_orders, operations,
master_defects, operation_defects, defect_edit_requests, standard_costs,
notifications, audit_logs.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID, JSONB

# revision identifiers
revision = '001_pchart'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create all P-Chart tables"""

    # ====================
    # USERS TABLE
    # ====================
    op.create_table(
        'users',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('username', sa.String(100), unique=True, nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        sa.Column('name', sa.String(150), nullable=True),
        sa.Column('email', sa.String(255), unique=True, nullable=True),
        sa.Column('department', sa.String(100), nullable=True),
        sa.Column('role', sa.String(20), server_default='operator', nullable=False),
        sa.Column('is_active', sa.Boolean, server_default='true', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('last_login_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_users_username', 'users', ['username'])

    # ====================
    # OPERATION STEPS TABLE
    # ====================
    op.create_table(
        'operation_steps',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('operation_number', sa.String(20), unique=True, nullable=False),
        sa.Column('label', sa.String(100), nullable=False),
        sa.Column('step_order', sa.Integer, nullable=False),
    )
    op.create_index('ix_operation_steps_step_order', 'operation_steps', ['step_order'])

    # ====================
    # PRODUCTION ORDERS TABLE
    # ====================
    op.create_table(
        'production_orders',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('po_number', sa.String(50), unique=True, nullable=False),
        sa.Column('lot_number', sa.String(50), nullable=True),
        sa.Column('po_quantity', sa.Integer, nullable=False),
        sa.Column('item_name', sa.String(200), nullable=True),
        sa.Column('status', sa.String(20), server_default='pending', nullable=False),
        sa.Column('current_operation', sa.String(20), nullable=True),
        sa.Column('current_operation_start_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('current_operation_end_time', sa.DateTime(timezone=True), nullable=True),
        # Edit lock holder, not a foreign key
        sa.Column('editing_user_id', UUID(as_uuid=True), nullable=True),
        sa.Column('editing_user_name', sa.String(150), nullable=True),
        sa.Column('locked_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    )
    op.create_index('ix_production_orders_po_number', 'production_orders', ['po_number'])
    op.create_index('ix_production_orders_status', 'production_orders', ['status'])

    # ====================
    # OPERATIONS TABLE
    # ====================
    op.create_table(
        'operations',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('production_order_id', UUID(as_uuid=True),
                  sa.ForeignKey('production_orders.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('operation', sa.String(20), nullable=False),
        sa.Column('step_order', sa.Integer, nullable=False),
        sa.Column('operator_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('input_quantity', sa.Integer, server_default='0', nullable=False),
        sa.Column('output_quantity', sa.Integer, nullable=True),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rf', sa.Integer, server_default='1', nullable=False),
        sa.Column('line_no', sa.String(50), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.UniqueConstraint('production_order_id', 'operation', name='uq_operation_per_order'),
    )
    op.create_index('ix_operations_order_step', 'operations', ['production_order_id', 'step_order'])

    # ====================
    # MASTER DEFECTS TABLE
    # ====================
    op.create_table(
        'master_defects',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('name', sa.String(150), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('applicable_operation', sa.String(20), nullable=True),
        sa.Column('reworkable', sa.Boolean, server_default='false', nullable=False),
        sa.Column('machine', sa.String(100), nullable=True),
        sa.Column('is_active', sa.Boolean, server_default='true', nullable=False),
        sa.Column('deactivated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('deactivated_by_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.UniqueConstraint('name', 'applicable_operation', name='uq_master_defect_name_operation'),
    )
    op.create_index('ix_master_defects_name', 'master_defects', ['name'])

    # ====================
    # OPERATION DEFECTS TABLE
    # ====================
    op.create_table(
        'operation_defects',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('operation_id', UUID(as_uuid=True),
                  sa.ForeignKey('operations.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('defect_id', UUID(as_uuid=True),
                  sa.ForeignKey('master_defects.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('defect_name', sa.String(150), nullable=True),
        sa.Column('defect_category', sa.String(100), nullable=True),
        sa.Column('defect_machine', sa.String(100), nullable=True),
        sa.Column('defect_reworkable', sa.Boolean, server_default='false', nullable=False),
        sa.Column('quantity', sa.Integer, server_default='0', nullable=False),
        sa.Column('quantity_rework', sa.Integer, server_default='0', nullable=False),
        sa.Column('quantity_nogood', sa.Integer, server_default='0', nullable=False),
        sa.Column('quantity_replacement', sa.Integer, server_default='0', nullable=False),
        sa.Column('recorded_by_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('recorded_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.UniqueConstraint('operation_id', 'defect_id', name='uq_operation_defect'),
        sa.CheckConstraint('quantity = quantity_rework + quantity_nogood', name='ck_operation_defect_balanced'),
        sa.CheckConstraint(
            'quantity_rework >= 0 AND quantity_nogood >= 0 AND quantity_replacement >= 0',
            name='ck_operation_defect_non_negative'
        ),
    )
    op.create_index('ix_operation_defects_operation_id', 'operation_defects', ['operation_id'])

    # ====================
    # DEFECT EDIT REQUESTS TABLE
    # ====================
    op.create_table(
        'defect_edit_requests',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('operation_defect_id', UUID(as_uuid=True),
                  sa.ForeignKey('operation_defects.id', ondelete='SET NULL'), nullable=True),
        sa.Column('operation_id', UUID(as_uuid=True),
                  sa.ForeignKey('operations.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('production_order_id', UUID(as_uuid=True),
                  sa.ForeignKey('production_orders.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('po_number', sa.String(50), nullable=False),
        sa.Column('requested_by_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('requested_by_name', sa.String(150), nullable=True),
        sa.Column('request_type', sa.String(10), server_default='edit', nullable=False),
        sa.Column('defect_id', UUID(as_uuid=True), sa.ForeignKey('master_defects.id', ondelete='SET NULL'), nullable=True),
        sa.Column('defect_name', sa.String(150), nullable=True),
        sa.Column('operation_code', sa.String(20), nullable=True),
        sa.Column('current_qty', sa.Integer, server_default='0', nullable=False),
        sa.Column('current_rw', sa.Integer, server_default='0', nullable=False),
        sa.Column('current_ng', sa.Integer, server_default='0', nullable=False),
        sa.Column('current_replacement', sa.Integer, server_default='0', nullable=False),
        sa.Column('requested_qty', sa.Integer, server_default='0', nullable=False),
        sa.Column('requested_rw', sa.Integer, server_default='0', nullable=False),
        sa.Column('requested_ng', sa.Integer, server_default='0', nullable=False),
        sa.Column('requested_replacement', sa.Integer, server_default='0', nullable=False),
        sa.Column('reason', sa.Text, nullable=False),
        sa.Column('status', sa.String(20), server_default='pending', nullable=False),
        sa.Column('resolved_by_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('resolution_note', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_defect_edit_requests_operation_defect_id', 'defect_edit_requests', ['operation_defect_id'])
    op.create_index('ix_defect_edit_requests_operation_id', 'defect_edit_requests', ['operation_id'])
    op.create_index('ix_defect_edit_requests_status', 'defect_edit_requests', ['status'])
    op.create_index('ix_defect_edit_requests_status_created', 'defect_edit_requests', ['status', 'created_at'])

    # ====================
    # STANDARD COSTS TABLE
    # ====================
    op.create_table(
        'standard_costs',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('item_name', sa.String(200), unique=True, nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('cost_per_unit', sa.Numeric(10, 4), nullable=False),
        sa.Column('currency', sa.String(3), server_default='USD', nullable=False),
        sa.Column('is_active', sa.Boolean, server_default='true', nullable=False),
        sa.Column('created_by_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('updated_by_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    )
    op.create_index('ix_standard_costs_item_name', 'standard_costs', ['item_name'])

    # ====================
    # NOTIFICATIONS TABLE
    # ====================
    op.create_table(
        'notifications',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('notification_type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('message', sa.Text, nullable=False),
        sa.Column('action_url', sa.String(500), nullable=True),
        sa.Column('entity_type', sa.String(50), nullable=True),
        sa.Column('entity_id', UUID(as_uuid=True), nullable=True),
        sa.Column('is_read', sa.Boolean, server_default='false', nullable=False),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_notification_type', 'notifications', ['notification_type'])
    op.create_index('ix_notifications_is_read', 'notifications', ['is_read'])
    op.create_index('ix_notifications_user_unread', 'notifications', ['user_id', 'is_read'])
    op.create_index('ix_notifications_user_type', 'notifications', ['user_id', 'notification_type'])

    # ====================
    # AUDIT LOGS TABLE
    # ====================
    op.create_table(
        'audit_logs',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('user_id', UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', UUID(as_uuid=True), nullable=True),
        sa.Column('old_values', JSONB, nullable=True),
        sa.Column('new_values', JSONB, nullable=True),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    )
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_entity_type', 'audit_logs', ['entity_type'])
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])


def downgrade():
    """Drop all P-Chart tables"""
    op.drop_table('audit_logs')
    op.drop_table('notifications')
    op.drop_table('standard_costs')
    op.drop_table('defect_edit_requests')
    op.drop_table('operation_defects')
    op.drop_table('master_defects')
    op.drop_table('operations')
    op.drop_table('production_orders')
    op.drop_table('operation_steps')
    op.drop_table('users')
