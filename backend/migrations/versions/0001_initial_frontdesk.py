"""initial front desk tables

Revision ID: 0001_initial_frontdesk
Revises:
Create Date: 2026-10-19
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_initial_frontdesk'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('repair_tickets',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('ticket_id', sa.String(length=16), nullable=False),
        sa.Column('customer_name', sa.String(length=120), nullable=False),
        sa.Column('customer_mobile', sa.String(length=10), nullable=False),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('customer_address', sa.String(length=255), nullable=True),
        sa.Column('device_brand', sa.String(length=80), nullable=False),
        sa.Column('device_model', sa.String(length=80), nullable=False),
        sa.Column('device_problem', sa.Text(), nullable=False),
        sa.Column('priority', sa.String(length=40), nullable=False, server_default='Normal'),
        sa.Column('repair_type', sa.String(length=40), nullable=True),
        sa.Column('estimated_cost', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('final_amount', sa.Numeric(10, 2), nullable=True),
        sa.Column('service_cost', sa.Numeric(10, 2), nullable=True),
        sa.Column('total_parts_cost', sa.Numeric(10, 2), nullable=True),
        sa.Column('parts_used', sa.JSON(), nullable=True),
        sa.Column('payment_status', sa.String(length=40), nullable=False, server_default='unpaid'),
        sa.Column('payment_method', sa.String(length=40), nullable=True),
        sa.Column('split_payments', sa.JSON(), nullable=True),
        sa.Column('payment_notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=40), nullable=False, server_default='Repair Not Started'),
        sa.Column('unrepairable', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('handover_completed', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('notification_shown', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('return_reason', sa.String(length=255), nullable=True),
        sa.Column('return_details', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('online_paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('payment_collected_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('handover_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('return_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('customer_pickup_date', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_repair_tickets_ticket_id', 'repair_tickets', ['ticket_id'], unique=True)
    op.create_index('ix_repair_tickets_customer_name', 'repair_tickets', ['customer_name'])
    op.create_index('ix_repair_tickets_customer_mobile', 'repair_tickets', ['customer_mobile'])
    op.create_index('ix_repair_tickets_payment_status', 'repair_tickets', ['payment_status'])
    op.create_index('ix_repair_tickets_status', 'repair_tickets', ['status'])
    op.create_index('ix_repair_tickets_created_at', 'repair_tickets', ['created_at'])
    op.create_index('ix_repair_tickets_updated_at', 'repair_tickets', ['updated_at'])
    op.create_index('ix_repair_tickets_payment_collected_date', 'repair_tickets', ['payment_collected_date'])
    op.create_index('ix_repair_tickets_return_date', 'repair_tickets', ['return_date'])

    # ledger rows carry no FK so they survive an admin delete
    op.create_table('payment_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('ticket_pk', sa.Integer(), nullable=True),
        sa.Column('ticket_id', sa.String(length=16), nullable=False),
        sa.Column('customer_name', sa.String(length=120), nullable=True),
        sa.Column('device_info', sa.String(length=170), nullable=True),
        sa.Column('amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('method', sa.String(length=16), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('split_total', sa.Numeric(10, 2), nullable=True),
        sa.Column('split_count', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_payment_logs_ticket_pk', 'payment_logs', ['ticket_pk'])
    op.create_index('ix_payment_logs_ticket_id', 'payment_logs', ['ticket_id'])
    op.create_index('ix_payment_logs_timestamp', 'payment_logs', ['timestamp'])

    op.create_table('whatsapp_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('ticket_pk', sa.Integer(), nullable=True),
        sa.Column('ticket_id', sa.String(length=16), nullable=False),
        sa.Column('customer_name', sa.String(length=120), nullable=True),
        sa.Column('customer_mobile', sa.String(length=16), nullable=True),
        sa.Column('channel', sa.String(length=16), nullable=False, server_default='whatsapp'),
        sa.Column('message_type', sa.String(length=16), nullable=False),
        sa.Column('language', sa.String(length=16), nullable=False),
        sa.Column('sent_by', sa.String(length=64), nullable=False, server_default='Front Desk'),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_whatsapp_logs_ticket_pk', 'whatsapp_logs', ['ticket_pk'])
    op.create_index('ix_whatsapp_logs_ticket_id', 'whatsapp_logs', ['ticket_id'])
    op.create_index('ix_whatsapp_logs_timestamp', 'whatsapp_logs', ['timestamp'])

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor', sa.String(length=64), nullable=False, server_default='Front Desk'),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('entity', sa.String(length=64), nullable=True),
        sa.Column('entity_id', sa.String(length=64), nullable=True),
        sa.Column('meta', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_entity_id', 'audit_logs', ['entity_id'])


def downgrade():
    op.drop_table('audit_logs')
    op.drop_table('whatsapp_logs')
    op.drop_table('payment_logs')
    op.drop_table('repair_tickets')
