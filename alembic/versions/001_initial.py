"""Initial migration

Revision ID: 001
Revises: 
Create Date: 2024-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create tenants table
    op.create_table(
        'tenants',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('timezone', sa.String(50), default='Africa/Lagos'),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create users table
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('tenants.id')),
        sa.Column('email', sa.String(255), unique=True, nullable=False),
        sa.Column('hashed_password', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255)),
        sa.Column('phone', sa.String(20)),
        sa.Column(
            'role',
            sa.Enum('SUPER_ADMIN', 'RESTAURANT_ADMIN', 'STAFF_VIEWER', name='userrole'),
            default='STAFF_VIEWER',
        ),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('last_login', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )

    # Create restaurant_settings table
    op.create_table(
        'restaurant_settings',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('tenants.id'), unique=True, nullable=False),
        sa.Column('address', sa.Text()),
        sa.Column('city', sa.String(100)),
        sa.Column('phone', sa.String(20)),
        sa.Column('hours_json', postgresql.JSON(), default={}),
        sa.Column('prep_time_minutes', sa.Integer(), default=30),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create operating_states table
    op.create_table(
        'operating_states',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('tenants.id'), unique=True, nullable=False),
        sa.Column('is_open', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('auto_close_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('max_active_orders', sa.Integer(), nullable=False, server_default='10'),
        sa.Column('hours_open', sa.Boolean()),
        sa.Column('version', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create staff_contacts table
    op.create_table(
        'staff_contacts',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(20), nullable=False),
        sa.Column('role', sa.String(50)),
        sa.Column('notify_on_order', sa.Boolean(), default=True),
        sa.Column('notify_on_capacity', sa.Boolean(), default=True),
        sa.Column('notify_on_payment_failure', sa.Boolean(), default=True),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )

    # Create referrers table
    op.create_table(
        'referrers',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(20)),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('commission_type', sa.String(20), nullable=False, server_default='percentage'),
        sa.Column('commission_value', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create promo_codes table
    op.create_table(
        'promo_codes',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('code', sa.String(50), nullable=False),
        sa.Column('discount_type', sa.String(20), nullable=False, server_default='percentage'),
        sa.Column('discount_value', sa.Numeric(12, 2), nullable=False),
        sa.Column('max_discount_amount', sa.Numeric(12, 2)),
        sa.Column('min_order_value', sa.Numeric(12, 2)),
        sa.Column('used_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_uses', sa.Integer()),
        sa.Column('expires_at', sa.DateTime()),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('referrer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('referrers.id')),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.UniqueConstraint('tenant_id', 'code', name='uq_promo_codes_tenant_code'),
    )

    # Create couriers table
    op.create_table(
        'couriers',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(20), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='offline'),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('vehicle_id', sa.String(100)),
        sa.Column('current_latitude', sa.Float()),
        sa.Column('current_longitude', sa.Float()),
        sa.Column('location_updated_at', sa.DateTime()),
        sa.Column('cod_balance', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create orders table
    op.create_table(
        'orders',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('order_number', sa.String(32), nullable=False),
        sa.Column('customer_name', sa.String(255), nullable=False),
        sa.Column('customer_phone', sa.String(20), nullable=False),
        sa.Column('customer_email', sa.String(255)),
        sa.Column('order_type', sa.String(20), default='delivery'),
        sa.Column('delivery_address', sa.Text()),
        sa.Column('delivery_instructions', sa.Text()),
        sa.Column('items_json', postgresql.JSON(), nullable=False),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('delivery_fee', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('tax', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('discount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('total', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('promo_code', sa.String(50)),
        sa.Column('status', sa.String(30), nullable=False, server_default='pending'),
        sa.Column('scheduled_for', sa.DateTime()),
        sa.Column('payment_method', sa.String(20), nullable=False, server_default='online'),
        sa.Column('payment_status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('payment_reference', sa.String(100)),
        sa.Column('payment_data', postgresql.JSON()),
        sa.Column('confirmed_at', sa.DateTime()),
        sa.Column('assigned_courier_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('couriers.id')),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
    )

    # Create customer_attributions table
    op.create_table(
        'customer_attributions',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('customer_phone', sa.String(20), nullable=False),
        sa.Column('referrer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('referrers.id'), nullable=False),
        sa.Column('first_promo_code', sa.String(50)),
        sa.Column('first_order_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('orders.id')),
        sa.Column('first_order_total', sa.Numeric(12, 2)),
        sa.Column('first_order_at', sa.DateTime()),
        sa.Column('total_orders', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_spent', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), default=sa.func.now(), onupdate=sa.func.now()),
        sa.UniqueConstraint('tenant_id', 'customer_phone', name='uq_customer_attributions_phone'),
    )

    # Create commission_records table
    op.create_table(
        'commission_records',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('orders.id'), unique=True, nullable=False),
        sa.Column('referrer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('referrers.id')),
        sa.Column('promo_code', sa.String(50)),
        sa.Column('customer_phone', sa.String(20), nullable=False),
        sa.Column('order_total', sa.Numeric(12, 2), nullable=False),
        sa.Column('commission_amount', sa.Numeric(12, 2), nullable=False, server_default='0'),
        sa.Column('is_first_order', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_new_customer', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )

    # Create delivery_assignments table
    op.create_table(
        'delivery_assignments',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('orders.id'), nullable=False),
        sa.Column('courier_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('couriers.id'), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('score', sa.Float()),
        sa.Column('assigned_at', sa.DateTime(), default=sa.func.now()),
        sa.Column('cod_collected', sa.Numeric(12, 2)),
        sa.Column('completed_at', sa.DateTime()),
    )

    # Create print_jobs table
    op.create_table(
        'print_jobs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('tenants.id'), nullable=False),
        sa.Column('order_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('orders.id'), unique=True, nullable=False),
        sa.Column('payload', postgresql.JSON(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_error', sa.Text()),
        sa.Column('processed_at', sa.DateTime()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )

    # Create audit_logs table
    op.create_table(
        'audit_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('tenant_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('tenants.id')),
        sa.Column('actor_id', postgresql.UUID(as_uuid=True)),
        sa.Column('actor_type', sa.String(50)),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('resource_type', sa.String(50)),
        sa.Column('resource_id', postgresql.UUID(as_uuid=True)),
        sa.Column('data_json', postgresql.JSON()),
        sa.Column('created_at', sa.DateTime(), default=sa.func.now()),
    )

    # Create indexes
    op.create_index('ix_orders_tenant_status', 'orders', ['tenant_id', 'status'])
    op.create_index('ix_orders_customer_phone', 'orders', ['tenant_id', 'customer_phone'])
    op.create_index('ix_couriers_tenant_status', 'couriers', ['tenant_id', 'status'])
    op.create_index('ix_delivery_assignments_courier', 'delivery_assignments', ['courier_id', 'status'])
    op.create_index('ix_print_jobs_status', 'print_jobs', ['status', 'created_at'])


def downgrade() -> None:
    op.drop_table('audit_logs')
    op.drop_table('print_jobs')
    op.drop_table('delivery_assignments')
    op.drop_table('commission_records')
    op.drop_table('customer_attributions')
    op.drop_table('orders')
    op.drop_table('couriers')
    op.drop_table('promo_codes')
    op.drop_table('referrers')
    op.drop_table('staff_contacts')
    op.drop_table('operating_states')
    op.drop_table('restaurant_settings')
    op.drop_table('users')
    op.drop_table('tenants')
    sa.Enum(name='userrole').drop(op.get_bind(), checkfirst=True)
