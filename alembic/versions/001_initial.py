"""Initial migration

Revision ID: 001_initial
Revises: 
Create Date: 2025-01-01 00:00:00.000000

"""
from datetime import datetime

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Quote requests table
    op.create_table(
        'quote_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('system_size_kwp', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('location_address', sa.Text(), nullable=False),
        sa.Column('service_area', sa.String(length=128), nullable=False),
        sa.Column('property_details', postgresql.JSONB(), nullable=True),
        sa.Column('electricity_consumption', postgresql.JSONB(), nullable=True),
        sa.Column('selected_contractors', postgresql.JSONB(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('cancelled_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_quote_requests_user_id', 'quote_requests', ['user_id'])
    op.create_index('ix_quote_requests_status', 'quote_requests', ['status'])

    # Contractor assignments table
    op.create_table(
        'contractor_quote_assignments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('request_id', sa.Integer(), nullable=False),
        sa.Column('contractor_id', sa.String(length=64), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='assigned'),
        sa.Column('assigned_by', sa.String(length=64), nullable=True),
        sa.Column('assigned_at', sa.DateTime(), nullable=False),
        sa.Column('viewed_at', sa.DateTime(), nullable=True),
        sa.Column('responded_at', sa.DateTime(), nullable=True),
        sa.Column('response_notes', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['request_id'], ['quote_requests.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('request_id', 'contractor_id', name='uq_assignment_request_contractor')
    )
    op.create_index(
        'ix_contractor_quote_assignments_contractor_id',
        'contractor_quote_assignments',
        ['contractor_id'],
    )

    # Contractor quotes table
    op.create_table(
        'contractor_quotes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('request_id', sa.Integer(), nullable=False),
        sa.Column('contractor_id', sa.String(length=64), nullable=False),
        sa.Column('base_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('price_per_kwp', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('overprice_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('total_user_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('commission_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('contractor_net_amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('platform_revenue', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('overprice_percent', sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column('commission_percent', sa.Numeric(precision=5, scale=2), nullable=False),
        sa.Column('system_specs', postgresql.JSONB(), nullable=True),
        sa.Column('panel_brand', sa.String(length=128), nullable=True),
        sa.Column('panel_model', sa.String(length=128), nullable=True),
        sa.Column('panel_quantity', sa.Integer(), nullable=True),
        sa.Column('inverter_brand', sa.String(length=128), nullable=True),
        sa.Column('inverter_model', sa.String(length=128), nullable=True),
        sa.Column('inverter_quantity', sa.Integer(), nullable=True),
        sa.Column('installation_timeline_days', sa.Integer(), nullable=False),
        sa.Column('warranty_terms', sa.Text(), nullable=True),
        sa.Column('maintenance_terms', sa.Text(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('admin_status', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('admin_notes', sa.Text(), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('reviewed_by', sa.String(length=64), nullable=True),
        sa.Column('reviewed_at', sa.DateTime(), nullable=True),
        sa.Column('is_selected', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('selected_at', sa.DateTime(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['request_id'], ['quote_requests.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('request_id', 'contractor_id', name='uq_quote_request_contractor')
    )
    op.create_index('ix_contractor_quotes_contractor_id', 'contractor_quotes', ['contractor_id'])
    op.create_index('ix_contractor_quotes_admin_status', 'contractor_quotes', ['admin_status'])

    # Quotation line items table
    op.create_table(
        'quotation_line_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('quotation_id', sa.Integer(), nullable=False),
        sa.Column('serial_number', sa.Integer(), nullable=False),
        sa.Column('item_name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('unit', sa.String(length=32), nullable=True),
        sa.Column('quantity', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('total_price', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('commission_amount', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('over_price_amount', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('user_price', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('vendor_net_price', sa.Numeric(precision=14, scale=2), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['quotation_id'], ['contractor_quotes.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('quotation_id', 'serial_number', name='uq_line_item_serial')
    )

    # Quote comparisons table
    op.create_table(
        'quote_comparisons',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('request_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('compared_quotes', postgresql.JSONB(), nullable=False),
        sa.Column('comparison_criteria', postgresql.JSONB(), nullable=True),
        sa.Column('views_count', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('last_viewed_at', sa.DateTime(), nullable=False),
        sa.Column('selected_quote_id', sa.Integer(), nullable=True),
        sa.Column('selection_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['request_id'], ['quote_requests.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['selected_quote_id'], ['contractor_quotes.id']),
        sa.UniqueConstraint('request_id', 'user_id', name='uq_comparison_request_user')
    )

    # Penalty rules table
    penalty_rules = op.create_table(
        'penalty_rules',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('rule_name', sa.String(length=128), nullable=False),
        sa.Column('penalty_type', sa.String(length=32), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('severity_level', sa.String(length=16), nullable=False),
        sa.Column('amount_calculation', sa.String(length=16), nullable=False),
        sa.Column('amount_value', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('maximum_amount', sa.Numeric(precision=12, scale=2), nullable=True),
        sa.Column('grace_period_hours', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_penalty_rules_penalty_type', 'penalty_rules', ['penalty_type'])

    # Penalty instances table
    op.create_table(
        'penalty_instances',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('contractor_id', sa.String(length=64), nullable=False),
        sa.Column('quote_id', sa.Integer(), nullable=False),
        sa.Column('rule_id', sa.Integer(), nullable=False),
        sa.Column('penalty_type', sa.String(length=32), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('applied_by', sa.String(length=64), nullable=False),
        sa.Column('applied_at', sa.DateTime(), nullable=True),
        sa.Column('evidence', postgresql.JSONB(), nullable=True),
        sa.Column('dispute_reason', sa.Text(), nullable=True),
        sa.Column('disputed_at', sa.DateTime(), nullable=True),
        sa.Column('resolution_notes', sa.Text(), nullable=True),
        sa.Column('debit_attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('last_debit_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['quote_id'], ['contractor_quotes.id']),
        sa.ForeignKeyConstraint(['rule_id'], ['penalty_rules.id'])
    )
    op.create_index('ix_penalty_instances_contractor_id', 'penalty_instances', ['contractor_id'])
    op.create_index('ix_penalty_instances_status', 'penalty_instances', ['status'])
    op.create_index(
        'uq_penalty_active_per_quote',
        'penalty_instances',
        ['contractor_id', 'quote_id', 'penalty_type'],
        unique=True,
        postgresql_where=sa.text("status NOT IN ('reversed', 'waived')"),
    )

    # Business config tables
    op.create_table(
        'business_config',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('config_key', sa.String(length=64), nullable=False),
        sa.Column('config_value', postgresql.JSONB(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('updated_by', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('config_key')
    )

    op.create_table(
        'business_config_history',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('config_key', sa.String(length=64), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('old_value', postgresql.JSONB(), nullable=True),
        sa.Column('new_value', postgresql.JSONB(), nullable=False),
        sa.Column('changed_by', sa.String(length=64), nullable=False),
        sa.Column('changed_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(
        'ix_business_config_history_config_key', 'business_config_history', ['config_key']
    )

    # Default penalty rules
    now = datetime.utcnow()
    op.bulk_insert(
        penalty_rules,
        [
            {
                'rule_name': 'Late installation (daily)',
                'penalty_type': 'late_installation',
                'description': 'Penalty for installations that exceed the agreed timeline',
                'severity_level': 'moderate',
                'amount_calculation': 'daily',
                'amount_value': 100.00,
                'maximum_amount': None,
                'grace_period_hours': 0,
                'is_active': True,
                'created_at': now,
                'updated_at': now,
            },
            {
                'rule_name': 'Late installation (major)',
                'penalty_type': 'late_installation',
                'description': 'Major penalty for severely delayed installations (over 14 days)',
                'severity_level': 'major',
                'amount_calculation': 'percentage',
                'amount_value': 5.00,
                'maximum_amount': 5000.00,
                'grace_period_hours': 0,
                'is_active': True,
                'created_at': now,
                'updated_at': now,
            },
            {
                'rule_name': 'Quality issue',
                'penalty_type': 'quality_issue',
                'description': 'Penalty for poor workmanship or component failures within warranty period',
                'severity_level': 'major',
                'amount_calculation': 'percentage',
                'amount_value': 10.00,
                'maximum_amount': 10000.00,
                'grace_period_hours': 0,
                'is_active': True,
                'created_at': now,
                'updated_at': now,
            },
            {
                'rule_name': 'Communication failure',
                'penalty_type': 'communication_failure',
                'description': 'Penalty for not responding to customer inquiries within 24 hours',
                'severity_level': 'minor',
                'amount_calculation': 'fixed',
                'amount_value': 250.00,
                'maximum_amount': None,
                'grace_period_hours': 0,
                'is_active': True,
                'created_at': now,
                'updated_at': now,
            },
            {
                'rule_name': 'Documentation issue',
                'penalty_type': 'documentation_issue',
                'description': 'Penalty for missing or incorrect installation documentation',
                'severity_level': 'moderate',
                'amount_calculation': 'fixed',
                'amount_value': 500.00,
                'maximum_amount': None,
                'grace_period_hours': 0,
                'is_active': True,
                'created_at': now,
                'updated_at': now,
            },
        ],
    )


def downgrade() -> None:
    op.drop_table('business_config_history')
    op.drop_table('business_config')
    op.drop_index('uq_penalty_active_per_quote', table_name='penalty_instances')
    op.drop_table('penalty_instances')
    op.drop_table('penalty_rules')
    op.drop_table('quote_comparisons')
    op.drop_table('quotation_line_items')
    op.drop_table('contractor_quotes')
    op.drop_table('contractor_quote_assignments')
    op.drop_table('quote_requests')
