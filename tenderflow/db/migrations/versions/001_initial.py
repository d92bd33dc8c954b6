"""initial procurement schema

Revision ID: 001_initial
Revises:
Create Date: 2026-10-19

Creates users, RFx with criteria and committee, supplier bids with reviews,
contracts and the audit log. Status columns are VARCHAR with CHECK
constraints rather than native enum types.
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial'
down_revision = None
branch_labels = None
depends_on = None


def _status(*values, name):
    return sa.Enum(*values, name=name, native_enum=False, length=32, create_constraint=True)


def upgrade() -> None:
    userrole = _status('admin', 'procurement', 'supplier', name='userrole')
    rfxstatus = _status('Draft', 'Published', 'Closed', name='rfxstatus')
    bidstatus = _status(
        'Pending Review', 'Under Review', 'Recommended', 'Approved', 'Rejected', 'Needs Clarification',
        name='bidstatus',
    )
    contractstatus = _status('Draft', 'Active', name='contractstatus')
    criteriontype = _status('technical', 'commercial', name='criteriontype')

    # Users
    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255)),
        sa.Column('role', userrole),
        sa.Column('is_active', sa.Boolean(), default=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # Audit log
    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(100), nullable=False),
        sa.Column('entity_type', sa.String(100)),
        sa.Column('entity_id', sa.Integer()),
        sa.Column('details', sa.JSON()),
    )
    op.create_index('ix_audit_logs_id', 'audit_logs', ['id'])
    op.create_index('ix_audit_logs_timestamp', 'audit_logs', ['timestamp'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_user_id', 'audit_logs', ['user_id'])
    op.create_index('ix_audit_logs_entity_type', 'audit_logs', ['entity_type'])
    op.create_index('ix_audit_logs_entity', 'audit_logs', ['entity_type', 'entity_id'])

    # RFx
    op.create_table('rfx',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('reference_number', sa.String(50), nullable=False),
        sa.Column('rfx_type', sa.String(50)),
        sa.Column('category', sa.String(100)),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('department', sa.String(255)),
        sa.Column('description', sa.Text()),
        sa.Column('estimated_budget', sa.Numeric(18, 2)),
        sa.Column('currency', sa.String(10), nullable=False),
        sa.Column('hide_budget', sa.Boolean(), default=False),
        sa.Column('publication_date', sa.DateTime(timezone=True)),
        sa.Column('submission_deadline', sa.DateTime(timezone=True)),
        sa.Column('closing_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('priority', sa.String(50)),
        sa.Column('tender_bond_required', sa.Boolean(), default=False),
        sa.Column('contact_person', sa.String(255)),
        sa.Column('contact_email', sa.String(255)),
        sa.Column('contact_phone', sa.String(50)),
        sa.Column('scope', sa.Text()),
        sa.Column('technical_specification', sa.Text()),
        sa.Column('deliverables', sa.Text()),
        sa.Column('timeline', sa.Text()),
        sa.Column('required_documents', sa.Text()),
        sa.Column('minimum_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('evaluation_notes', sa.Text()),
        sa.Column('status', rfxstatus, nullable=False, server_default='Draft'),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('last_modified', sa.DateTime(timezone=True)),
        sa.UniqueConstraint('reference_number', name='uq_rfx_reference_number'),
    )
    op.create_index('ix_rfx_id', 'rfx', ['id'])
    op.create_index('ix_rfx_status', 'rfx', ['status'])
    op.create_index('ix_rfx_created_at', 'rfx', ['created_at'])

    op.create_table('rfx_committee_members',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('rfx_id', sa.Integer(), sa.ForeignKey('rfx.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('is_approved', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('approved_at', sa.DateTime(timezone=True)),
        sa.UniqueConstraint('rfx_id', 'user_id', name='uq_rfx_committee_member'),
    )
    op.create_index('ix_rfx_committee_members_id', 'rfx_committee_members', ['id'])
    op.create_index('ix_rfx_committee_members_rfx_id', 'rfx_committee_members', ['rfx_id'])

    op.create_table('rfx_evaluation_criteria',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('rfx_id', sa.Integer(), sa.ForeignKey('rfx.id', ondelete='CASCADE'), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('weight', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('description', sa.Text()),
        sa.Column('type', criteriontype, nullable=False),
    )
    op.create_index('ix_rfx_evaluation_criteria_id', 'rfx_evaluation_criteria', ['id'])
    op.create_index('ix_rfx_evaluation_criteria_rfx_id', 'rfx_evaluation_criteria', ['rfx_id'])

    # Bids
    op.create_table('supplier_bids',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('rfx_id', sa.Integer(), sa.ForeignKey('rfx.id'), nullable=False),
        sa.Column('submitted_by_user_id', sa.Integer(), nullable=False),
        sa.Column('bid_amount', sa.Numeric(18, 2), nullable=False),
        sa.Column('currency', sa.String(10), nullable=False),
        sa.Column('expected_delivery_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('proposal_summary', sa.Text(), nullable=False),
        sa.Column('notes', sa.Text()),
        sa.Column('documents_json', sa.Text(), nullable=False, server_default='[]'),
        sa.Column('inputs_json', sa.Text(), nullable=False, server_default='[]'),
        sa.Column('submitted_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('evaluation_status', bidstatus, nullable=False, server_default='Pending Review'),
        sa.Column('evaluation_notes', sa.Text()),
        sa.Column('evaluated_at', sa.DateTime(timezone=True)),
        sa.Column('evaluated_by_user_id', sa.Integer(), nullable=True),
    )
    op.create_index('ix_supplier_bids_id', 'supplier_bids', ['id'])
    op.create_index('ix_supplier_bids_rfx_id', 'supplier_bids', ['rfx_id'])
    op.create_index('ix_supplier_bids_submitted_by_user_id', 'supplier_bids', ['submitted_by_user_id'])

    op.create_table('bid_reviews',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('bid_id', sa.Integer(), sa.ForeignKey('supplier_bids.id', ondelete='CASCADE'), nullable=False),
        sa.Column('reviewer_user_id', sa.Integer(), nullable=False),
        sa.Column('status', bidstatus, nullable=False),
        sa.Column('notes', sa.Text()),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('bid_id', 'reviewer_user_id', name='uq_bid_review_bid_reviewer'),
    )
    op.create_index('ix_bid_reviews_id', 'bid_reviews', ['id'])
    op.create_index('ix_bid_reviews_bid_id', 'bid_reviews', ['bid_id'])

    # Contracts
    op.create_table('contracts',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('bid_id', sa.Integer(), sa.ForeignKey('supplier_bids.id'), nullable=True),
        sa.Column('rfx_id', sa.Integer(), sa.ForeignKey('rfx.id'), nullable=True),
        sa.Column('title', sa.String(500), nullable=False),
        sa.Column('supplier_name', sa.String(255), nullable=False),
        sa.Column('supplier_user_id', sa.Integer(), nullable=False),
        sa.Column('contract_value', sa.Numeric(18, 2), nullable=False),
        sa.Column('currency', sa.String(10), nullable=False),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('status', contractstatus, nullable=False, server_default='Draft'),
        sa.Column('supplier_signature', sa.Text()),
        sa.Column('supplier_signed_at', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('bid_id', name='uq_contract_bid_id'),
    )
    op.create_index('ix_contracts_id', 'contracts', ['id'])
    op.create_index('ix_contracts_rfx_id', 'contracts', ['rfx_id'])
    op.create_index('ix_contracts_supplier_user_id', 'contracts', ['supplier_user_id'])


def downgrade() -> None:
    op.drop_table('contracts')
    op.drop_table('bid_reviews')
    op.drop_table('supplier_bids')
    op.drop_table('rfx_evaluation_criteria')
    op.drop_table('rfx_committee_members')
    op.drop_table('rfx')
    op.drop_table('audit_logs')
    op.drop_table('users')
