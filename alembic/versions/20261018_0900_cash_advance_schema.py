"""Cash advance schema - users, employees, cash advances, payments, audit logs

Revision ID: 20261018_0900_cash_advance_schema
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '20261018_0900_cash_advance_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


SUMMARY_VIEW_SQL = """
CREATE OR REPLACE VIEW cash_advance_summary AS
SELECT
    ca.id,
    e.first_name || ' ' || e.last_name AS employee_name,
    ca.amount,
    ca.status,
    ca.created_at,
    COALESCE(SUM(p.amount), 0) AS total_paid,
    ca.amount - COALESCE(SUM(p.amount), 0) AS remaining_balance
FROM cash_advances ca
JOIN employees e ON ca.employee_id = e.id
LEFT JOIN payments p ON ca.id = p.cash_advance_id
GROUP BY ca.id, e.first_name, e.last_name
"""


def upgrade() -> None:
    # =====================================================
    # USERS
    # =====================================================
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('username', sa.String(50), nullable=False),
        sa.Column('password_hash', sa.Text(), nullable=False),
        sa.Column('email', sa.String(100), nullable=False),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('access_level', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('last_login', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default='true'),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
        sa.UniqueConstraint('username', name='uq_users_username'),
        sa.UniqueConstraint('email', name='uq_users_email'),
        sa.CheckConstraint("role IN ('ADMIN', 'SUPERVISOR', 'EMPLOYEE')", name='ck_users_user_role'),
    )

    # =====================================================
    # EMPLOYEES
    # =====================================================
    op.create_table(
        'employees',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('first_name', sa.String(50), nullable=False),
        sa.Column('last_name', sa.String(50), nullable=False),
        sa.Column('department', sa.String(100), nullable=True),
        sa.Column('supervisor_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('hire_date', sa.Date(), nullable=False),
        sa.Column('phone_number', sa.String(20), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('position', sa.String(100), nullable=True),
        sa.Column('salary_rate', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_employees'),
        sa.UniqueConstraint('user_id', name='uq_employees_user_id'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_employees_user_id_users'),
        sa.ForeignKeyConstraint(
            ['supervisor_id'], ['employees.id'],
            name='fk_employees_supervisor_id_employees',
            ondelete='SET NULL',
        ),
    )
    op.create_index('idx_employees_supervisor', 'employees', ['supervisor_id'])

    # =====================================================
    # CASH ADVANCES
    # =====================================================
    op.create_table(
        'cash_advances',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('employee_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('purpose', sa.Text(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='PENDING'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('approved_by', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('rejection_reason', sa.Text(), nullable=True),
        sa.Column('payment_date', sa.Date(), nullable=True),
        sa.Column('installment_period', sa.Integer(), nullable=True,
                  comment='Number of payroll cycles for deduction'),
        sa.Column('monthly_deduction', sa.Numeric(precision=10, scale=2), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_cash_advances'),
        sa.ForeignKeyConstraint(['employee_id'], ['employees.id'], name='fk_cash_advances_employee_id_employees'),
        sa.ForeignKeyConstraint(['approved_by'], ['users.id'], name='fk_cash_advances_approved_by_users'),
        sa.CheckConstraint(
            "status IN ('PENDING', 'APPROVED', 'REJECTED', 'PAID')",
            name='ck_cash_advances_cash_advance_status',
        ),
        sa.CheckConstraint('amount > 0', name='ck_cash_advances_positive_amount'),
        sa.CheckConstraint(
            '(approved_by IS NULL) = (approved_at IS NULL)',
            name='ck_cash_advances_approval_pair',
        ),
        sa.CheckConstraint(
            "status = 'PENDING' OR approved_by IS NOT NULL",
            name='ck_cash_advances_decided_has_approver',
        ),
    )
    op.create_index('idx_cash_advances_employee', 'cash_advances', ['employee_id'])
    op.create_index('idx_cash_advances_status', 'cash_advances', ['status'])

    # =====================================================
    # PAYMENTS
    # =====================================================
    op.create_table(
        'payments',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('cash_advance_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('payment_date', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('payment_type', sa.String(20), nullable=False),
        sa.Column('reference_number', sa.String(50), nullable=True),
        sa.Column('recorded_by', postgresql.UUID(as_uuid=True), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_payments'),
        sa.ForeignKeyConstraint(
            ['cash_advance_id'], ['cash_advances.id'],
            name='fk_payments_cash_advance_id_cash_advances',
        ),
        sa.ForeignKeyConstraint(['recorded_by'], ['users.id'], name='fk_payments_recorded_by_users'),
        sa.CheckConstraint(
            "payment_type IN ('SALARY_DEDUCTION', 'CASH', 'BANK_TRANSFER')",
            name='ck_payments_payment_type',
        ),
        sa.CheckConstraint('amount > 0', name='ck_payments_positive_amount'),
    )
    op.create_index('idx_payments_cash_advance', 'payments', ['cash_advance_id'])

    # =====================================================
    # AUDIT LOGS
    # =====================================================
    op.create_table(
        'audit_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('entity_type', sa.String(50), nullable=False,
                  comment='Table name of the audited entity'),
        sa.Column('entity_id', postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column('old_values', postgresql.JSONB(), nullable=True,
                  comment='Full prior row (UPDATE/DELETE)'),
        sa.Column('new_values', postgresql.JSONB(), nullable=True,
                  comment='Full new row (INSERT/UPDATE)'),
        sa.Column('ip_address', sa.String(45), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id', name='pk_audit_logs'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], name='fk_audit_logs_user_id_users'),
        sa.CheckConstraint(
            "action IN ('INSERT', 'UPDATE', 'DELETE')",
            name='ck_audit_logs_audit_action',
        ),
    )
    op.create_index('idx_audit_logs_entity', 'audit_logs', ['entity_type', 'entity_id'])

    # =====================================================
    # SUMMARY VIEW
    # =====================================================
    op.execute(SUMMARY_VIEW_SQL)


def downgrade() -> None:
    op.execute('DROP VIEW IF EXISTS cash_advance_summary')

    op.drop_index('idx_audit_logs_entity', table_name='audit_logs')
    op.drop_table('audit_logs')

    op.drop_index('idx_payments_cash_advance', table_name='payments')
    op.drop_table('payments')

    op.drop_index('idx_cash_advances_status', table_name='cash_advances')
    op.drop_index('idx_cash_advances_employee', table_name='cash_advances')
    op.drop_table('cash_advances')

    op.drop_index('idx_employees_supervisor', table_name='employees')
    op.drop_table('employees')

    op.drop_table('users')
