"""Baseline migration - tenants' practice and scheduling tables

Revision ID: 0001_scheduling_baseline
Revises:
Create Date: 2026-10-19

Creates identity, practice and scheduling tables. On PostgreSQL also adds the
exclusion constraint that keeps SCHEDULED/COMPLETED appointments of one
psychologist from overlapping.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0001_scheduling_baseline'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

OVERLAP_CONSTRAINT_NAME = 'ex_appointments_no_overlap'


def _is_postgresql() -> bool:
    return op.get_bind().dialect.name == 'postgresql'


def _timestamp(name: str, **kwargs) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=False, **kwargs)


def upgrade() -> None:
    """Create scheduling tables."""

    # ==========================================================================
    # Identity (global)
    # ==========================================================================
    op.create_table(
        'accounts',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('display_name', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        _timestamp('created_at', server_default=sa.func.now()),
    )

    # ==========================================================================
    # Practice
    # ==========================================================================
    op.create_table(
        'clinics',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        _timestamp('created_at', server_default=sa.func.now()),
    )
    op.create_index('idx_clinics_tenant', 'clinics', ['tenant_id'])

    op.create_table(
        'psychologists',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column('account_id', sa.Uuid(), sa.ForeignKey('accounts.id', ondelete='SET NULL')),
        sa.Column('clinic_id', sa.Uuid(), sa.ForeignKey('clinics.id', ondelete='SET NULL')),
        sa.Column('name', sa.String(255), nullable=False),
        _timestamp('created_at', server_default=sa.func.now()),
    )
    op.create_index('idx_psychologists_tenant', 'psychologists', ['tenant_id'])

    op.create_table(
        'patients',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column('account_id', sa.Uuid(), sa.ForeignKey('accounts.id', ondelete='SET NULL')),
        sa.Column('psychologist_id', sa.Uuid(), sa.ForeignKey('psychologists.id', ondelete='SET NULL')),
        sa.Column('clinic_id', sa.Uuid(), sa.ForeignKey('clinics.id', ondelete='SET NULL')),
        sa.Column('name', sa.String(255), nullable=False),
        _timestamp('created_at', server_default=sa.func.now()),
    )
    op.create_index('idx_patients_tenant', 'patients', ['tenant_id'])

    # ==========================================================================
    # Scheduling inputs
    # ==========================================================================
    op.create_table(
        'available_slots',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column(
            'psychologist_id', sa.Uuid(),
            sa.ForeignKey('psychologists.id', ondelete='CASCADE'), nullable=False,
        ),
        _timestamp('start_time'),
        _timestamp('end_time'),
        sa.Column('is_available', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.CheckConstraint('end_time > start_time', name='ck_available_slots_range'),
    )
    op.create_index(
        'idx_available_slots_lookup', 'available_slots',
        ['tenant_id', 'psychologist_id', 'start_time'],
    )

    op.create_table(
        'holidays',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column('date', sa.Date(), nullable=False),
        sa.Column('description', sa.String(255), nullable=False, server_default=''),
        sa.UniqueConstraint('tenant_id', 'date', name='uq_holidays_tenant_date'),
    )

    # ==========================================================================
    # Appointments
    # ==========================================================================
    op.create_table(
        'appointments',
        sa.Column('id', sa.Uuid(), primary_key=True),
        sa.Column('tenant_id', sa.String(64), nullable=False),
        sa.Column(
            'patient_id', sa.Uuid(),
            sa.ForeignKey('patients.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column(
            'psychologist_id', sa.Uuid(),
            sa.ForeignKey('psychologists.id', ondelete='CASCADE'), nullable=False,
        ),
        _timestamp('date_time'),
        sa.Column('duration', sa.Integer(), nullable=False),
        _timestamp('end_time'),
        sa.Column('status', sa.String(32), nullable=False, server_default='SCHEDULED'),
        sa.Column('value', sa.Numeric(10, 2), nullable=False, server_default='0'),
        sa.Column('notes', sa.Text()),
        _timestamp('created_at', server_default=sa.func.now()),
        _timestamp('updated_at', server_default=sa.func.now()),
        sa.CheckConstraint('duration > 0', name='ck_appointments_duration'),
        sa.CheckConstraint('end_time > date_time', name='ck_appointments_range'),
    )
    op.create_index(
        'idx_appointments_psychologist_time', 'appointments',
        ['tenant_id', 'psychologist_id', 'date_time'],
    )
    op.create_index('idx_appointments_patient', 'appointments', ['tenant_id', 'patient_id'])
    op.create_index('idx_appointments_status', 'appointments', ['tenant_id', 'status'])

    if _is_postgresql():
        op.execute('CREATE EXTENSION IF NOT EXISTS btree_gist')
        op.execute(f'''
            ALTER TABLE appointments
            ADD CONSTRAINT {OVERLAP_CONSTRAINT_NAME}
            EXCLUDE USING gist (
                tenant_id WITH =,
                psychologist_id WITH =,
                tstzrange(date_time, end_time, '[)') WITH &&
            )
            WHERE (status IN ('SCHEDULED', 'COMPLETED'))
        ''')


def downgrade() -> None:
    """Drop scheduling tables."""
    op.drop_table('appointments')
    op.drop_table('holidays')
    op.drop_table('available_slots')
    op.drop_table('patients')
    op.drop_table('psychologists')
    op.drop_table('clinics')
    op.drop_table('accounts')
