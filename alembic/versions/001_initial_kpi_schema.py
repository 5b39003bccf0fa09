"""initial kpi schema

Revision ID: 001_initial_kpi_schema
Revises:
Create Date: 2025-01-15 09:00:00

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_initial_kpi_schema'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


PERIOD_STATUS = ('DRAFT', 'ACTIVE', 'LOCKED', 'ARCHIVED')
FORMULA_TYPE = ('POSITIVE', 'NEGATIVE', 'BINARY', 'STEPPED', 'CUSTOM')
SUBMISSION_STATUS = ('DRAFT', 'PENDING', 'APPROVED', 'REJECTED')
APPROVAL_STAGE = ('SELF_EVAL', 'MANAGER_REVIEW', 'SKIP_LEVEL', 'HR_CONFIRM', 'COMPLETED')
SNAPSHOT_EVENT = ('SUBMIT', 'APPROVE', 'REJECT', 'RETURN')


def _audit_columns():
    return [
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('deleted_by', sa.String(length=36), nullable=True),
        sa.Column('created_by', sa.String(length=36), nullable=True),
        sa.Column('updated_by', sa.String(length=36), nullable=True),
    ]


def _decimal(name, nullable=True):
    return sa.Column(name, sa.Numeric(precision=18, scale=4), nullable=nullable)


def upgrade() -> None:
    connection = op.get_bind()

    # Enum types, created once and reused by several tables
    period_status = postgresql.ENUM(*PERIOD_STATUS, name='period_status', create_type=False)
    formula_type = postgresql.ENUM(*FORMULA_TYPE, name='formula_type', create_type=False)
    submission_status = postgresql.ENUM(*SUBMISSION_STATUS, name='submission_status', create_type=False)
    approval_stage = postgresql.ENUM(*APPROVAL_STAGE, name='approval_stage', create_type=False)
    snapshot_event = postgresql.ENUM(*SNAPSHOT_EVENT, name='snapshot_event', create_type=False)
    for enum_type in (period_status, formula_type, submission_status, approval_stage, snapshot_event):
        enum_type.create(connection, checkfirst=True)

    op.create_table('assessment_periods',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('start_date', sa.DateTime(), nullable=False),
        sa.Column('end_date', sa.DateTime(), nullable=False),
        sa.Column('lock_date', sa.DateTime(), nullable=True),
        sa.Column('status', period_status, nullable=False),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_assessment_periods_start_date'), 'assessment_periods', ['start_date'], unique=False)
    op.create_index(op.f('ix_assessment_periods_end_date'), 'assessment_periods', ['end_date'], unique=False)
    op.create_index(op.f('ix_assessment_periods_status'), 'assessment_periods', ['status'], unique=False)

    op.create_table('kpi_definitions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('unit', sa.String(length=30), nullable=True),
        sa.Column('formula_type', formula_type, nullable=False),
        _decimal('score_cap', nullable=False),
        _decimal('score_floor', nullable=False),
        sa.Column('step_rules', sa.JSON(), nullable=True),
        sa.Column('custom_formula', sa.String(length=100), nullable=True),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_kpi_definitions_code'), 'kpi_definitions', ['code'], unique=True)

    op.create_table('kpi_assignments',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('period_id', sa.String(length=36), nullable=False),
        sa.Column('kpi_definition_id', sa.String(length=36), nullable=False),
        sa.Column('employee_id', sa.String(length=36), nullable=True),
        sa.Column('department_id', sa.String(length=36), nullable=True),
        _decimal('target_value', nullable=False),
        _decimal('challenge_value'),
        _decimal('weight', nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['period_id'], ['assessment_periods.id'], ),
        sa.ForeignKeyConstraint(['kpi_definition_id'], ['kpi_definitions.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_kpi_assignments_period_id'), 'kpi_assignments', ['period_id'], unique=False)
    op.create_index(op.f('ix_kpi_assignments_kpi_definition_id'), 'kpi_assignments', ['kpi_definition_id'], unique=False)
    op.create_index(op.f('ix_kpi_assignments_employee_id'), 'kpi_assignments', ['employee_id'], unique=False)
    op.create_index(op.f('ix_kpi_assignments_department_id'), 'kpi_assignments', ['department_id'], unique=False)

    op.create_table('submissions',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('period_id', sa.String(length=36), nullable=False),
        sa.Column('employee_id', sa.String(length=36), nullable=True),
        sa.Column('department_id', sa.String(length=36), nullable=True),
        sa.Column('data_source', sa.String(length=50), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('previous_submission_id', sa.String(length=36), nullable=True),
        sa.Column('status', submission_status, nullable=False),
        sa.Column('approval_stage', approval_stage, nullable=True),
        sa.Column('reject_reason', sa.String(), nullable=True),
        sa.Column('submitted_by', sa.String(length=36), nullable=True),
        sa.Column('submitted_at', sa.DateTime(), nullable=True),
        sa.Column('approved_by', sa.String(length=36), nullable=True),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        _decimal('total_score'),
        _decimal('weight_sum'),
        sa.Column('revision', sa.Integer(), nullable=False, server_default='0'),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['period_id'], ['assessment_periods.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('previous_submission_id')
    )
    op.create_index(op.f('ix_submissions_period_id'), 'submissions', ['period_id'], unique=False)
    op.create_index(op.f('ix_submissions_employee_id'), 'submissions', ['employee_id'], unique=False)
    op.create_index(op.f('ix_submissions_department_id'), 'submissions', ['department_id'], unique=False)
    op.create_index(op.f('ix_submissions_status'), 'submissions', ['status'], unique=False)

    op.create_table('data_entries',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('submission_id', sa.String(length=36), nullable=False),
        sa.Column('assignment_id', sa.String(length=36), nullable=False),
        sa.Column('employee_id', sa.String(length=36), nullable=False),
        _decimal('actual_value'),
        sa.Column('remark', sa.String(), nullable=True),
        *_audit_columns(),
        sa.ForeignKeyConstraint(['submission_id'], ['submissions.id'], ),
        sa.ForeignKeyConstraint(['assignment_id'], ['kpi_assignments.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('submission_id', 'assignment_id', 'employee_id', name='uq_data_entry_scope')
    )
    op.create_index(op.f('ix_data_entries_submission_id'), 'data_entries', ['submission_id'], unique=False)
    op.create_index(op.f('ix_data_entries_assignment_id'), 'data_entries', ['assignment_id'], unique=False)
    op.create_index(op.f('ix_data_entries_employee_id'), 'data_entries', ['employee_id'], unique=False)

    op.create_table('score_results',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('submission_id', sa.String(length=36), nullable=False),
        sa.Column('assignment_id', sa.String(length=36), nullable=False),
        sa.Column('employee_id', sa.String(length=36), nullable=False),
        _decimal('raw_score', nullable=False),
        _decimal('weighted_contribution', nullable=False),
        sa.Column('computed_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['submission_id'], ['submissions.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_score_results_submission_id'), 'score_results', ['submission_id'], unique=False)
    op.create_index(op.f('ix_score_results_employee_id'), 'score_results', ['employee_id'], unique=False)

    op.create_table('score_snapshots',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('submission_id', sa.String(length=36), nullable=False),
        sa.Column('event', snapshot_event, nullable=False),
        sa.Column('status', submission_status, nullable=False),
        sa.Column('approval_stage', approval_stage, nullable=True),
        sa.Column('revision', sa.Integer(), nullable=False),
        _decimal('total_score', nullable=False),
        _decimal('weight_sum', nullable=False),
        sa.Column('grade', sa.String(length=2), nullable=True),
        sa.Column('employee_scores', sa.JSON(), nullable=True),
        sa.Column('actor_id', sa.String(length=36), nullable=True),
        sa.Column('taken_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['submission_id'], ['submissions.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_score_snapshots_submission_id'), 'score_snapshots', ['submission_id'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_score_snapshots_submission_id'), table_name='score_snapshots')
    op.drop_table('score_snapshots')

    op.drop_index(op.f('ix_score_results_employee_id'), table_name='score_results')
    op.drop_index(op.f('ix_score_results_submission_id'), table_name='score_results')
    op.drop_table('score_results')

    op.drop_index(op.f('ix_data_entries_employee_id'), table_name='data_entries')
    op.drop_index(op.f('ix_data_entries_assignment_id'), table_name='data_entries')
    op.drop_index(op.f('ix_data_entries_submission_id'), table_name='data_entries')
    op.drop_table('data_entries')

    op.drop_index(op.f('ix_submissions_status'), table_name='submissions')
    op.drop_index(op.f('ix_submissions_department_id'), table_name='submissions')
    op.drop_index(op.f('ix_submissions_employee_id'), table_name='submissions')
    op.drop_index(op.f('ix_submissions_period_id'), table_name='submissions')
    op.drop_table('submissions')

    op.drop_index(op.f('ix_kpi_assignments_department_id'), table_name='kpi_assignments')
    op.drop_index(op.f('ix_kpi_assignments_employee_id'), table_name='kpi_assignments')
    op.drop_index(op.f('ix_kpi_assignments_kpi_definition_id'), table_name='kpi_assignments')
    op.drop_index(op.f('ix_kpi_assignments_period_id'), table_name='kpi_assignments')
    op.drop_table('kpi_assignments')

    op.drop_index(op.f('ix_kpi_definitions_code'), table_name='kpi_definitions')
    op.drop_table('kpi_definitions')

    op.drop_index(op.f('ix_assessment_periods_status'), table_name='assessment_periods')
    op.drop_index(op.f('ix_assessment_periods_end_date'), table_name='assessment_periods')
    op.drop_index(op.f('ix_assessment_periods_start_date'), table_name='assessment_periods')
    op.drop_table('assessment_periods')

    # Drop enum types
    bind = op.get_bind()
    for name, values in (
        ('snapshot_event', SNAPSHOT_EVENT),
        ('approval_stage', APPROVAL_STAGE),
        ('submission_status', SUBMISSION_STATUS),
        ('formula_type', FORMULA_TYPE),
        ('period_status', PERIOD_STATUS),
    ):
        postgresql.ENUM(*values, name=name).drop(bind, checkfirst=True)
