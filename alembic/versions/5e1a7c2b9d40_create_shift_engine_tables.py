"""create_shift_engine_tables

Revision ID: 5e1a7c2b9d40
Revises:
Create Date: 2026-10-18 09:00:00.000000

시설/근무자 미러 테이블과 시프트 템플릿, 시프트 인스턴스, 시프트 배정 테이블 생성.
Create the facility/worker mirror tables plus shift_templates,
shift_instances and shift_assignments.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import JSONB, UUID


# revision identifiers, used by Alembic.
revision: str = '5e1a7c2b9d40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # facilities / workers — 외부 시스템 소유, 엔진은 읽기만 함
    # Read-only mirrors owned by the facility and user systems
    op.create_table(
        'facilities',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_table(
        'workers',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('specialty', sa.String(100), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # shift_templates — 요일 패턴 기반 반복 인력 수요 (weekdays: 0=Sunday)
    op.create_table(
        'shift_templates',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('facility_id', UUID(as_uuid=True), sa.ForeignKey('facilities.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('department', sa.String(100), nullable=False),
        sa.Column('specialty', sa.String(100), nullable=False),
        sa.Column('weekdays', JSONB(), server_default='[]', nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('min_staff', sa.Integer(), server_default='1', nullable=False),
        sa.Column('max_staff', sa.Integer(), server_default='1', nullable=False),
        sa.Column('hourly_rate', sa.Numeric(10, 2), nullable=True),
        sa.Column('horizon_days', sa.Integer(), server_default='14', nullable=False),
        sa.Column('urgency', sa.String(20), server_default='medium', nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('generated_shifts_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint('min_staff >= 1 AND max_staff >= min_staff', name='ck_shift_templates_staff_bounds'),
    )
    op.create_index('ix_shift_templates_facility_active', 'shift_templates', ['facility_id', 'is_active'])

    # shift_instances — 날짜별 시프트, 템플릿 슬롯은 결정적 id (uuid5)
    # Dated shifts; template slots use deterministic ids
    op.create_table(
        'shift_instances',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('template_id', UUID(as_uuid=True), sa.ForeignKey('shift_templates.id', ondelete='SET NULL'), nullable=True),
        sa.Column('slot_index', sa.Integer(), nullable=True),
        sa.Column('facility_id', UUID(as_uuid=True), sa.ForeignKey('facilities.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('department', sa.String(100), nullable=False),
        sa.Column('specialty', sa.String(100), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('shift_date', sa.Date(), nullable=False),
        sa.Column('start_time', sa.Time(), nullable=False),
        sa.Column('end_time', sa.Time(), nullable=False),
        sa.Column('capacity', sa.Integer(), server_default='1', nullable=False),
        sa.Column('filled_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('status', sa.String(20), server_default='open', nullable=False),
        sa.Column('urgency', sa.String(20), server_default='medium', nullable=False),
        sa.Column('hourly_rate', sa.Numeric(10, 2), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        # 정원 불변식 — 0 <= filled_count <= capacity
        sa.CheckConstraint('filled_count >= 0 AND filled_count <= capacity', name='ck_shift_instances_fill_bounds'),
    )
    op.create_unique_constraint(
        'uq_shift_instance_template_slot',
        'shift_instances',
        ['template_id', 'shift_date', 'slot_index'],
    )
    op.create_index('ix_shift_instances_template_date', 'shift_instances', ['template_id', 'shift_date'])
    op.create_index('ix_shift_instances_facility_date_status', 'shift_instances', ['facility_id', 'shift_date', 'status'])
    op.create_index('ix_shift_instances_specialty_date', 'shift_instances', ['specialty', 'shift_date'])

    # shift_assignments — 배정 이력 (해제는 소프트 전환)
    # Assignment history; unassignment is a soft transition
    op.create_table(
        'shift_assignments',
        sa.Column('id', UUID(as_uuid=True), primary_key=True),
        sa.Column('shift_instance_id', UUID(as_uuid=True), sa.ForeignKey('shift_instances.id', ondelete='SET NULL'), nullable=True),
        sa.Column('worker_id', UUID(as_uuid=True), sa.ForeignKey('workers.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('assigned_by', UUID(as_uuid=True), nullable=True),
        sa.Column('assigned_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('status', sa.String(20), server_default='assigned', nullable=False),
        sa.Column('unassigned_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('shift_snapshot', JSONB(), nullable=True),
    )
    # 활성 배정은 (시프트, 근무자)당 하나 — partial unique index
    op.create_index(
        'uq_shift_assignment_active_pair',
        'shift_assignments',
        ['shift_instance_id', 'worker_id'],
        unique=True,
        postgresql_where=sa.text("status = 'assigned'"),
    )
    op.create_index('ix_shift_assignments_worker_status', 'shift_assignments', ['worker_id', 'status'])


def downgrade() -> None:
    # 의존 순서의 역순으로 삭제 (인덱스, 제약은 테이블과 함께 삭제됨)
    # Drop in reverse dependency order (indexes and constraints go with the tables)
    op.drop_table('shift_assignments')
    op.drop_table('shift_instances')
    op.drop_table('shift_templates')
    op.drop_table('workers')
    op.drop_table('facilities')
