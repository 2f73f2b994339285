"""initial_reports_schema

Revision ID: 4a1f0c2d9b7e
Revises:
Create Date: 2026-10-19 10:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '4a1f0c2d9b7e'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

userrole = sa.Enum('CITIZEN', 'OPERATOR', 'SUPERVISOR', 'ADMIN', name='userrole')
authmode = sa.Enum('PASSWORD', 'GUEST', name='authmode')
reportcategory = sa.Enum('POTHOLE', 'STREETLIGHT', 'SIDEWALK', 'DRAINAGE', name='reportcategory')
reportstatus = sa.Enum('RECEIVED', 'VERIFIED', 'SCHEDULED', 'IN_PROGRESS', 'RESOLVED', 'CLOSED', 'REOPENED', name='reportstatus')
prioritylevel = sa.Enum('LOW', 'MEDIUM', 'HIGH', 'CRITICAL', name='prioritylevel')
reporteventtype = sa.Enum(
    'REPORT_CREATED', 'STATUS_CHANGED', 'TRIAGE_UPDATED', 'EVIDENCE_ADDED',
    'ASSIGNED', 'SCHEDULED', 'DISTRICT_UPDATED', 'COMMENT',
    name='reporteventtype'
)
evidencetype = sa.Enum('BEFORE', 'AFTER', 'INTERVENTION', name='evidencetype')


def upgrade() -> None:
    op.create_table('users',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('full_name', sa.String(), nullable=True),
        sa.Column('role', userrole, nullable=False),
        sa.Column('auth_mode', authmode, nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table('reports',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('category', reportcategory, nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('latitude', sa.Float(), nullable=False),
        sa.Column('longitude', sa.Float(), nullable=False),
        sa.Column('address_text', sa.String(), nullable=True),
        sa.Column('district', sa.String(), nullable=True),
        sa.Column('photo_urls', postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column('status', reportstatus, nullable=False),
        sa.Column('created_by', sa.UUID(), nullable=True),
        sa.Column('assigned_to', sa.UUID(), nullable=True),
        sa.Column('assigned_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('assigned_by', sa.UUID(), nullable=True),
        sa.Column('scheduled_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sla_target_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sla_breached_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('impact', sa.Integer(), nullable=True),
        sa.Column('urgency', sa.Integer(), nullable=True),
        sa.Column('priority', prioritylevel, nullable=True),
        sa.Column('priority_override', prioritylevel, nullable=True),
        sa.Column('priority_updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('priority_updated_by', sa.UUID(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['created_by'], ['users.id']),
        sa.ForeignKeyConstraint(['assigned_to'], ['users.id']),
        sa.ForeignKeyConstraint(['assigned_by'], ['users.id']),
        sa.ForeignKeyConstraint(['priority_updated_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_reports_category', 'reports', ['category'])
    op.create_index('ix_reports_status', 'reports', ['status'])
    op.create_index('ix_reports_created_by', 'reports', ['created_by'])
    op.create_index('ix_reports_created_at', 'reports', ['created_at'])
    # Map queries filter on the bounding box
    op.create_index('ix_reports_lat_lng', 'reports', ['latitude', 'longitude'])

    op.create_table('report_status_history',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('report_id', sa.UUID(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('status', reportstatus, nullable=False),
        sa.Column('at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('by', sa.UUID(), nullable=True),
        sa.Column('note', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['report_id'], ['reports.id']),
        sa.ForeignKeyConstraint(['by'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('report_id', 'position', name='uq_report_status_history_position')
    )
    op.create_index('ix_report_status_history_report_id', 'report_status_history', ['report_id'])

    op.create_table('report_events',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('report_id', sa.UUID(), nullable=False),
        sa.Column('type', reporteventtype, nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('data', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('created_by', sa.UUID(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['report_id'], ['reports.id']),
        sa.ForeignKeyConstraint(['created_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_report_events_report_id', 'report_events', ['report_id'])

    op.create_table('report_evidence',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('report_id', sa.UUID(), nullable=False),
        sa.Column('type', evidencetype, nullable=False),
        sa.Column('url', sa.String(), nullable=False),
        sa.Column('note', sa.Text(), nullable=True),
        sa.Column('uploaded_by', sa.UUID(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['report_id'], ['reports.id']),
        sa.ForeignKeyConstraint(['uploaded_by'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_report_evidence_report_id', 'report_evidence', ['report_id'])

    op.create_table('report_surveys',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('report_id', sa.UUID(), nullable=False),
        sa.Column('token', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('rating', sa.Integer(), nullable=True),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['report_id'], ['reports.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('report_id')
    )
    op.create_index('ix_report_surveys_token', 'report_surveys', ['token'], unique=True)

    op.create_table('audit_logs',
        sa.Column('id', sa.UUID(), nullable=False),
        sa.Column('user_id', sa.UUID(), nullable=True),
        sa.Column('action', sa.String(), nullable=False),
        sa.Column('target_type', sa.String(), nullable=True),
        sa.Column('target_id', sa.String(), nullable=True),
        sa.Column('metadata_json', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('ip_address', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])

    op.create_table('admin_settings',
        sa.Column('key', sa.String(), nullable=False),
        sa.Column('value', postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column('description', sa.String(), nullable=True),
        sa.Column('updated_by', sa.UUID(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['updated_by'], ['users.id']),
        sa.PrimaryKeyConstraint('key')
    )


def downgrade() -> None:
    op.drop_table('admin_settings')
    op.drop_index('ix_audit_logs_created_at', table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_index('ix_report_surveys_token', table_name='report_surveys')
    op.drop_table('report_surveys')
    op.drop_index('ix_report_evidence_report_id', table_name='report_evidence')
    op.drop_table('report_evidence')
    op.drop_index('ix_report_events_report_id', table_name='report_events')
    op.drop_table('report_events')
    op.drop_index('ix_report_status_history_report_id', table_name='report_status_history')
    op.drop_table('report_status_history')
    op.drop_index('ix_reports_lat_lng', table_name='reports')
    op.drop_index('ix_reports_created_at', table_name='reports')
    op.drop_index('ix_reports_created_by', table_name='reports')
    op.drop_index('ix_reports_status', table_name='reports')
    op.drop_index('ix_reports_category', table_name='reports')
    op.drop_table('reports')
    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')
    for enum_type in (evidencetype, reporteventtype, prioritylevel, reportstatus, reportcategory, authmode, userrole):
        enum_type.drop(op.get_bind(), checkfirst=True)
