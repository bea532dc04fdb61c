"""Report service tables: accounts, farm assets, job records, report jobs, e-mail queue

Revision ID: report_001
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'report_001'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'accounts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('farm_name', sa.String(255), nullable=False, server_default='Farm'),
        sa.Column('farm_logo', sa.Text(), nullable=True),
        sa.Column('email', sa.String(320), nullable=True),
        sa.Column('email_verified', sa.Boolean(), nullable=False, server_default=sa.false()),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_accounts'),
    )
    op.create_index('ix_accounts_created_at', 'accounts', ['created_at'])

    op.create_table(
        'farm_assets',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('account_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('asset_type', sa.String(20), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], name='fk_farm_assets_account_id_accounts'),
        sa.PrimaryKeyConstraint('id', name='pk_farm_assets'),
    )
    op.create_index('ix_farm_assets_account_id', 'farm_assets', ['account_id'])
    op.create_index('ix_farm_assets_created_at', 'farm_assets', ['created_at'])

    op.create_table(
        'job_records',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('account_id', sa.Uuid(), nullable=False),
        sa.Column('job_type', sa.String(50), nullable=False),
        sa.Column('job_title', sa.String(255), nullable=True),
        sa.Column('field_id', sa.Uuid(), nullable=True),
        sa.Column('machine_id', sa.Uuid(), nullable=True),
        sa.Column('machine_name', sa.String(255), nullable=True),
        sa.Column('attachment_id', sa.Uuid(), nullable=True),
        sa.Column('tool_id', sa.Uuid(), nullable=True),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=True),
        sa.Column('elapsed_ms', sa.BigInteger(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], name='fk_job_records_account_id_accounts'),
        sa.PrimaryKeyConstraint('id', name='pk_job_records'),
    )
    op.create_index('ix_job_records_account_start', 'job_records', ['account_id', 'start_time'])
    op.create_index('ix_job_records_created_at', 'job_records', ['created_at'])

    op.create_table(
        'report_jobs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('job_id', sa.String(36), nullable=False),
        sa.Column('account_id', sa.Uuid(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('delivery', sa.String(20), nullable=False, server_default='email'),
        sa.Column('report_type', sa.String(20), nullable=False, server_default='chronological'),
        sa.Column('date_range', sa.String(20), nullable=False, server_default='all'),
        sa.Column('start_date', sa.DateTime(), nullable=True),
        sa.Column('end_date', sa.DateTime(), nullable=True),
        sa.Column('result', sa.JSON(), nullable=False),
        sa.Column('error', sa.String(100), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(['account_id'], ['accounts.id'], name='fk_report_jobs_account_id_accounts'),
        sa.PrimaryKeyConstraint('id', name='pk_report_jobs'),
        sa.UniqueConstraint('job_id', name='uq_report_jobs_job_id'),
    )
    op.create_index('ix_report_jobs_account_status', 'report_jobs', ['account_id', 'status'])
    op.create_index('ix_report_jobs_created_at', 'report_jobs', ['created_at'])

    op.create_table(
        'email_queue',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('to_address', sa.String(320), nullable=False),
        sa.Column('from_address', sa.String(320), nullable=False),
        sa.Column('subject', sa.String(998), nullable=False),
        sa.Column('html', sa.Text(), nullable=False),
        sa.Column('text', sa.Text(), nullable=False),
        sa.Column('attachments', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('max_attempts', sa.Integer(), nullable=False, server_default='5'),
        sa.Column('priority', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('scheduled_for', sa.DateTime(), nullable=False),
        sa.Column('last_attempt_at', sa.DateTime(), nullable=True),
        sa.Column('sent_at', sa.DateTime(), nullable=True),
        sa.Column('failed_at', sa.DateTime(), nullable=True),
        sa.Column('message_id', sa.String(255), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('extra', sa.JSON(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id', name='pk_email_queue'),
    )
    op.create_index('ix_email_queue_status_scheduled', 'email_queue', ['status', 'scheduled_for'])
    op.create_index('ix_email_queue_sent_at', 'email_queue', ['sent_at'])
    op.create_index('ix_email_queue_created_at', 'email_queue', ['created_at'])


def downgrade() -> None:
    op.drop_index('ix_email_queue_created_at', 'email_queue')
    op.drop_index('ix_email_queue_sent_at', 'email_queue')
    op.drop_index('ix_email_queue_status_scheduled', 'email_queue')
    op.drop_table('email_queue')
    op.drop_index('ix_report_jobs_created_at', 'report_jobs')
    op.drop_index('ix_report_jobs_account_status', 'report_jobs')
    op.drop_table('report_jobs')
    op.drop_index('ix_job_records_created_at', 'job_records')
    op.drop_index('ix_job_records_account_start', 'job_records')
    op.drop_table('job_records')
    op.drop_index('ix_farm_assets_created_at', 'farm_assets')
    op.drop_index('ix_farm_assets_account_id', 'farm_assets')
    op.drop_table('farm_assets')
    op.drop_index('ix_accounts_created_at', 'accounts')
    op.drop_table('accounts')
