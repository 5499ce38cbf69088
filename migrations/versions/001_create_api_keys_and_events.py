"""Create api_keys and events tables

Revision ID: 001
Revises:
Create Date: 2026-09-28 12:00:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
  op.create_table(
    'api_keys',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('tenant', sa.String(length=255), nullable=False),
    sa.Column('name', sa.String(length=128), nullable=False),
    sa.Column('environment', sa.String(length=32), nullable=False),
    sa.Column('key', sa.String(length=255), nullable=False),
    sa.Column('retention_days', sa.Integer(), nullable=False, server_default='0'),
    sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('key'),
  )
  op.create_index('ix_api_keys_tenant', 'api_keys', ['tenant'])

  op.create_table(
    'events',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
    sa.Column('tenant', sa.String(length=255), nullable=False),
    sa.Column('project', sa.String(length=128), nullable=False),
    sa.Column('route', sa.Text(), nullable=False),
    sa.Column('method', sa.Text(), nullable=False),
    sa.Column('status', sa.Integer(), nullable=False),
    sa.Column('duration_ms', sa.BigInteger(), nullable=False),
    sa.Column('remote_ip', sa.Text(), nullable=False),
    sa.Column('attributes', sa.JSON(), nullable=False),
    sa.PrimaryKeyConstraint('id'),
  )

  # Retention sweep scans by expiry; aggregation scans tenant/project/time windows
  op.create_index('ix_events_expires_at', 'events', ['expires_at'])
  op.create_index(
    'ix_events_tenant_project_created_at', 'events', ['tenant', 'project', 'created_at']
  )
  op.create_index('ix_events_created_at', 'events', ['created_at'])


def downgrade():
  op.drop_index('ix_events_created_at', table_name='events')
  op.drop_index('ix_events_tenant_project_created_at', table_name='events')
  op.drop_index('ix_events_expires_at', table_name='events')
  op.drop_table('events')

  op.drop_index('ix_api_keys_tenant', table_name='api_keys')
  op.drop_table('api_keys')
