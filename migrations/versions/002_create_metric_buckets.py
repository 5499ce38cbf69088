"""Create metric_buckets table for hourly rollups

Revision ID: 002
Revises: 001
Create Date: 2026-09-28 12:30:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers
revision = '002'
down_revision = '001'
branch_labels = None
depends_on = None


def upgrade():
  op.create_table(
    'metric_buckets',
    sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
    sa.Column('tenant', sa.String(length=255), nullable=False),
    sa.Column('project', sa.String(length=128), nullable=False),
    sa.Column('bucket_start', sa.DateTime(timezone=True), nullable=False),
    sa.Column('total_count', sa.BigInteger(), nullable=False),
    sa.Column('error_count', sa.BigInteger(), nullable=False),
    sa.Column('p50_ms', sa.BigInteger(), nullable=False),
    sa.Column('p95_ms', sa.BigInteger(), nullable=False),
    sa.Column('p99_ms', sa.BigInteger(), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint(
      'tenant', 'project', 'bucket_start', name='uq_metric_bucket_tenant_project_start'
    ),
  )


def downgrade():
  op.drop_table('metric_buckets')
