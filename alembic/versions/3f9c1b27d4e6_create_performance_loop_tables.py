"""Create performance loop tables

Revision ID: 3f9c1b27d4e6
Revises:
Create Date: 2026-10-18 12:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f9c1b27d4e6'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'campaigns',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('seed_data', sa.JSON()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'content_variants',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('campaign_id', sa.Text(), sa.ForeignKey('campaigns.id'), nullable=False),
        sa.Column('hook', sa.Text(), nullable=False),
        sa.Column('problem_agitation', sa.Text(), nullable=False),
        sa.Column('solution', sa.Text(), nullable=False),
        sa.Column('cta', sa.Text(), nullable=False),
        sa.Column('visual_direction', sa.Text()),
        sa.Column('audio_notes', sa.Text()),
        sa.Column('estimated_duration', sa.Integer()),
        sa.Column('generation_notes', sa.Text()),
        sa.Column('status', sa.Text(), nullable=False, server_default='draft'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('is_winner', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('parent_variant_id', sa.Text(), sa.ForeignKey('content_variants.id')),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_content_variants_campaign_id', 'content_variants', ['campaign_id'])
    op.create_index('ix_content_variants_campaign_winner', 'content_variants', ['campaign_id', 'is_winner'])

    op.create_table(
        'import_batches',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('campaign_id', sa.Text(), sa.ForeignKey('campaigns.id'), nullable=False),
        sa.Column('filename', sa.Text(), nullable=False),
        sa.Column('status', sa.Text(), nullable=False, server_default='processing'),
        sa.Column('rows_total', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('rows_processed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('rows_failed', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('error_log', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('completed_at', sa.DateTime(timezone=True)),
    )
    op.create_index('ix_import_batches_campaign_id', 'import_batches', ['campaign_id'])

    op.create_table(
        'performance_rows',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('import_batch_id', sa.Text(), sa.ForeignKey('import_batches.id'), nullable=False),
        sa.Column('variant_id', sa.Text(), sa.ForeignKey('content_variants.id'), nullable=False),
        sa.Column('impressions', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('clicks', sa.BigInteger(), nullable=False, server_default='0'),
        sa.Column('conversions', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('spend', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('revenue', sa.Numeric(14, 2), nullable=False, server_default='0'),
        sa.Column('platform', sa.Text()),
        sa.Column('locale', sa.Text()),
        sa.Column('date_range_start', sa.Date()),
        sa.Column('date_range_end', sa.Date()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_performance_rows_import_batch_id', 'performance_rows', ['import_batch_id'])
    op.create_index('ix_performance_rows_variant_id', 'performance_rows', ['variant_id'])


def downgrade() -> None:
    op.drop_index('ix_performance_rows_variant_id', table_name='performance_rows')
    op.drop_index('ix_performance_rows_import_batch_id', table_name='performance_rows')
    op.drop_table('performance_rows')
    op.drop_index('ix_import_batches_campaign_id', table_name='import_batches')
    op.drop_table('import_batches')
    op.drop_index('ix_content_variants_campaign_winner', table_name='content_variants')
    op.drop_index('ix_content_variants_campaign_id', table_name='content_variants')
    op.drop_table('content_variants')
    op.drop_table('campaigns')
