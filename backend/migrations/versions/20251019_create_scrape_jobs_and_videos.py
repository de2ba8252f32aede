"""Create scrape_jobs and videos tables

Revision ID: 20251019_create_scrape_jobs
Revises:
Create Date: 2025-10-19 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '20251019_create_scrape_jobs'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'scrape_jobs',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('youtube_url', sa.Text(), nullable=False),
        sa.Column('title', sa.Text(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('worker_id', sa.String(length=128), nullable=True),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('finished_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('video_id', sa.Integer(), nullable=True),
        sa.Column('result_title', sa.Text(), nullable=True),
        sa.Column('s3_key', sa.Text(), nullable=True),
        sa.Column('thumbnail_key', sa.Text(), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_scrape_jobs_status_created_at', 'scrape_jobs', ['status', 'created_at'])

    # The catalog service may already own this table.
    bind = op.get_bind()
    if 'videos' in sa.inspect(bind).get_table_names():
        return

    tags_type = sa.JSON().with_variant(postgresql.ARRAY(sa.Text()), 'postgresql')
    op.create_table(
        'videos',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('s3_key', sa.String(length=255), nullable=False),
        sa.Column('thumbnail_url', sa.String(length=255), nullable=True),
        sa.Column('uploaded_by', sa.Integer(), nullable=True),
        sa.Column('upload_date', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column('tags', tags_type, nullable=False),
        sa.Column('view_count', sa.Integer(), server_default='0', nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('s3_key'),
    )


def downgrade():
    op.drop_index('ix_scrape_jobs_status_created_at', table_name='scrape_jobs')
    op.drop_table('scrape_jobs')
