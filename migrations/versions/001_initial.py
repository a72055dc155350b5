"""Initial metadata catalog: users, role defaults and file records

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create catalog tables and seed the default role limits."""

    op.create_table(
        'app_users',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.String(255), nullable=True),
        sa.Column('email', sa.String(320), nullable=False),
        sa.Column('app_name', sa.String(100), nullable=False),
        sa.Column('role', sa.String(50), nullable=False, server_default='pro'),
        sa.Column('status', sa.String(20), nullable=False, server_default='allowed'),
        sa.Column('limits', sa.JSON(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False,
                  server_default=sa.func.current_timestamp()),
        sa.UniqueConstraint('email', 'app_name', name='uq_app_users_email_app'),
        sa.CheckConstraint("status IN ('allowed', 'blocked')",
                           name='check_app_user_status'),
    )
    op.create_index('ix_app_users_email', 'app_users', ['email'])

    app_defaults = op.create_table(
        'app_defaults',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('app_name', sa.String(100), nullable=False),
        sa.Column('role', sa.String(50), nullable=False),
        sa.Column('display_name', sa.String(100), nullable=True),
        sa.Column('default_limits', sa.JSON(), nullable=True),
        sa.UniqueConstraint('app_name', 'role', name='uq_app_defaults_app_role'),
    )

    op.create_table(
        'files',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.String(255), nullable=True),
        sa.Column('user_email', sa.String(320), nullable=False),
        sa.Column('server_filename', sa.String(512), nullable=False),
        sa.Column('display_name', sa.String(512), nullable=True),
        sa.Column('download_url', sa.Text(), nullable=False),
        sa.Column('size_mb', sa.Float(), nullable=True),
        sa.Column('format', sa.String(20), nullable=False),
        sa.Column('is_deleted', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False,
                  server_default=sa.func.current_timestamp()),
        sa.Column('updated_at', sa.DateTime(), nullable=False,
                  server_default=sa.func.current_timestamp()),
        sa.CheckConstraint("format IN ('parquet', 'duckdb')", name='check_file_format'),
    )
    op.create_index('idx_files_user_email', 'files', ['user_email'])
    op.create_index('idx_files_created_at', 'files', ['created_at'])

    # Null limit = unlimited
    op.bulk_insert(app_defaults, [
        {
            'app_name': 'duckit',
            'role': 'pro',
            'display_name': 'Pro',
            'default_limits': {'max_files': 2, 'max_file_size_mb': 75},
        },
        {
            'app_name': 'duckit',
            'role': 'admin',
            'display_name': 'Admin',
            'default_limits': {'max_files': None, 'max_file_size_mb': None},
        },
    ])


def downgrade() -> None:
    """Drop all catalog tables."""
    op.drop_index('idx_files_created_at', table_name='files')
    op.drop_index('idx_files_user_email', table_name='files')
    op.drop_table('files')
    op.drop_table('app_defaults')
    op.drop_index('ix_app_users_email', table_name='app_users')
    op.drop_table('app_users')
