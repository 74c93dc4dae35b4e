"""Create media blob cleanup queue table.

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 10:00:00.000000

Outbox-очередь удаления blob объектов медиатеки:
1. ENUM типы cleanup_status_enum, cleanup_error_kind_enum
2. Таблица media_blob_cleanup_queue
3. Partial index для выборки pending записей worker

State machine:
pending → processing → completed | failed → (retry) pending
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '20261019_0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create media_blob_cleanup_queue table."""

    cleanup_status_enum = postgresql.ENUM(
        'pending', 'processing', 'completed', 'failed',
        name='cleanup_status_enum',
        create_type=True
    )

    cleanup_error_kind_enum = postgresql.ENUM(
        'retriable', 'permanent',
        name='cleanup_error_kind_enum',
        create_type=True
    )

    op.create_table(
        'media_blob_cleanup_queue',
        sa.Column(
            'id',
            sa.BigInteger(),
            autoincrement=True,
            nullable=False,
            comment='Уникальный ID записи'
        ),

        # Blob объект
        sa.Column(
            'blob_object_id',
            sa.String(500),
            nullable=False,
            comment='ID объекта в blob storage (Cloudinary public_id)'
        ),
        sa.Column(
            'resource_type',
            sa.String(20),
            nullable=False,
            server_default='image',
            comment='Cloudinary resource type: image, video, raw'
        ),
        sa.Column(
            'original_filename',
            sa.String(500),
            nullable=True,
            comment='Оригинальное имя файла (информационно)'
        ),

        # State machine
        sa.Column(
            'status',
            cleanup_status_enum,
            nullable=False,
            server_default='pending',
            comment='Статус: pending, processing, completed, failed'
        ),
        sa.Column(
            'trigger_source',
            sa.String(50),
            nullable=False,
            server_default='manual',
            comment='Источник: ui_delete, admin_bulk, cascade, manual'
        ),
        sa.Column(
            'error_message',
            sa.Text(),
            nullable=True,
            comment='Сообщение об ошибке (только failed)'
        ),
        sa.Column(
            'error_kind',
            cleanup_error_kind_enum,
            nullable=True,
            comment='Классификация ошибки: retriable, permanent'
        ),
        sa.Column(
            'retry_count',
            sa.Integer(),
            nullable=False,
            server_default='0',
            comment='Количество failed попыток'
        ),
        sa.Column(
            'claimed_by',
            sa.String(64),
            nullable=True,
            comment='ID worker, захватившего запись'
        ),

        # Timestamps
        sa.Column(
            'created_at',
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
            comment='Дата добавления в очередь'
        ),
        sa.Column(
            'deleted_at',
            sa.DateTime(timezone=True),
            nullable=True,
            comment='Дата удаления записи каталога'
        ),
        sa.Column(
            'processed_at',
            sa.DateTime(timezone=True),
            nullable=True,
            comment='Дата последнего перехода из pending'
        ),

        sa.PrimaryKeyConstraint('id', name=op.f('pk_media_blob_cleanup_queue')),
    )

    # Worker: SELECT ... WHERE status='pending' ORDER BY created_at, id
    op.create_index(
        'idx_blob_cleanup_pending',
        'media_blob_cleanup_queue',
        ['created_at', 'id'],
        unique=False,
        postgresql_where=sa.text("status = 'pending'")
    )
    op.create_index(
        'idx_blob_cleanup_status',
        'media_blob_cleanup_queue',
        ['status'],
        unique=False
    )
    op.create_index(
        'idx_blob_cleanup_blob_object_id',
        'media_blob_cleanup_queue',
        ['blob_object_id'],
        unique=False
    )


def downgrade() -> None:
    """Drop media_blob_cleanup_queue table."""

    op.drop_index('idx_blob_cleanup_blob_object_id', table_name='media_blob_cleanup_queue')
    op.drop_index('idx_blob_cleanup_status', table_name='media_blob_cleanup_queue')
    op.drop_index('idx_blob_cleanup_pending', table_name='media_blob_cleanup_queue')

    op.drop_table('media_blob_cleanup_queue')

    sa.Enum(name='cleanup_error_kind_enum').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='cleanup_status_enum').drop(op.get_bind(), checkfirst=True)
