"""create_event_tables

Revision ID: 7c1e2a9b4d10
Revises:
Create Date: 2026-01-12 10:14:22.518304

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
import sqlmodel


# revision identifiers, used by Alembic.
revision: str = '7c1e2a9b4d10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'events',
        sa.Column('event_id', sa.Integer(), nullable=False),
        sa.Column('slug', sqlmodel.sql.sqltypes.AutoString(length=256), nullable=False),
        sa.Column('title', sqlmodel.sql.sqltypes.AutoString(length=512), nullable=True),
        sa.Column('query', sqlmodel.sql.sqltypes.AutoString(length=512), nullable=True),
        sa.Column('summary', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('image_url', sqlmodel.sql.sqltypes.AutoString(length=2048), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=True),
        sa.Column('status', sqlmodel.sql.sqltypes.AutoString(length=20), nullable=False, server_default='Injustice'),
        sa.Column('incident_date', sa.DateTime(), nullable=True),
        sa.Column('last_updated', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('event_id'),
    )
    op.create_index(op.f('ix_events_slug'), 'events', ['slug'], unique=True)
    op.create_index(op.f('ix_events_status'), 'events', ['status'], unique=False)
    op.create_index(op.f('ix_events_incident_date'), 'events', ['incident_date'], unique=False)

    op.create_table(
        'event_details',
        sa.Column('event_id', sa.Integer(), nullable=False),
        sa.Column('headline', sqlmodel.sql.sqltypes.AutoString(length=1024), nullable=True),
        sa.Column('location', sqlmodel.sql.sqltypes.AutoString(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('accused', sa.JSON(), nullable=True),
        sa.Column('victims', sa.JSON(), nullable=True),
        sa.Column('timeline', sa.JSON(), nullable=True),
        sa.Column('sources', sa.JSON(), nullable=True),
        sa.Column('images', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['event_id'], ['events.event_id']),
        sa.PrimaryKeyConstraint('event_id'),
    )

    op.create_table(
        'event_updates',
        sa.Column('update_id', sa.Integer(), nullable=False),
        sa.Column('event_id', sa.Integer(), nullable=False),
        sa.Column('title', sqlmodel.sql.sqltypes.AutoString(length=512), nullable=False),
        sa.Column('description', sqlmodel.sql.sqltypes.AutoString(), nullable=False),
        sa.Column('update_date', sa.DateTime(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['event_id'], ['events.event_id']),
        sa.PrimaryKeyConstraint('update_id'),
    )
    op.create_index(op.f('ix_event_updates_event_id'), 'event_updates', ['event_id'], unique=False)
    op.create_index(op.f('ix_event_updates_update_date'), 'event_updates', ['update_date'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_event_updates_update_date'), table_name='event_updates')
    op.drop_index(op.f('ix_event_updates_event_id'), table_name='event_updates')
    op.drop_table('event_updates')
    op.drop_table('event_details')
    op.drop_index(op.f('ix_events_incident_date'), table_name='events')
    op.drop_index(op.f('ix_events_status'), table_name='events')
    op.drop_index(op.f('ix_events_slug'), table_name='events')
    op.drop_table('events')
