"""Create events, visitors, staff users and the consultation token queue

Revision ID: 0001_queue_tables
Revises:
Create Date: 2026-10-16

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '0001_queue_tables'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Create enum types once; the tables below reuse them
    token_status = sa.Enum('WAITING', 'IN_PROGRESS', 'DONE', 'NO_SHOW', name='token_status')
    user_role = sa.Enum('ADMIN', 'EXPERT', 'SALES', name='userrole')
    token_status.create(op.get_bind(), checkfirst=True)
    user_role.create(op.get_bind(), checkfirst=True)

    token_status_col = postgresql.ENUM(
        'WAITING', 'IN_PROGRESS', 'DONE', 'NO_SHOW', name='token_status', create_type=False
    )
    user_role_col = postgresql.ENUM('ADMIN', 'EXPERT', 'SALES', name='userrole', create_type=False)

    op.create_table(
        'events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('status', sa.String(50), nullable=True),
        sa.Column('queue_paused', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('feedback_link', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_events_id', 'events', ['id'])

    op.create_table(
        'visitors',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_id', sa.Integer(), sa.ForeignKey('events.id'), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(20), nullable=True),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_visitors_id', 'visitors', ['id'])
    op.create_index('ix_visitors_event_id', 'visitors', ['event_id'])

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('role', user_role_col, nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('event_id', sa.Integer(), sa.ForeignKey('events.id'), nullable=False),
        sa.Column('visitor_id', sa.Integer(), sa.ForeignKey('visitors.id'), nullable=False),
        sa.Column('token_no', sa.Integer(), nullable=False),
        sa.Column('status', token_status_col, nullable=False),
        sa.Column('consultation_id', sa.String(64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('event_id', 'token_no', name='uq_tokens_event_token_no'),
    )
    op.create_index('ix_tokens_id', 'tokens', ['id'])
    op.create_index('ix_tokens_event_status', 'tokens', ['event_id', 'status'])
    op.create_index('ix_tokens_event_visitor', 'tokens', ['event_id', 'visitor_id'])

    op.create_table(
        'token_status_changes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('token_id', sa.Integer(), sa.ForeignKey('tokens.id'), nullable=False),
        sa.Column('from_status', token_status_col, nullable=False),
        sa.Column('to_status', token_status_col, nullable=False),
        sa.Column('changed_by', sa.String(255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_token_status_changes_id', 'token_status_changes', ['id'])
    op.create_index('ix_token_status_changes_token_id', 'token_status_changes', ['token_id'])


def downgrade() -> None:
    op.drop_table('token_status_changes')
    op.drop_table('tokens')
    op.drop_table('users')
    op.drop_table('visitors')
    op.drop_table('events')

    sa.Enum(name='token_status').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='userrole').drop(op.get_bind(), checkfirst=True)
