"""Create tracking tables

Revision ID: 3f1c9b7d2e10
Revises:
Create Date: 2026-10-18 10:12:41.503117

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c9b7d2e10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade():
    op.create_table(
        'emails',
        sa.Column('id', sa.String(length=32), primary_key=True),
        sa.Column('subject', sa.Text(), nullable=False),
        sa.Column('recipient', sa.Text(), nullable=False),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('user_email', sa.String(length=320), nullable=False),
    )
    op.create_index('idx_emails_user_sent', 'emails', ['user_email', 'sent_at'])

    op.create_table(
        'links',
        sa.Column('id', sa.String(length=32), primary_key=True),
        sa.Column('email_id', sa.String(length=32), sa.ForeignKey('emails.id'), nullable=False),
        sa.Column('original_url', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_links_email_id', 'links', ['email_id'])

    op.create_table(
        'opens',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('email_id', sa.String(length=32), sa.ForeignKey('emails.id'), nullable=False),
        sa.Column('opened_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ip_address', sa.String(length=255)),
        sa.Column('user_agent', sa.Text()),
    )
    op.create_index('idx_opens_email_opened', 'opens', ['email_id', 'opened_at'])

    op.create_table(
        'clicks',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('link_id', sa.String(length=32), sa.ForeignKey('links.id'), nullable=False),
        sa.Column('clicked_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('ip_address', sa.String(length=255)),
        sa.Column('user_agent', sa.Text()),
    )
    op.create_index('idx_clicks_link_clicked', 'clicks', ['link_id', 'clicked_at'])


def downgrade():
    op.drop_index('idx_clicks_link_clicked', 'clicks')
    op.drop_table('clicks')
    op.drop_index('idx_opens_email_opened', 'opens')
    op.drop_table('opens')
    op.drop_index('ix_links_email_id', 'links')
    op.drop_table('links')
    op.drop_index('idx_emails_user_sent', 'emails')
    op.drop_table('emails')
