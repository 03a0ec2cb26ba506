"""create lobby snapshot table

Revision ID: 5c2e9a7d1f40
Revises:
Create Date: 2026-10-18 00:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '5c2e9a7d1f40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    if 'lobby' in set(insp.get_table_names()):
        return

    op.create_table(
        'lobby',
        sa.Column('code', sa.String(length=6), primary_key=True),
        sa.Column('payload', sa.Text(), nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('expires_at', sa.BigInteger(), nullable=False),
        sa.Column('last_activity', sa.BigInteger(), nullable=False),
    )
    op.create_index('ix_lobby_expires_at', 'lobby', ['expires_at'])


def downgrade():
    op.drop_index('ix_lobby_expires_at', table_name='lobby')
    op.drop_table('lobby')
