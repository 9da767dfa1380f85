"""liveness schema: users, contacts, check_ins

Revision ID: 001
Revises: 
Create Date: 2026-01-12 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('last_check_in', sa.BigInteger(), nullable=True),
        sa.Column('streak', sa.Integer(), server_default='0', nullable=False),
        sa.Column('language', sa.Text(), server_default='zh', nullable=False),
        sa.Column('is_registered', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('last_alert_sent_at', sa.BigInteger(), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
    )
    op.create_index('ix_users_registered_check_in', 'users', ['is_registered', 'last_check_in'])

    op.create_table(
        'contacts',
        sa.Column('id', sa.Text(), primary_key=True),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('email', sa.Text(), nullable=False),
        sa.Column('phone', sa.Text(), nullable=True),
        sa.Column('position', sa.Integer(), server_default='0', nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_contacts_user_id', 'contacts', ['user_id'])

    op.create_table(
        'check_ins',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Text(), nullable=False),
        sa.Column('timestamp', sa.BigInteger(), nullable=False),
        sa.Column('date_string', sa.Text(), nullable=False),
        sa.Column('time_string', sa.Text(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('user_id', 'date_string', name='uq_check_ins_user_date'),
    )
    op.create_index('ix_check_ins_user_id', 'check_ins', ['user_id'])


def downgrade() -> None:
    op.drop_index('ix_check_ins_user_id', table_name='check_ins')
    op.drop_table('check_ins')
    op.drop_index('ix_contacts_user_id', table_name='contacts')
    op.drop_table('contacts')
    op.drop_index('ix_users_registered_check_in', table_name='users')
    op.drop_table('users')
