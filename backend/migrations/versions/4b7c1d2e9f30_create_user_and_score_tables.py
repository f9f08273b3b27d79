"""create user and score tables

Revision ID: 4b7c1d2e9f30
Revises:
Create Date: 2025-09-02 10:12:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '4b7c1d2e9f30'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    existing_tables = set(insp.get_table_names())

    if 'user' not in existing_tables:
        op.create_table(
            'user',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('username', sa.String(length=64), nullable=False),
            sa.Column('password_hash', sa.String(length=256), nullable=False),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index('ix_user_username', 'user', ['username'], unique=True)

    # user_id is the primary key: one score per user, enforced by the database
    if 'score' not in existing_tables:
        op.create_table(
            'score',
            sa.Column('user_id', sa.String(length=64), nullable=False),
            sa.Column('username', sa.String(length=64), nullable=False),
            sa.Column('score', sa.Integer(), nullable=False),
            sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=False),
            sa.PrimaryKeyConstraint('user_id'),
        )
        op.create_index('ix_score_score', 'score', ['score'], unique=False)


def downgrade():
    op.drop_index('ix_score_score', table_name='score')
    op.drop_table('score')
    op.drop_index('ix_user_username', table_name='user')
    op.drop_table('user')
