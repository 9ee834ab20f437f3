"""Create oracle tables

Revision ID: 3f1c9a2b7d10
Revises: 
Create Date: 2026-10-17 09:12:44.512301

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '3f1c9a2b7d10'
down_revision = None
branch_labels = None
depends_on = None

JSONType = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def upgrade():
    """
    Creates prices, symbols, oracle_config and audit_log.
    """
    op.create_table(
        'prices',
        sa.Column('mint', sa.String(length=128), nullable=False),
        sa.Column('symbol', sa.String(length=32), nullable=True),
        sa.Column('usd_mantissa', sa.String(length=40), nullable=False),
        sa.Column('usd_scale', sa.Integer(), nullable=False),
        sa.Column('decimals', sa.Integer(), nullable=True),
        sa.Column('updated_at', sa.String(length=40), nullable=False),
        sa.Column('updated_by', sa.String(length=160), nullable=False),
        sa.PrimaryKeyConstraint('mint'),
    )
    op.create_table(
        'symbols',
        sa.Column('symbol', sa.String(length=32), nullable=False),
        sa.Column('mint', sa.String(length=128), nullable=False),
        sa.PrimaryKeyConstraint('symbol'),
    )
    op.create_table(
        'oracle_config',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('network', sa.String(length=64), nullable=False),
        sa.Column('version', sa.String(length=32), nullable=False),
        sa.Column('fee_bps_default', sa.Integer(), nullable=False),
        sa.Column('zera_mint', sa.String(length=128), nullable=False),
        sa.Column('supported_mints', JSONType, nullable=False),
        sa.CheckConstraint('id = 1', name='ck_oracle_config_singleton'),
        sa.CheckConstraint('fee_bps_default >= 0 AND fee_bps_default <= 10000', name='ck_oracle_config_fee_bps'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'audit_log',
        sa.Column('seq', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('key', sa.String(length=128), nullable=False),
        sa.Column('action', sa.String(length=32), nullable=False),
        sa.Column('before', JSONType, nullable=True),
        sa.Column('after', JSONType, nullable=True),
        sa.Column('actor', sa.String(length=160), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('seq'),
        sqlite_autoincrement=True,
    )


def downgrade():
    """
    Drops every oracle table.
    """
    op.drop_table('audit_log')
    op.drop_table('oracle_config')
    op.drop_table('symbols')
    op.drop_table('prices')
