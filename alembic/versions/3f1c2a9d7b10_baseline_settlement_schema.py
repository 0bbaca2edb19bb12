"""baseline_settlement_schema

Revision ID: 3f1c2a9d7b10
Revises:
Create Date: 2026-10-18 09:12:40.118203

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f1c2a9d7b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MONEY = sa.Numeric(24, 8)
PERCENT = sa.Numeric(12, 2)
FLUCTUATION = sa.Numeric(32, 2)


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False, comment='Customer full name'),
        sa.Column('email', sa.String(length=255), nullable=False, comment='Login email (lowercase)'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, comment='Registration timestamp'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_users_email'), 'users', ['email'], unique=True)

    op.create_table(
        'wallets',
        sa.Column('user_id', sa.Integer(), nullable=False, comment='Owning user'),
        sa.Column('balance', MONEY, nullable=False, comment='Spendable fiat balance'),
        sa.Column('profits', MONEY, nullable=False, comment='Accrued profit awaiting daily settlement'),
        sa.Column('total_deposit', MONEY, nullable=False, comment='Total confirmed deposits'),
        sa.Column('total_bonus', MONEY, nullable=False, comment='Total deposit bonuses'),
        sa.Column('withdrawn', MONEY, nullable=False, comment='Total confirmed withdrawals'),
        sa.Column('referral', MONEY, nullable=False, comment='Referral earnings'),
        sa.Column('topup', MONEY, nullable=False, comment='Total admin top-ups'),
        sa.Column('fluctuation', FLUCTUATION, nullable=False, comment='Balance change (%) from last revaluation'),
        sa.Column('crypto_balance', MONEY, nullable=False, comment='Fiat value of crypto holdings at last revaluation'),
        sa.Column('btc', MONEY, nullable=False, comment='Bitcoin quantity'),
        sa.Column('eth', MONEY, nullable=False, comment='Ethereum quantity'),
        sa.Column('solana', MONEY, nullable=False, comment='Solana quantity'),
        sa.Column('tether', MONEY, nullable=False, comment='Tether quantity'),
        sa.Column('xrp', MONEY, nullable=False, comment='XRP quantity'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('user_id'),
    )

    op.create_table(
        'live_prices',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('asset_id', sa.Integer(), nullable=False, comment='CoinMarketCap asset id'),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('symbol', sa.String(length=20), nullable=False, comment='Ticker, uppercase'),
        sa.Column('slug', sa.String(length=100), nullable=False, comment='CoinMarketCap slug, lowercase'),
        sa.Column('price', MONEY, nullable=False),
        sa.Column('volume_24h', sa.Numeric(32, 8), nullable=True),
        sa.Column('volume_change_24h', sa.Numeric(20, 8), nullable=True),
        sa.Column('percent_change_1h', sa.Numeric(20, 8), nullable=True),
        sa.Column('percent_change_24h', sa.Numeric(20, 8), nullable=True),
        sa.Column('last_updated', sa.DateTime(timezone=True), nullable=True, comment='Quote timestamp reported by CoinMarketCap'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, comment='Last refresh by the price feed'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_live_prices_asset_id'), 'live_prices', ['asset_id'], unique=True)

    op.create_table(
        'job_markers',
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.Column('marked_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('name'),
    )

    op.create_table(
        'plans',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('limit_min', MONEY, nullable=False, comment='Minimum investable amount'),
        sa.Column('limit_max', MONEY, nullable=False, comment='Maximum investable amount'),
        sa.Column('roi_percentage', PERCENT, nullable=False),
        sa.Column('frequency', sa.Integer(), nullable=False),
        sa.Column('duration_days', sa.Integer(), nullable=False),
        sa.Column('details', sa.String(length=200), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'investments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('plan_name', sa.String(length=100), nullable=False),
        sa.Column('plan_limit_min', MONEY, nullable=False),
        sa.Column('plan_limit_max', MONEY, nullable=False),
        sa.Column('plan_roi_percentage', PERCENT, nullable=False),
        sa.Column('plan_duration_days', sa.Integer(), nullable=False),
        sa.Column('plan_details', sa.String(length=200), nullable=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('user_email', sa.String(length=255), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('frequency', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('start_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expiry_date', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_investments_user_id'), 'investments', ['user_id'], unique=False)
    op.create_index('ix_investments_status_expiry', 'investments', ['status', 'expiry_date'], unique=False)

    op.create_table(
        'live_trades',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('type', sa.String(length=20), nullable=False, comment='cryptocurrency / forex / stock'),
        sa.Column('currency_pair', sa.String(length=20), nullable=False),
        sa.Column('action', sa.String(length=10), nullable=False, comment='buy / sell'),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('entry_price', MONEY, nullable=False),
        sa.Column('stop_loss', MONEY, nullable=False),
        sa.Column('take_profit', MONEY, nullable=False),
        sa.Column('exit_price', MONEY, nullable=True),
        sa.Column('profit_loss', MONEY, nullable=True),
        sa.Column('time', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False, comment='Owning user (weak reference)'),
        sa.Column('user_email', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('closed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('duration', sa.Numeric(20, 3), nullable=True, comment='Seconds between created_at and closed_at'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_live_trades_user_id'), 'live_trades', ['user_id'], unique=False)

    op.create_table(
        'admin_refresh_tokens',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('token', sa.String(length=512), nullable=False),
        sa.Column('expiry_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('token'),
    )
    op.create_index(op.f('ix_admin_refresh_tokens_expiry_date'), 'admin_refresh_tokens', ['expiry_date'], unique=False)

    op.create_table(
        'topups',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('user_full_name', sa.String(length=255), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('affected_balance', sa.String(length=30), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_topups_user_id'), 'topups', ['user_id'], unique=False)

    op.create_table(
        'deposits',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('original_amount', MONEY, nullable=False),
        sa.Column('updated_amount', MONEY, nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_deposits_user_id'), 'deposits', ['user_id'], unique=False)

    op.create_table(
        'withdrawal_requests',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_withdrawal_requests_user_id'), 'withdrawal_requests', ['user_id'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_withdrawal_requests_user_id'), table_name='withdrawal_requests')
    op.drop_table('withdrawal_requests')
    op.drop_index(op.f('ix_deposits_user_id'), table_name='deposits')
    op.drop_table('deposits')
    op.drop_index(op.f('ix_topups_user_id'), table_name='topups')
    op.drop_table('topups')
    op.drop_index(op.f('ix_admin_refresh_tokens_expiry_date'), table_name='admin_refresh_tokens')
    op.drop_table('admin_refresh_tokens')
    op.drop_index(op.f('ix_live_trades_user_id'), table_name='live_trades')
    op.drop_table('live_trades')
    op.drop_index('ix_investments_status_expiry', table_name='investments')
    op.drop_index(op.f('ix_investments_user_id'), table_name='investments')
    op.drop_table('investments')
    op.drop_table('plans')
    op.drop_table('job_markers')
    op.drop_index(op.f('ix_live_prices_asset_id'), table_name='live_prices')
    op.drop_table('live_prices')
    op.drop_table('wallets')
    op.drop_index(op.f('ix_users_email'), table_name='users')
    op.drop_table('users')
