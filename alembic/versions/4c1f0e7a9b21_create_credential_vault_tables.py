"""Create credential vault tables

Revision ID: 4c1f0e7a9b21
Revises:
Create Date: 2026-01-28 10:12:44.318402

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '4c1f0e7a9b21'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.Text().with_variant(postgresql.JSONB(), "postgresql")


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        'agents',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('required_platforms', JSON_TYPE, nullable=False),
        sa.Column('credit_cost', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        'credential_platform_definitions',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('platform_slug', sa.String(length=50), nullable=False, unique=True),
        sa.Column('platform_name', sa.String(length=100), nullable=False),
        sa.Column('credential_type', sa.String(length=20), nullable=False),
        sa.Column('field_schema', JSON_TYPE, nullable=False),
        sa.Column('oauth_config', JSON_TYPE, nullable=True),
        sa.Column('icon_url', sa.Text(), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('documentation_url', sa.Text(), nullable=True),
        sa.Column('setup_instructions', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )

    op.create_table(
        'user_agent_credentials',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('agent_id', sa.String(length=36), nullable=False),
        sa.Column('platform_slug', sa.String(length=50), nullable=False),
        sa.Column('credential_type', sa.String(length=20), nullable=False),
        # api_key / basic_auth / bearer_token payload
        sa.Column('encrypted_data', sa.Text(), nullable=True),
        sa.Column('encryption_iv', sa.String(length=64), nullable=True),
        sa.Column('encryption_tag', sa.String(length=64), nullable=True),
        sa.Column('encryption_key_version', sa.Integer(), nullable=False, server_default='1'),
        # oauth2 payload
        sa.Column('access_token_encrypted', sa.Text(), nullable=True),
        sa.Column('refresh_token_encrypted', sa.Text(), nullable=True),
        sa.Column('token_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('token_scope', sa.Text(), nullable=True),
        sa.Column('platform_user_id', sa.Text(), nullable=True),
        sa.Column('platform_user_email', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('last_refreshed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('metadata', JSON_TYPE, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint(
            'user_id', 'agent_id', 'platform_slug', name='uq_user_agent_credentials_triple'
        ),
    )
    op.create_index(
        'ix_user_agent_credentials_user_id', 'user_agent_credentials', ['user_id']
    )
    op.create_index(
        'ix_user_agent_credentials_platform',
        'user_agent_credentials',
        ['platform_slug', 'user_id'],
    )
    # Refresh sweeps only look at live OAuth rows
    op.create_index(
        'ix_user_agent_credentials_token_expires_at',
        'user_agent_credentials',
        ['token_expires_at'],
        postgresql_where=sa.text("credential_type = 'oauth2' AND is_active"),
    )

    op.create_table(
        'credit_purchases',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('user_id', sa.String(length=36), nullable=False),
        sa.Column('package_id', sa.String(length=36), nullable=False),
        sa.Column('amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('payment_id', sa.String(length=100), nullable=False, unique=True),
        sa.Column('order_id', sa.String(length=100), nullable=True),
        sa.Column('credits', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_credit_purchases_user_id', 'credit_purchases', ['user_id'])

    op.create_table(
        'user_credit_balances',
        sa.Column('user_id', sa.String(length=36), primary_key=True),
        sa.Column('credits', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('user_credit_balances')
    op.drop_index('ix_credit_purchases_user_id', table_name='credit_purchases')
    op.drop_table('credit_purchases')
    op.drop_index('ix_user_agent_credentials_token_expires_at', table_name='user_agent_credentials')
    op.drop_index('ix_user_agent_credentials_platform', table_name='user_agent_credentials')
    op.drop_index('ix_user_agent_credentials_user_id', table_name='user_agent_credentials')
    op.drop_table('user_agent_credentials')
    op.drop_table('credential_platform_definitions')
    op.drop_table('agents')
