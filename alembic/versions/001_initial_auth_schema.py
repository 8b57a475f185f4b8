"""Initial auth schema

Revision ID: 001
Revises: None
Create Date: 2026-10-19

Creates:
- users (credentials, refresh-token digest, reset token, TOTP state)
- pending_users (registrations awaiting email confirmation)
- verification_codes (one outstanding code per email)
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import ARRAY


# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ==========================================================================
    # USERS TABLE - Authentication and identity
    # ==========================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(255), unique=True, nullable=False, index=True),
        sa.Column('username', sa.String(255), nullable=True),
        sa.Column('password', sa.Text(), nullable=False),
        sa.Column('role', sa.String(20), nullable=False, server_default='USER'),
        sa.Column('refresh_token_hash', sa.String(64), nullable=True),
        sa.Column('refresh_token_expires', sa.Integer(), nullable=True),
        sa.Column('reset_password_token', sa.String(64), nullable=True, unique=True),
        sa.Column('reset_password_expires', sa.Integer(), nullable=True),
        sa.Column('totp_secret', sa.Text(), nullable=True),
        sa.Column('totp_enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('totp_recovery_codes', ARRAY(sa.Text()), nullable=False, server_default='{}'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), onupdate=sa.func.now()),
        sa.CheckConstraint(
            'NOT totp_enabled OR totp_secret IS NOT NULL',
            name='ck_users_totp_secret_present',
        ),
        sa.CheckConstraint(
            '(refresh_token_hash IS NULL) = (refresh_token_expires IS NULL)',
            name='ck_users_refresh_token_pair',
        ),
    )

    # ==========================================================================
    # PENDING_USERS TABLE - Registrations awaiting confirmation
    # ==========================================================================
    op.create_table(
        'pending_users',
        sa.Column('email', sa.String(255), primary_key=True),
        sa.Column('password', sa.Text(), nullable=False),
        sa.Column('username', sa.String(255), nullable=True),
        sa.Column('verified', sa.Boolean(), server_default=sa.false()),
        sa.Column('created_at', sa.Integer(), nullable=False, index=True),
        sa.Column('updated_at', sa.Integer(), nullable=False),
    )

    # ==========================================================================
    # VERIFICATION_CODES TABLE - Email verification codes
    # ==========================================================================
    op.create_table(
        'verification_codes',
        sa.Column('email', sa.String(255), primary_key=True),
        sa.Column('code', sa.String(6), nullable=False),
        sa.Column('expires_at', sa.Integer(), nullable=False, index=True),
        sa.Column('attempts', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.Integer(), nullable=False),
    )


def downgrade() -> None:
    op.drop_table('verification_codes')
    op.drop_table('pending_users')
    op.drop_table('users')
