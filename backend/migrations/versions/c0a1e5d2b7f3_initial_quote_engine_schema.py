"""initial quote engine schema

Revision ID: c0a1e5d2b7f3
Revises:
Create Date: 2026-10-19 00:00:00.000000

This migration creates the complete CutQuote schema from scratch:
- users / session_tokens: identity collaborator view + bearer tokens
- materials: sheet material catalog (soft delete)
- quotes / line_items: lifecycle state machine + priced parts
- comments / email_queue: communication trail + outbound notifications
- document_sequences / orders: numbering + production orders
- audit_log: append-only action log
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'c0a1e5d2b7f3'
down_revision = None
branch_labels = None
depends_on = None


def _timestamp(name, nullable=False, server_default=True):
    return sa.Column(
        name,
        sa.DateTime(timezone=True),
        nullable=nullable,
        server_default=sa.text('CURRENT_TIMESTAMP') if server_default else None,
    )


def upgrade():
    # ============================================================================
    # users / session_tokens
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('company_name', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=64), nullable=True),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        _timestamp('created_at'),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)
    op.create_index('ix_users_role', 'users', ['role'])

    op.create_table(
        'session_tokens',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('token_hash', sa.String(length=255), nullable=False),
        _timestamp('created_at'),
        _timestamp('last_used_at'),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_revoked', sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_session_tokens_user_id', 'session_tokens', ['user_id'])
    op.create_index('ix_session_tokens_token_hash', 'session_tokens', ['token_hash'], unique=True)
    op.create_index('ix_session_tokens_expires_at', 'session_tokens', ['expires_at'])
    op.create_index('ix_session_tokens_user_active', 'session_tokens', ['user_id', 'is_revoked'])

    # ============================================================================
    # materials
    # ============================================================================
    op.create_table(
        'materials',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('thickness_mm', sa.Numeric(8, 2), nullable=False),
        sa.Column('price_per_sqm', sa.Numeric(12, 2), nullable=False),
        sa.Column('cutting_speed_factor', sa.Numeric(6, 2), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        _timestamp('created_at'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_materials_is_active', 'materials', ['is_active'])

    # ============================================================================
    # quotes: lifecycle + aggregates + revisions (parent = lineage root)
    # ============================================================================
    op.create_table(
        'quotes',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('quote_number', sa.String(length=32), nullable=False),
        sa.Column('revision_number', sa.Integer(), nullable=False),
        sa.Column('parent_quote_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('operator_id', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('deadline', sa.Date(), nullable=True),
        sa.Column('shipping_address', sa.JSON(), nullable=False),
        sa.Column('total_cutting_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('total_customer_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('production_time_hours', sa.Numeric(10, 2), nullable=True),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        _timestamp('sent_at', nullable=True, server_default=False),
        _timestamp('accepted_at', nullable=True, server_default=False),
        _timestamp('declined_at', nullable=True, server_default=False),
        sa.Column('payment_status', sa.String(length=16), nullable=False),
        sa.Column('payment_reference', sa.String(length=128), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['parent_quote_id'], ['quotes.id']),
        sa.ForeignKeyConstraint(['customer_id'], ['users.id']),
        sa.ForeignKeyConstraint(['operator_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('payment_reference'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_quotes_quote_number', 'quotes', ['quote_number'], unique=True)
    op.create_index('ix_quotes_parent_quote_id', 'quotes', ['parent_quote_id'])
    op.create_index('ix_quotes_status', 'quotes', ['status'])
    op.create_index('ix_quotes_customer_id', 'quotes', ['customer_id'])
    op.create_index('ix_quotes_operator_id', 'quotes', ['operator_id'])
    op.create_index('ix_quotes_payment_status', 'quotes', ['payment_status'])
    op.create_index('ix_quotes_status_created', 'quotes', ['status', 'created_at'])
    op.create_index('ix_quotes_operator_status', 'quotes', ['operator_id', 'status'])

    op.create_table(
        'line_items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('quote_id', sa.Integer(), nullable=False),
        sa.Column('material_id', sa.Integer(), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('cutting_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('customer_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('production_time_hours', sa.Numeric(10, 2), nullable=True),
        sa.Column('dxf_file_url', sa.String(length=1024), nullable=True),
        sa.Column('dxf_file_name', sa.String(length=255), nullable=True),
        sa.Column('pdf_file_url', sa.String(length=1024), nullable=True),
        sa.Column('pdf_file_name', sa.String(length=255), nullable=True),
        sa.Column('part_dimensions', sa.JSON(), nullable=True),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.CheckConstraint('quantity >= 1', name='ck_line_items_quantity_positive'),
        sa.ForeignKeyConstraint(['quote_id'], ['quotes.id']),
        sa.ForeignKeyConstraint(['material_id'], ['materials.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_line_items_quote_id', 'line_items', ['quote_id'])
    op.create_index('ix_line_items_material_id', 'line_items', ['material_id'])

    # ============================================================================
    # comments / email_queue
    # ============================================================================
    op.create_table(
        'comments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('quote_id', sa.Integer(), nullable=False),
        sa.Column('author_id', sa.Integer(), nullable=True),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('visibility', sa.String(length=16), nullable=False),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['quote_id'], ['quotes.id']),
        sa.ForeignKeyConstraint(['author_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_comments_quote_id', 'comments', ['quote_id'])
    op.create_index('ix_comments_quote_created', 'comments', ['quote_id', 'created_at'])

    op.create_table(
        'email_queue',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('quote_id', sa.Integer(), nullable=True),
        sa.Column('to_email', sa.String(length=255), nullable=False),
        sa.Column('template_id', sa.String(length=64), nullable=False),
        sa.Column('template_data', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['quote_id'], ['quotes.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_email_queue_quote_id', 'email_queue', ['quote_id'])
    op.create_index('ix_email_queue_status_created', 'email_queue', ['status', 'created_at'])

    # ============================================================================
    # document_sequences / orders
    # ============================================================================
    op.create_table(
        'document_sequences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sequence_name', sa.String(length=32), nullable=False),
        sa.Column('next_number', sa.Integer(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sequence_name'),
        sqlite_autoincrement=True
    )

    op.create_table(
        'orders',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('order_number', sa.String(length=32), nullable=False),
        sa.Column('quote_id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('operator_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('payment_status', sa.String(length=16), nullable=False),
        sa.Column('total_amount', sa.Numeric(12, 2), nullable=False),
        sa.Column('shipping_tracking_number', sa.String(length=128), nullable=True),
        sa.Column('invoice_url', sa.String(length=1024), nullable=True),
        _timestamp('production_started_at', nullable=True, server_default=False),
        _timestamp('production_completed_at', nullable=True, server_default=False),
        _timestamp('shipped_at', nullable=True, server_default=False),
        _timestamp('created_at'),
        _timestamp('updated_at'),
        sa.ForeignKeyConstraint(['quote_id'], ['quotes.id']),
        sa.ForeignKeyConstraint(['customer_id'], ['users.id']),
        sa.ForeignKeyConstraint(['operator_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('quote_id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_orders_order_number', 'orders', ['order_number'], unique=True)
    op.create_index('ix_orders_customer_id', 'orders', ['customer_id'])
    op.create_index('ix_orders_operator_id', 'orders', ['operator_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])

    # ============================================================================
    # audit_log
    # ============================================================================
    op.create_table(
        'audit_log',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('table_name', sa.String(length=64), nullable=False),
        sa.Column('record_id', sa.String(length=64), nullable=False),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('new_data', sa.JSON(), nullable=True),
        _timestamp('created_at'),
        sa.ForeignKeyConstraint(['user_id'], ['users.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_audit_log_action', 'audit_log', ['action'])
    op.create_index('ix_audit_log_table_record', 'audit_log', ['table_name', 'record_id'])


def downgrade():
    op.drop_table('audit_log')
    op.drop_table('orders')
    op.drop_table('document_sequences')
    op.drop_table('email_queue')
    op.drop_table('comments')
    op.drop_table('line_items')
    op.drop_table('quotes')
    op.drop_table('materials')
    op.drop_table('session_tokens')
    op.drop_table('users')
