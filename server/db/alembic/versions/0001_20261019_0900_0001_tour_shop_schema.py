"""Tour shop schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '0001'
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _uuid() -> postgresql.UUID:
    return postgresql.UUID(as_uuid=True)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
    ]


def upgrade() -> None:
    """Upgrade database schema."""
    # Catalog
    op.create_table('tours',
        sa.Column('id', _uuid(), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('start_location', sa.String(length=255), nullable=False),
        sa.Column('end_location', sa.String(length=255), nullable=False),
        sa.Column('duration_days', sa.Integer(), nullable=False),
        sa.Column('max_group_size', sa.Integer(), server_default='16', nullable=False),
        sa.Column('overview', sa.Text(), nullable=True),
        sa.Column('price_from', sa.Integer(), nullable=False),
        sa.Column('currency', sa.String(length=3), server_default='USD', nullable=False),
        *_timestamps(),
        sa.CheckConstraint('duration_days > 0', name='ck_tour_duration_positive'),
        sa.CheckConstraint('max_group_size > 0', name='ck_tour_group_size_positive'),
        sa.CheckConstraint('price_from >= 0', name='ck_tour_price_from_non_negative'),
        sa.CheckConstraint('length(currency) = 3', name='ck_tour_currency_length'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
        sa.UniqueConstraint('slug')
    )
    op.create_index(op.f('ix_tours_code'), 'tours', ['code'], unique=False)
    op.create_index(op.f('ix_tours_slug'), 'tours', ['slug'], unique=False)
    op.create_index(op.f('ix_tours_title'), 'tours', ['title'], unique=False)

    op.create_table('trip_extras',
        sa.Column('id', _uuid(), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('tour_id', _uuid(), nullable=False),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('price', sa.Integer(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.CheckConstraint('price IS NULL OR price >= 0', name='ck_trip_extra_price_non_negative'),
        sa.ForeignKeyConstraint(['tour_id'], ['tours.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_trip_extras_tour_id'), 'trip_extras', ['tour_id'], unique=False)

    op.create_table('tour_departures',
        sa.Column('id', _uuid(), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('tour_id', _uuid(), nullable=False),
        sa.Column('departure_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('price', sa.Integer(), nullable=True),
        sa.Column('discounted_price', sa.Integer(), nullable=True),
        sa.Column('available_spaces', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=20), server_default='AVAILABLE', nullable=False),
        *_timestamps(),
        sa.CheckConstraint('available_spaces >= 0', name='ck_departure_spaces_non_negative'),
        sa.CheckConstraint('end_date >= departure_date', name='ck_departure_end_after_start'),
        sa.CheckConstraint('price IS NULL OR price >= 0', name='ck_departure_price_non_negative'),
        sa.CheckConstraint(
            'discounted_price IS NULL OR discounted_price >= 0',
            name='ck_departure_discounted_price_non_negative'
        ),
        sa.ForeignKeyConstraint(['tour_id'], ['tours.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_tour_departures_departure_date'), 'tour_departures', ['departure_date'], unique=False)
    op.create_index(op.f('ix_tour_departures_status'), 'tour_departures', ['status'], unique=False)
    op.create_index(op.f('ix_tour_departures_tour_id'), 'tour_departures', ['tour_id'], unique=False)

    op.create_table('room_options',
        sa.Column('id', _uuid(), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('tour_id', _uuid(), nullable=False),
        sa.Column('room_type', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('price_add', sa.Integer(), server_default='0', nullable=False),
        sa.Column('is_default', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('price_add >= 0', name='ck_room_option_price_add_non_negative'),
        sa.ForeignKeyConstraint(['tour_id'], ['tours.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_room_options_tour_id'), 'room_options', ['tour_id'], unique=False)

    # Bookings
    op.create_table('bookings',
        sa.Column('id', _uuid(), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('booking_number', sa.String(length=16), nullable=False),
        sa.Column('tour_id', _uuid(), nullable=False),
        sa.Column('departure_id', _uuid(), nullable=False),
        sa.Column('room_option_id', _uuid(), nullable=True),
        sa.Column('checkout_session_id', _uuid(), nullable=True),
        sa.Column('customer_ref', sa.String(length=128), nullable=False),
        sa.Column('start_date', sa.Date(), nullable=False),
        sa.Column('end_date', sa.Date(), nullable=False),
        sa.Column('num_guests', sa.Integer(), nullable=False),
        sa.Column('total_price', sa.Integer(), nullable=False),
        sa.Column('amount_due_now', sa.Integer(), nullable=False),
        sa.Column('deposit_paid', sa.Integer(), nullable=True),
        sa.Column('balance_due', sa.Integer(), server_default='0', nullable=False),
        sa.Column('donation', sa.Integer(), server_default='0', nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('status', sa.String(length=20), server_default='PENDING', nullable=False),
        sa.Column('payment_status', sa.String(length=20), server_default='PENDING', nullable=False),
        sa.Column('payment_type', sa.String(length=20), server_default='FULL_PAYMENT', nullable=False),
        sa.Column('payment_order_id', sa.String(length=64), nullable=True),
        sa.Column('payment_capture_id', sa.String(length=64), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('capture_started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('special_requests', sa.Text(), nullable=True),
        sa.Column('emergency_contact', sa.JSON(), nullable=True),
        sa.Column('insurance_required', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('insurance_details', sa.Text(), nullable=True),
        sa.Column('updates_consent', sa.Boolean(), server_default=sa.false(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('num_guests > 0', name='ck_booking_num_guests_positive'),
        sa.CheckConstraint('total_price >= 0', name='ck_booking_total_non_negative'),
        sa.CheckConstraint('amount_due_now >= 0', name='ck_booking_due_now_non_negative'),
        sa.CheckConstraint('amount_due_now <= total_price', name='ck_booking_due_now_lte_total'),
        sa.CheckConstraint('balance_due >= 0', name='ck_booking_balance_non_negative'),
        sa.CheckConstraint('length(customer_ref) > 0', name='ck_booking_customer_ref_not_empty'),
        sa.ForeignKeyConstraint(['tour_id'], ['tours.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['departure_id'], ['tour_departures.id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['room_option_id'], ['room_options.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('booking_number'),
        sa.UniqueConstraint('payment_order_id')
    )
    op.create_index(op.f('ix_bookings_booking_number'), 'bookings', ['booking_number'], unique=False)
    op.create_index(op.f('ix_bookings_checkout_session_id'), 'bookings', ['checkout_session_id'], unique=False)
    op.create_index(op.f('ix_bookings_customer_ref'), 'bookings', ['customer_ref'], unique=False)
    op.create_index(op.f('ix_bookings_departure_id'), 'bookings', ['departure_id'], unique=False)
    op.create_index(op.f('ix_bookings_expires_at'), 'bookings', ['expires_at'], unique=False)
    op.create_index(op.f('ix_bookings_payment_order_id'), 'bookings', ['payment_order_id'], unique=False)
    op.create_index(op.f('ix_bookings_payment_status'), 'bookings', ['payment_status'], unique=False)
    op.create_index(op.f('ix_bookings_status'), 'bookings', ['status'], unique=False)
    op.create_index(op.f('ix_bookings_tour_id'), 'bookings', ['tour_id'], unique=False)

    op.create_table('booking_travelers',
        sa.Column('id', _uuid(), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('booking_id', _uuid(), nullable=False),
        sa.Column('position', sa.Integer(), server_default='0', nullable=False),
        sa.Column('title', sa.String(length=16), nullable=False),
        sa.Column('first_name', sa.String(length=100), nullable=False),
        sa.Column('middle_name', sa.String(length=100), nullable=True),
        sa.Column('last_name', sa.String(length=100), nullable=False),
        sa.Column('date_of_birth', sa.Date(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('phone', sa.String(length=32), nullable=False),
        sa.Column('nationality', sa.String(length=64), nullable=True),
        sa.Column('passport_no', sa.String(length=32), nullable=True),
        sa.Column('address', sa.Text(), nullable=False),
        sa.Column('is_lead_guest', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_booking_travelers_booking_id'), 'booking_travelers', ['booking_id'], unique=False)
    op.create_index(op.f('ix_booking_travelers_email'), 'booking_travelers', ['email'], unique=False)

    op.create_table('booking_room_guests',
        sa.Column('id', _uuid(), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('booking_id', _uuid(), nullable=False),
        sa.Column('room_option_id', _uuid(), nullable=True),
        sa.Column('room_type', sa.String(length=100), nullable=False),
        sa.Column('guest_name', sa.String(length=255), nullable=False),
        sa.Column('share_with', sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['room_option_id'], ['room_options.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_booking_room_guests_booking_id'), 'booking_room_guests', ['booking_id'], unique=False)

    op.create_table('booking_add_ons',
        sa.Column('id', _uuid(), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('booking_id', _uuid(), nullable=False),
        sa.Column('trip_extra_id', _uuid(), nullable=True),
        sa.Column('type', sa.String(length=32), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('unit_price', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), server_default='1', nullable=False),
        sa.CheckConstraint('quantity > 0', name='ck_booking_add_on_quantity_positive'),
        sa.CheckConstraint('unit_price >= 0', name='ck_booking_add_on_price_non_negative'),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['trip_extra_id'], ['trip_extras.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_booking_add_ons_booking_id'), 'booking_add_ons', ['booking_id'], unique=False)

    op.create_table('booking_otps',
        sa.Column('id', _uuid(), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('booking_id', _uuid(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('code_hash', sa.String(length=64), nullable=False),
        sa.Column('attempts', sa.Integer(), server_default='0', nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('used_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('attempts >= 0', name='ck_booking_otp_attempts_non_negative'),
        sa.CheckConstraint('length(code_hash) = 64', name='ck_booking_otp_hash_length'),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_booking_otps_booking_id'), 'booking_otps', ['booking_id'], unique=False)
    op.create_index(op.f('ix_booking_otps_expires_at'), 'booking_otps', ['expires_at'], unique=False)

    # Checkout
    op.create_table('checkout_sessions',
        sa.Column('id', _uuid(), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('tour_id', _uuid(), nullable=False),
        sa.Column('customer_ref', sa.String(length=128), nullable=False),
        sa.Column('current_step', sa.Integer(), server_default='1', nullable=False),
        sa.Column('max_step_reached', sa.Integer(), server_default='1', nullable=False),
        sa.Column('step_data', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=20), server_default='IN_PROGRESS', nullable=False),
        sa.Column('booking_id', _uuid(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint('current_step >= 1 AND current_step <= 5', name='ck_checkout_step_range'),
        sa.CheckConstraint('max_step_reached >= current_step', name='ck_checkout_max_step_gte_current'),
        sa.ForeignKeyConstraint(['tour_id'], ['tours.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['booking_id'], ['bookings.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_checkout_sessions_customer_ref'), 'checkout_sessions', ['customer_ref'], unique=False)
    op.create_index(op.f('ix_checkout_sessions_status'), 'checkout_sessions', ['status'], unique=False)
    op.create_index(op.f('ix_checkout_sessions_tour_id'), 'checkout_sessions', ['tour_id'], unique=False)

    op.create_table('idempotency_records',
        sa.Column('id', _uuid(), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('idempotency_key', sa.String(length=255), nullable=False),
        sa.Column('method', sa.String(length=100), nullable=False),
        sa.Column('owner_ref', sa.String(length=128), server_default='', nullable=False),
        sa.Column('request_body_hash', sa.String(length=64), nullable=False),
        sa.Column('response_status_code', sa.Integer(), nullable=False),
        sa.Column('response_body', sa.Text(), nullable=False),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.CheckConstraint('length(idempotency_key) > 0', name='ck_idempotency_key_not_empty'),
        sa.CheckConstraint('length(method) > 0', name='ck_idempotency_method_not_empty'),
        sa.CheckConstraint('length(request_body_hash) = 64', name='ck_idempotency_hash_length'),
        sa.CheckConstraint(
            'response_status_code >= 100 AND response_status_code <= 599',
            name='ck_idempotency_status_code_valid'
        ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('idempotency_key', 'method', 'owner_ref', name='uq_idempotency_key_method_owner')
    )
    op.create_index(op.f('ix_idempotency_records_expires_at'), 'idempotency_records', ['expires_at'], unique=False)
    op.create_index(op.f('ix_idempotency_records_idempotency_key'), 'idempotency_records', ['idempotency_key'], unique=False)
    op.create_index(op.f('ix_idempotency_records_method'), 'idempotency_records', ['method'], unique=False)


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table('idempotency_records')
    op.drop_table('checkout_sessions')
    op.drop_table('booking_otps')
    op.drop_table('booking_add_ons')
    op.drop_table('booking_room_guests')
    op.drop_table('booking_travelers')
    op.drop_table('bookings')
    op.drop_table('room_options')
    op.drop_table('tour_departures')
    op.drop_table('trip_extras')
    op.drop_table('tours')
