"""create order, assignment and billing tables

Revision ID: 0001_create_core_tables
Revises:
Create Date: 2026-10-17 00:00:00

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = '0001_create_core_tables'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

TS = sa.DateTime(timezone=True)
MONEY = sa.Numeric(12, 2)


def _ts_cols():
    return [
        sa.Column('created_at', TS, nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', TS, nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # ---- reference data ----
    op.create_table(
        'statuses',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text),
        sa.Column('sort_order', sa.Integer, nullable=False, server_default=sa.text('0')),
        sa.UniqueConstraint('name', name='uq_statuses_name'),
    )
    op.create_table(
        'media_formats',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text),
        sa.UniqueConstraint('name', name='uq_media_formats_name'),
    )
    op.create_table(
        'billing_states',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text),
        sa.UniqueConstraint('name', name='uq_billing_states_name'),
    )

    # ---- registries (owned elsewhere, read here) ----
    op.create_table(
        'users',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(length=255)),
        sa.Column('first_name', sa.String(length=120)),
        sa.Column('last_name', sa.String(length=120)),
        sa.Column('email', sa.String(length=255)),
        sa.Column('role', sa.String(length=32), nullable=False, server_default=sa.text("'user'")),
        sa.Column('is_available', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.UniqueConstraint('email', name='uq_users_email'),
    )
    op.create_table(
        'books',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('author', sa.String(length=255)),
        sa.Column('isbn', sa.String(length=32)),
        sa.Column('reading_duration_minutes', sa.Integer),
    )

    # ---- bills ----
    op.create_table(
        'bills',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('client_id', sa.Integer, sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('state_id', sa.Integer, sa.ForeignKey('billing_states.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('creation_date', TS, nullable=False),
        sa.Column('issue_date', TS),
        sa.Column('payment_date', TS),
        sa.Column('invoice_amount', MONEY, nullable=False),
        *_ts_cols(),
        sa.CheckConstraint('issue_date IS NULL OR issue_date >= creation_date',
                           name='ck_bills_issue_after_creation'),
        sa.CheckConstraint('payment_date IS NULL OR issue_date IS NULL OR payment_date >= issue_date',
                           name='ck_bills_payment_after_issue'),
        sa.CheckConstraint('invoice_amount >= 0', name='ck_bills_amount_non_negative'),
    )
    op.create_index('ix_bills_client_id', 'bills', ['client_id'])
    op.create_index('ix_bills_state_id', 'bills', ['state_id'])

    # ---- orders ----
    op.create_table(
        'orders',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('aveugle_id', sa.Integer, sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('catalogue_id', sa.Integer, sa.ForeignKey('books.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('request_received_date', TS, nullable=False),
        sa.Column('status_id', sa.Integer, sa.ForeignKey('statuses.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('is_duplication', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('media_format_id', sa.Integer, sa.ForeignKey('media_formats.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('delivery_method', sa.String(length=20), nullable=False),
        sa.Column('lent_physical_book', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('processed_by_staff_id', sa.Integer, sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('created_date', TS, nullable=False),
        sa.Column('closure_date', TS),
        sa.Column('cost', MONEY),
        sa.Column('billing_status', sa.String(length=16), nullable=False, server_default='UNBILLED'),
        sa.Column('bill_id', sa.Integer, sa.ForeignKey('bills.id', ondelete='RESTRICT')),
        sa.Column('notes', sa.Text),
        *_ts_cols(),
        sa.CheckConstraint('closure_date IS NULL OR closure_date >= created_date',
                           name='ck_orders_closure_after_created'),
        sa.CheckConstraint("billing_status <> 'PAID' OR bill_id IS NOT NULL",
                           name='ck_orders_paid_requires_bill'),
        sa.CheckConstraint('cost IS NULL OR cost >= 0', name='ck_orders_cost_non_negative'),
        sa.CheckConstraint("delivery_method IN ('RETRAIT', 'ENVOI', 'NON_APPLICABLE')",
                           name='ck_orders_delivery_method'),
        sa.CheckConstraint("billing_status IN ('UNBILLED', 'BILLED', 'PAID')",
                           name='ck_orders_billing_status'),
        comment='Patron requests for recorded titles.',
    )
    op.create_index('ix_orders_request_received_date', 'orders', ['request_received_date'])
    op.create_index('ix_orders_aveugle_id', 'orders', ['aveugle_id'])
    op.create_index('ix_orders_catalogue_id', 'orders', ['catalogue_id'])
    op.create_index('ix_orders_status_id', 'orders', ['status_id'])
    op.create_index('ix_orders_billing_status', 'orders', ['billing_status'])
    op.create_index('ix_orders_bill_id', 'orders', ['bill_id'])

    # ---- assignments ----
    op.create_table(
        'assignments',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('catalogue_id', sa.Integer, sa.ForeignKey('books.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('order_id', sa.Integer, sa.ForeignKey('orders.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('status_id', sa.Integer, sa.ForeignKey('statuses.id', ondelete='RESTRICT')),
        sa.Column('reception_date', TS),
        sa.Column('sent_to_reader_date', TS),
        sa.Column('returned_to_eca_date', TS),
        sa.Column('processed_by_staff_id', sa.Integer, sa.ForeignKey('users.id', ondelete='SET NULL')),
        sa.Column('notes', sa.Text),
        *_ts_cols(),
        sa.CheckConstraint(
            'reception_date IS NULL OR sent_to_reader_date IS NULL OR reception_date <= sent_to_reader_date',
            name='ck_assignments_reception_before_sent'),
        sa.CheckConstraint(
            'sent_to_reader_date IS NULL OR returned_to_eca_date IS NULL OR sent_to_reader_date <= returned_to_eca_date',
            name='ck_assignments_sent_before_returned'),
        sa.CheckConstraint(
            'reception_date IS NULL OR returned_to_eca_date IS NULL OR reception_date <= returned_to_eca_date',
            name='ck_assignments_reception_before_returned'),
    )
    op.create_index('ix_assignments_order_id', 'assignments', ['order_id'])

    op.create_table(
        'assignment_readers',
        sa.Column('id', sa.Integer, primary_key=True, autoincrement=True),
        sa.Column('assignment_id', sa.Integer, sa.ForeignKey('assignments.id', ondelete='CASCADE'), nullable=False),
        sa.Column('reader_id', sa.Integer, sa.ForeignKey('users.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('assigned_date', TS, nullable=False),
        sa.Column('notes', sa.Text),
    )
    op.create_index('ix_assignment_readers_assignment_assigned', 'assignment_readers',
                    ['assignment_id', 'assigned_date'])
    op.create_index('ix_assignment_readers_reader_id', 'assignment_readers', ['reader_id'])

    # Seed data: default vocabulary, editable by operators afterwards
    op.bulk_insert(
        sa.table('statuses',
                 sa.column('name', sa.String),
                 sa.column('description', sa.Text),
                 sa.column('sort_order', sa.Integer)),
        [
            {'name': 'En attente de validation', 'description': 'Demande reçue, à valider', 'sort_order': 10},
            {'name': 'Attente envoi vers lecteur', 'description': 'Livre prêt à partir chez un lecteur', 'sort_order': 20},
            {'name': 'En cours de traitement', 'description': 'Enregistrement en cours', 'sort_order': 30},
            {'name': 'Commande terminée', 'description': 'Enregistrement livré', 'sort_order': 40},
            {'name': 'Commande annulée', 'description': 'Demande abandonnée', 'sort_order': 50},
        ]
    )
    op.bulk_insert(
        sa.table('media_formats',
                 sa.column('name', sa.String),
                 sa.column('description', sa.Text)),
        [
            {'name': 'CD DAISY', 'description': 'Livre audio DAISY sur CD'},
            {'name': 'Clé USB', 'description': 'Fichiers MP3 sur clé USB'},
            {'name': 'Téléchargement', 'description': 'Fichiers mis à disposition en ligne'},
        ]
    )
    op.bulk_insert(
        sa.table('billing_states',
                 sa.column('name', sa.String),
                 sa.column('description', sa.Text)),
        [
            {'name': 'Brouillon', 'description': 'Facture en préparation'},
            {'name': 'En attente', 'description': "En attente d'émission"},
            {'name': 'Émise', 'description': 'Facture envoyée au client'},
            {'name': 'Payée', 'description': 'Règlement reçu'},
            {'name': 'Annulée', 'description': 'Facture annulée'},
            {'name': 'En retard', 'description': 'Paiement en retard'},
        ]
    )


def downgrade() -> None:
    op.drop_table('assignment_readers')
    op.drop_table('assignments')
    op.drop_table('orders')
    op.drop_table('bills')
    op.drop_table('books')
    op.drop_table('users')
    op.drop_table('billing_states')
    op.drop_table('media_formats')
    op.drop_table('statuses')
