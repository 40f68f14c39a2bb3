# src/ECA/services/reference.py
from __future__ import annotations

from typing import Iterable, List, Sequence

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession

from ECA.app_logger import get_logger
from ECA.db.models import BillingState, MediaFormat, Status

log = get_logger("reference")

# (name, description, sort_order)
DEFAULT_STATUSES: Sequence[tuple[str, str, int]] = (
    ("En attente de validation", "Demande reçue, à valider", 10),
    ("Attente envoi vers lecteur", "Livre prêt à partir chez un lecteur", 20),
    ("En cours de traitement", "Enregistrement en cours", 30),
    ("Commande terminée", "Enregistrement livré", 40),
    ("Commande annulée", "Demande abandonnée", 50),
)

DEFAULT_MEDIA_FORMATS: Sequence[tuple[str, str]] = (
    ("CD DAISY", "Livre audio DAISY sur CD"),
    ("Clé USB", "Fichiers MP3 sur clé USB"),
    ("Téléchargement", "Fichiers mis à disposition en ligne"),
)

DEFAULT_BILLING_STATES: Sequence[tuple[str, str]] = (
    ("Brouillon", "Facture en préparation"),
    ("En attente", "En attente d'émission"),
    ("Émise", "Facture envoyée au client"),
    ("Payée", "Règlement reçu"),
    ("Annulée", "Facture annulée"),
    ("En retard", "Paiement en retard"),
)


async def list_statuses(session: AsyncSession) -> List[Status]:
    return list((await session.scalars(sa.select(Status).order_by(Status.sort_order, Status.name))).all())


async def list_media_formats(session: AsyncSession) -> List[MediaFormat]:
    return list((await session.scalars(sa.select(MediaFormat).order_by(MediaFormat.name))).all())


async def list_billing_states(session: AsyncSession) -> List[BillingState]:
    return list((await session.scalars(sa.select(BillingState).order_by(BillingState.id))).all())


async def _existing_names(session: AsyncSession, model) -> set[str]:
    return set((await session.scalars(sa.select(model.name))).all())


async def _insert_missing(session: AsyncSession, model, rows: Iterable[dict]) -> int:
    have = await _existing_names(session, model)
    new = [model(**row) for row in rows if row["name"] not in have]
    session.add_all(new)
    return len(new)


async def seed_reference_data(session: AsyncSession) -> dict[str, int]:
    """Insert the default vocabulary; rows whose name already exists are left alone."""
    counts = {
        "statuses": await _insert_missing(
            session, Status,
            ({"name": n, "description": d, "sort_order": o} for n, d, o in DEFAULT_STATUSES),
        ),
        "media_formats": await _insert_missing(
            session, MediaFormat,
            ({"name": n, "description": d} for n, d in DEFAULT_MEDIA_FORMATS),
        ),
        "billing_states": await _insert_missing(
            session, BillingState,
            ({"name": n, "description": d} for n, d in DEFAULT_BILLING_STATES),
        ),
    }
    await session.commit()
    log.info("reference seed inserted %s", counts)
    return counts
