import logging
from datetime import date
from typing import List, Optional

from sqlalchemy.orm import Session

import models
from clock import local_now
from errors import InvalidTransitionError, NotFoundError, PermissionDeniedError, ValidationError

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_ACCEPTED = "accepted"
STATUS_REJECTED = "rejected"


def request_swap(db: Session, requester: models.Employee, partner_email: Optional[str], swap_date: Optional[date]) -> models.ShiftSwapRequest:
    if requester.role != models.ROLE_VENDEDOR:
        raise PermissionDeniedError("Somente vendedores podem solicitar troca de turno.")
    if not partner_email or not swap_date:
        raise ValidationError("Informe o parceiro e a data da troca.")
    partner = db.query(models.Employee).filter_by(email=partner_email, role=models.ROLE_VENDEDOR).first()
    if partner is None:
        raise NotFoundError("Parceiro não encontrado.")
    if partner.shift == requester.shift:
        raise ValidationError("Troca só permitida entre turnos diferentes.")

    swap = models.ShiftSwapRequest(
        requester_id=requester.id,
        partner_id=partner.id,
        swap_date=swap_date,
        target_shift=partner.shift,
        status=STATUS_PENDING,
        created_at=local_now().replace(tzinfo=None),
    )
    db.add(swap); db.commit(); db.refresh(swap)
    logger.info(f"Troca de turno {swap.id} solicitada por {requester.id} para {partner.id} em {swap_date}.")
    return swap


def pending_swaps_for(db: Session, partner_id: int) -> List[models.ShiftSwapRequest]:
    return (
        db.query(models.ShiftSwapRequest)
        .filter_by(partner_id=partner_id, status=STATUS_PENDING)
        .order_by(models.ShiftSwapRequest.swap_date)
        .all()
    )


def respond_to_swap(db: Session, swap_id: int, responder_id: int, accept: bool) -> models.ShiftSwapRequest:
    swap = db.get(models.ShiftSwapRequest, swap_id)
    if swap is None:
        raise NotFoundError("Solicitação não encontrada.")
    if swap.partner_id != responder_id:
        raise PermissionDeniedError("Sem permissão.")
    if swap.status != STATUS_PENDING:
        raise InvalidTransitionError(f"Solicitação já respondida ({swap.status}).")
    swap.status = STATUS_ACCEPTED if accept else STATUS_REJECTED
    db.commit(); db.refresh(swap)
    logger.info(f"Troca de turno {swap.id}: {swap.status}.")
    return swap
