from __future__ import annotations
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import DateTime, Integer, String, Text, CheckConstraint, Index, func
from sqlalchemy.orm import Mapped, mapped_column
from app.db.base import Base, JSONType


QUEUE_PENDING = "pending"
QUEUE_PROCESSING = "processing"
QUEUE_COMPLETED = "completed"
QUEUE_FAILED = "failed"


"""
  Claims waiting for their detail fetch (fila_processamento_claims)
  lifecycle: pending -> processing -> completed
                                   -> pending (retry, after available_at)
                                   -> failed  (tentativas reached max_tentativas)
  processing_until is the lease: an expired lease makes the row claimable again
"""
class ClaimsQueueItem(Base):

    __tablename__ = "fila_processamento_claims"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))

    claim_id:               Mapped[str]           = mapped_column(String(64), nullable=False)   # string: ids are not guaranteed numeric
    order_id:               Mapped[Optional[str]] = mapped_column(String(64))
    integration_account_id: Mapped[str]           = mapped_column(String(36), nullable=False)
    claim_data:             Mapped[Optional[Dict[str, Any]]] = mapped_column(JSONType)          # snapshot taken at enqueue time

    priority:       Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    status:         Mapped[str] = mapped_column(String(16), nullable=False, default=QUEUE_PENDING)
    tentativas:     Mapped[int] = mapped_column(Integer, nullable=False, default=0)       # attempts made
    max_tentativas: Mapped[int] = mapped_column(Integer, nullable=False, default=3)

    available_at:     Mapped[Optional[datetime]] = mapped_column(DateTime)   # retry backoff gate
    processing_until: Mapped[Optional[datetime]] = mapped_column(DateTime)   # lease expiry
    erro_mensagem:    Mapped[Optional[str]]      = mapped_column(Text)

    criado_em:     Mapped[datetime]           = mapped_column(DateTime, server_default=func.now(), nullable=False)
    atualizado_em: Mapped[datetime]           = mapped_column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=False)
    processado_em: Mapped[Optional[datetime]] = mapped_column(DateTime)

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending','processing','completed','failed')",
            name="status_valid",
        ),
        Index("ix_fila_claims_pick", "status", "priority", "criado_em"),
        Index("ix_fila_claims_account_claim", "integration_account_id", "claim_id"),
    )
