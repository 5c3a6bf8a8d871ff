"""
Dependency providers for the charge engine's collaborators

Routes depend on these instead of constructing RQ-backed objects themselves, so
tests replace them through app.dependency_overrides.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from paychain.infrastructure.database import get_db
from paychain.infrastructure.redis_client import get_queue
from paychain.infrastructure.settings import get_settings
from paychain.services.charge_service import ChargeOrchestrator
from paychain.services.settlement import (
    CallbackSettlementAdapter,
    LiveSettlementAdapter,
    RQSettlementScheduler,
    SettlementScheduler,
    WebhookDispatcher,
)
from paychain.services.webhook_notifier import RQWebhookDispatcher


def get_settlement_scheduler() -> SettlementScheduler:
    return RQSettlementScheduler(get_queue(get_settings().SETTLEMENT_QUEUE))


def get_webhook_dispatcher() -> WebhookDispatcher:
    settings = get_settings()
    return RQWebhookDispatcher(get_queue(settings.WEBHOOK_QUEUE), max_retries=settings.WEBHOOK_MAX_RETRIES)


def get_live_settlement_adapter() -> LiveSettlementAdapter:
    return CallbackSettlementAdapter()


def get_charge_orchestrator(
    db: Session = Depends(get_db),
    scheduler: SettlementScheduler = Depends(get_settlement_scheduler),
    live_adapter: LiveSettlementAdapter = Depends(get_live_settlement_adapter),
) -> ChargeOrchestrator:
    return ChargeOrchestrator(
        db=db,
        settings=get_settings(),
        scheduler=scheduler,
        live_adapter=live_adapter,
    )
