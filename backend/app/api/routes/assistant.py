"""
Assistant endpoints: chat and on-demand explanations.
Public and rate limited. Always 200 with text; LLM failures become fallback text.
"""
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.api.deps import get_db
from app.models.alert import Alert
from app.models.drug import Drug
from app.schemas.assistant import ChatRequest, ChatResponse, ExplainRequest, ExplainResponse
from app.services import alert_service, scan_log_service
from app.services.explanation_service import ExplanationService, get_explanation_service

router = APIRouter()


@router.post("/chat", response_model=ChatResponse)
def chat(data: ChatRequest, db: Session = Depends(get_db),
         explainer: ExplanationService = Depends(get_explanation_service)):
    """Conversation grounded on an optional drug/alert. Only the last 10 history turns are used."""
    drug = events = alerts = alert = None
    if data.context and data.context.alert_id is not None:
        alert = db.query(Alert).filter(Alert.id == data.context.alert_id).first()
    drug_id = data.context.drug_id if data.context else None
    if drug_id is None and alert is not None:
        drug_id = alert.drug_id
    if drug_id is not None:
        drug = db.query(Drug).filter(Drug.id == drug_id).first()
        if drug is not None:
            events = scan_log_service.list_events(db, drug.id)
            alerts = alert_service.list_by_drug(db, drug.id)

    history = [turn.model_dump() for turn in data.history]
    text = explainer.chat(data.message, history, drug=drug, events=events, alerts=alerts, alert=alert)
    return ChatResponse(response=text)


@router.post("/explain", response_model=ExplainResponse)
def explain(data: ExplainRequest, db: Session = Depends(get_db),
            explainer: ExplanationService = Depends(get_explanation_service)):
    """type=explain describes an action; type=verify assesses authenticity."""
    drug = db.query(Drug).filter(Drug.id == data.drug_id).first()
    events = scan_log_service.list_events(db, drug.id) if drug else []
    alerts = alert_service.list_by_drug(db, drug.id) if drug else []
    text = explainer.explain(drug, events, alerts, kind=data.type, action=data.action, role=data.role)
    return ExplainResponse(explanation=text)
