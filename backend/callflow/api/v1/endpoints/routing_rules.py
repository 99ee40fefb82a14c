"""Call routing rule API.

CRUD, search, and reorder endpoints for the rules that decide what happens to
an inbound call on a phone line.
"""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from callflow.core.database import get_db
from callflow.schemas.routing_rules import (
    ReorderResponse,
    RoutingRuleCreate,
    RoutingRuleListResponse,
    RoutingRuleReorder,
    RoutingRuleResponse,
    RoutingRuleSearch,
    RoutingRuleUpdate,
)
from callflow.services.routing import store
from callflow.services.routing.exceptions import (
    PhoneLineNotFoundError,
    RuleConfigurationError,
    RuleNotFoundError,
    RuleReorderError,
)

router = APIRouter()


@router.get("/", response_model=RoutingRuleListResponse)
def list_routing_rules(
    phone_line_id: uuid.UUID = Query(..., description="Phone line ID"),
    include_inactive: bool = Query(False),
    db: Session = Depends(get_db),
):
    """List a line's rules in evaluation order."""
    rules = store.list_rules(
        db,
        RoutingRuleSearch(phone_line_id=phone_line_id, include_inactive=include_inactive),
    )
    return RoutingRuleListResponse(rules=rules, total=len(rules))


@router.post("/search", response_model=RoutingRuleListResponse)
def search_routing_rules(
    payload: RoutingRuleSearch,
    db: Session = Depends(get_db),
):
    rules = store.list_rules(db, payload)
    return RoutingRuleListResponse(rules=rules, total=len(rules))


@router.post("/", response_model=RoutingRuleResponse, status_code=201)
def create_routing_rule(
    payload: RoutingRuleCreate,
    db: Session = Depends(get_db),
):
    try:
        return store.create_rule(db, payload)
    except PhoneLineNotFoundError:
        raise HTTPException(status_code=404, detail="Phone line not found") from None


@router.post("/reorder", response_model=ReorderResponse)
def reorder_routing_rules(
    payload: RoutingRuleReorder,
    db: Session = Depends(get_db),
):
    """Rewrite a line's rule order. The list must name every rule of the line once."""
    try:
        store.reorder_rules(db, payload.phone_line_id, payload.rule_ids)
    except RuleReorderError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from None
    return ReorderResponse(success=True)


@router.get("/{rule_id}", response_model=RoutingRuleResponse)
def get_routing_rule(
    rule_id: uuid.UUID,
    db: Session = Depends(get_db),
):
    try:
        return store.get_rule(db, rule_id)
    except RuleNotFoundError:
        raise HTTPException(status_code=404, detail="Routing rule not found") from None


@router.patch("/{rule_id}", response_model=RoutingRuleResponse)
def update_routing_rule(
    rule_id: uuid.UUID,
    payload: RoutingRuleUpdate,
    db: Session = Depends(get_db),
):
    """Partially update a rule. Action fields merge unless the action type changes."""
    try:
        return store.update_rule(db, rule_id, payload)
    except RuleNotFoundError:
        raise HTTPException(status_code=404, detail="Routing rule not found") from None
    except RuleConfigurationError as exc:
        db.rollback()
        raise HTTPException(status_code=422, detail=str(exc)) from None


@router.delete("/{rule_id}", status_code=204)
def delete_routing_rule(
    rule_id: uuid.UUID,
    db: Session = Depends(get_db),
):
    try:
        store.delete_rule(db, rule_id)
    except RuleNotFoundError:
        raise HTTPException(status_code=404, detail="Routing rule not found") from None
