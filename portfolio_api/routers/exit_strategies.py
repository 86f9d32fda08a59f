"""
FastAPI Router for Exit Strategy Endpoints.

Percentage scale-out strategies: CRUD, execution recording
and plan simulation.
"""

from typing import List, Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status

from core.exceptions import ConflictError, DataValidationError, ResourceNotFoundError
from portfolio_api.dependencies import get_account_id, get_exit_strategy_service
from portfolio_api.errors import client_error, internal_error
from portfolio_api.schemas import (
    ExecutionCreate,
    ExitStrategyCreate,
    ExitStrategyDetailSchema,
    ExitStrategySummarySchema,
    SimulateRequest,
    SimulationResponse,
)
from portfolio_api.services import ExitStrategyService


router = APIRouter(prefix="/exit-strategies", tags=["Exit Strategies"])


# =============================================================
# STRATEGY ENDPOINTS
# =============================================================

@router.get("", response_model=List[ExitStrategySummarySchema])
def list_strategies(
    account_id: str = Depends(get_account_id),
    service: ExitStrategyService = Depends(get_exit_strategy_service),
):
    """All strategies of the account, newest first."""
    try:
        return service.list_strategies(account_id)
    except Exception as e:
        raise internal_error("GET /exit-strategies", e)


@router.post("", response_model=ExitStrategySummarySchema, status_code=status.HTTP_201_CREATED)
def create_strategy(
    body: ExitStrategyCreate,
    account_id: str = Depends(get_account_id),
    service: ExitStrategyService = Depends(get_exit_strategy_service),
):
    try:
        return service.create_strategy(account_id, body)
    except ConflictError as e:
        raise client_error(409, "POST /exit-strategies", e)
    except DataValidationError as e:
        raise client_error(400, "POST /exit-strategies", e)
    except Exception as e:
        raise internal_error("POST /exit-strategies", e)


@router.post("/simulate", response_model=SimulationResponse)
def simulate(
    body: SimulateRequest,
    account_id: str = Depends(get_account_id),
    service: ExitStrategyService = Depends(get_exit_strategy_service),
):
    """Plan for the current holding without saving a strategy."""
    try:
        return service.simulate(account_id, body)
    except Exception as e:
        raise internal_error("POST /exit-strategies/simulate", e)


@router.get("/{strategy_id}", response_model=ExitStrategyDetailSchema)
def get_strategy(
    strategy_id: UUID,
    max_steps: Optional[int] = Query(None, alias="maxSteps", ge=1, le=50),
    account_id: str = Depends(get_account_id),
    service: ExitStrategyService = Depends(get_exit_strategy_service),
):
    """Summary plus plan rows reconciled with recorded executions."""
    try:
        return service.get_details(account_id, strategy_id, max_steps)
    except ResourceNotFoundError as e:
        raise client_error(404, "GET /exit-strategies/{id}", e)
    except Exception as e:
        raise internal_error("GET /exit-strategies/{id}", e)


@router.delete("/{strategy_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_strategy(
    strategy_id: UUID,
    account_id: str = Depends(get_account_id),
    service: ExitStrategyService = Depends(get_exit_strategy_service),
):
    try:
        service.delete_strategy(account_id, strategy_id)
    except ResourceNotFoundError as e:
        raise client_error(404, "DELETE /exit-strategies/{id}", e)
    except Exception as e:
        raise internal_error("DELETE /exit-strategies/{id}", e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# =============================================================
# EXECUTION ENDPOINTS
# =============================================================

@router.post(
    "/{strategy_id}/executions",
    response_model=ExitStrategyDetailSchema,
    status_code=status.HTTP_201_CREATED,
)
def record_execution(
    strategy_id: UUID,
    body: ExecutionCreate,
    account_id: str = Depends(get_account_id),
    service: ExitStrategyService = Depends(get_exit_strategy_service),
):
    """Record a fill against one step; returns refreshed details."""
    try:
        return service.record_execution(account_id, strategy_id, body)
    except ResourceNotFoundError as e:
        raise client_error(404, "POST /exit-strategies/{id}/executions", e)
    except ConflictError as e:
        raise client_error(409, "POST /exit-strategies/{id}/executions", e)
    except Exception as e:
        raise internal_error("POST /exit-strategies/{id}/executions", e)
