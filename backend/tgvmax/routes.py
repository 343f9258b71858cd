# ------------------------------ IMPORTS ------------------------------
from fastapi import APIRouter, Depends, HTTPException, Path
import logging

from tgvmax.exceptions import ConfigError, RunInProgressError
from tgvmax.service import ConfirmationService, RunMode
from .schemas import APIResponse, RunStatusOut, RunTriggerOut

logger = logging.getLogger(__name__)

# ------------------------------ ROUTER SETUP ------------------------------
router = APIRouter()

# ------------------------------ SERVICES ------------------------------
confirmation_service = ConfirmationService()

def get_confirmation_service() -> ConfirmationService:
    """Dependency returning the process-wide confirmation service."""
    return confirmation_service

# ------------------------------ RUN ENDPOINTS ------------------------------

@router.get("/status", response_model=APIResponse, tags=["Runs"])
async def get_run_status(service: ConfirmationService = Depends(get_confirmation_service)) -> APIResponse:
    """Get the state of the current or last run."""
    status = RunStatusOut(**service.get_status())
    return APIResponse(success=True, data=status.model_dump(mode="json"))

@router.post("/{mode}", response_model=APIResponse, status_code=202, tags=["Runs"])
async def start_run(
    mode: str = Path(..., pattern="^(confirm|check)$", description="confirm clicks, check only reports"),
    service: ConfirmationService = Depends(get_confirmation_service),
) -> APIResponse:
    """Start a run in the background."""
    try:
        await service.trigger(RunMode(mode))
    except RunInProgressError as e:
        logger.warning(f"Rejected {mode} run: {e}")
        raise HTTPException(status_code=409, detail=str(e))
    except ConfigError as e:
        logger.error(f"Cannot start {mode} run: {e}")
        raise HTTPException(status_code=500, detail=str(e))

    logger.info(f"Started {mode} run")
    trigger = RunTriggerOut(mode=mode, started_at=service.state.started_at)
    return APIResponse(success=True, data=trigger.model_dump(mode="json"))

# ------------------------------ END OF FILE ------------------------------
