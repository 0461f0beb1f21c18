"""FastAPI routes for reading projected objects and record history."""

from fastapi import APIRouter, Depends, HTTPException, Query

from ledgerstate.errors import BadRequestError, NotFoundError
from ledgerstate.models import HistoryEntry, ProjectedObject
from ledgerstate.state.machine import StateMachineStorage
from ledgerstate.storage.operations import OperationStorage

router = APIRouter(prefix="/api/ledger", tags=["ledger"])


def get_state_machine() -> StateMachineStorage:
    """Dependency placeholder, replaced at app startup."""
    raise RuntimeError("StateMachineStorage not initialized")


def get_operation_storage() -> OperationStorage:
    """Dependency placeholder, replaced at app startup."""
    raise RuntimeError("OperationStorage not initialized")


def _not_found(exc: NotFoundError) -> HTTPException:
    return HTTPException(
        status_code=exc.http_status_code,
        detail={"message": str(exc), "reason": exc.reason.value, **exc.details},
    )


@router.get("/objects/{object_id:path}")
async def get_object(
    object_id: str,
    state_machine: StateMachineStorage = Depends(get_state_machine),
) -> ProjectedObject:
    try:
        return await state_machine.get(object_id)
    except NotFoundError as exc:
        raise _not_found(exc)


@router.get("/records/{record_id:path}/history")
async def get_record_history(
    record_id: str,
    max_block_height: int | None = Query(default=None),
    operations: OperationStorage = Depends(get_operation_storage),
) -> list[HistoryEntry]:
    try:
        return await operations.get_record_history(record_id, max_block_height)
    except BadRequestError as exc:
        raise HTTPException(status_code=exc.http_status_code, detail=str(exc))
    except NotFoundError as exc:
        raise _not_found(exc)
