from fastapi import APIRouter, Depends

from shared.core.auth import allow_super_admin
from shared.helpers.json_response_helper import error_response, success_response
from shared.utils.app_status_code import AppStatusCode

from ...crud.scheduler.scheduler_service import (
    MISSED_BILL_CHECK_JOB, MONTHLY_GENERATION_JOB, OVERDUE_CHECK_JOB,
    BillingScheduler, get_scheduler
)
from ...schemas.system.scheduler_schemas import SchedulerStatus, SchedulerTriggerRequest

router = APIRouter(
    prefix="/api/scheduler",
    tags=["scheduler"],
    dependencies=[Depends(allow_super_admin)]
)


@router.get("/status", response_model=SchedulerStatus)
def get_scheduler_status(scheduler: BillingScheduler = Depends(get_scheduler)):
    return scheduler.get_job_statuses()


@router.post("/trigger")
async def trigger_job(
        request: SchedulerTriggerRequest,
        scheduler: BillingScheduler = Depends(get_scheduler)):
    if request.job == MONTHLY_GENERATION_JOB:
        result = await scheduler.trigger_monthly_generation(request.month)
        if result.already_running:
            return error_response(
                message="Bill generation is already in progress, try again later",
                status_code=AppStatusCode.GENERATION_IN_PROGRESS,
                http_status=409
            )
        data = result.model_dump(mode="json")

    elif request.job == MISSED_BILL_CHECK_JOB:
        result = await scheduler.check_missed_bills()
        data = result.model_dump(mode="json") if result else None

    elif request.job == OVERDUE_CHECK_JOB:
        data = {"updated": await scheduler.check_overdue_bills()}

    else:
        return error_response(
            message=f"Unknown scheduler job '{request.job}'",
            status_code=AppStatusCode.INVALID_INPUT
        )

    return success_response(
        data=data,
        message=f"Job '{request.job}' executed",
        status_code=AppStatusCode.OPERATION_SUCCESSFUL
    )
