from datetime import datetime
from pydantic import BaseModel
from typing import Dict, Optional


class JobStatus(BaseModel):
    scheduled: bool
    running: bool
    last_run: Optional[datetime] = None
    next_run: Optional[datetime] = None


class SchedulerStatus(BaseModel):
    initialized: bool
    generation_running: bool
    jobs: Dict[str, JobStatus] = {}


class SchedulerTriggerRequest(BaseModel):
    job: str = "monthly_bill_generation"
    month: Optional[str] = None
