"""Database models"""

from backend.app.models.base import TimestampMixin
from backend.app.models.contractor import Contractor, TradeType
from backend.app.models.job import Job
from backend.app.models.assignment import Assignment, AssignmentStatus, ACTIVE_ASSIGNMENT_STATUSES
from backend.app.models.dispatcher_contractor_list import DispatcherContractorList

__all__ = [
    "TimestampMixin",
    "Contractor",
    "TradeType",
    "Job",
    "Assignment",
    "AssignmentStatus",
    "ACTIVE_ASSIGNMENT_STATUSES",
    "DispatcherContractorList",
]
