"""Data access layer"""

from backend.app.repositories.assignment_repository import AssignmentRepository
from backend.app.repositories.contractor_repository import ContractorRepository
from backend.app.repositories.job_repository import JobRepository

__all__ = ['AssignmentRepository', 'ContractorRepository', 'JobRepository']
