from fastapi import APIRouter

from approval_engine.api.directory import directory_router
from approval_engine.api.expenses import approvers_router, expenses_router
from approval_engine.api.rules import router as rules_router
from approval_engine.api.workflows import router as workflows_router

api_router = APIRouter()
api_router.include_router(directory_router)
api_router.include_router(rules_router)
api_router.include_router(workflows_router)
api_router.include_router(expenses_router)
api_router.include_router(approvers_router)
