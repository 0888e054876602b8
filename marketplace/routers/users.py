from fastapi import APIRouter
from typing import List

from marketplace.models.schemas import UserPublic
from marketplace.dependencies import get_workflow_engine
from marketplace.services.workflow import WorkflowEngine

router = APIRouter(prefix="/users", tags=["Users"])

@router.get("/", response_model=List[UserPublic])
def list_users():
    engine: WorkflowEngine = get_workflow_engine()
    return engine.list_users()

@router.get("/{user_id}", response_model=UserPublic)
def get_user_profile(user_id: str):
    engine: WorkflowEngine = get_workflow_engine()
    return engine.get_user(user_id)
