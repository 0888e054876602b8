from fastapi import APIRouter
from typing import List, Optional

from marketplace.models.schemas import Application, Message
from marketplace.dependencies import get_workflow_engine
from marketplace.services.workflow import WorkflowEngine

router = APIRouter(prefix="/applications", tags=["Applications"])

@router.get("/", response_model=List[Application])
def list_applications(project_id: Optional[str] = None, freelancer_id: Optional[str] = None):
    engine: WorkflowEngine = get_workflow_engine()
    return engine.list_applications(project_id=project_id, freelancer_id=freelancer_id)

@router.get("/{application_id}", response_model=Application)
def get_application(application_id: str):
    engine: WorkflowEngine = get_workflow_engine()
    return engine.get_application(application_id)

@router.post("/{application_id}/approve", response_model=Message)
def approve_application(application_id: str):
    engine: WorkflowEngine = get_workflow_engine()
    engine.approve_application(application_id)
    return {"message": "Application approved"}

@router.post("/{application_id}/reject", response_model=Message)
def reject_application(application_id: str):
    engine: WorkflowEngine = get_workflow_engine()
    engine.reject_application(application_id)
    return {"message": "Application rejected"}
