from fastapi import APIRouter

from marketplace.models.schemas import Message, SubmissionCreate
from marketplace.dependencies import get_workflow_engine
from marketplace.services.workflow import WorkflowEngine

router = APIRouter(prefix="/projects/{project_id}/submission", tags=["Work Submissions"])

@router.post("", response_model=Message)
def submit_project(project_id: str, submission_in: SubmissionCreate):
    engine: WorkflowEngine = get_workflow_engine()
    engine.submit_project(project_id, submission_in)
    return {"message": "Project submitted"}

@router.post("/approve", response_model=Message)
def approve_submission(project_id: str):
    engine: WorkflowEngine = get_workflow_engine()

    # Completes the project and credits the freelancer with the awarded budget.
    engine.approve_submission(project_id)
    return {"message": "Submission approved. Project marked as completed."}

@router.post("/reject", response_model=Message)
def reject_submission(project_id: str):
    engine: WorkflowEngine = get_workflow_engine()
    engine.reject_submission(project_id)
    return {"message": "Submission rejected"}
