from fastapi import APIRouter, status
from typing import List

from marketplace.models.schemas import Project, ProjectCreate, Application, BidCreate
from marketplace.dependencies import get_workflow_engine
from marketplace.services.workflow import WorkflowEngine

router = APIRouter(prefix="/projects", tags=["Projects"])

@router.post("/", response_model=Project, status_code=status.HTTP_201_CREATED)
def create_project(project_in: ProjectCreate):
    engine: WorkflowEngine = get_workflow_engine()
    return engine.create_project(project_in)

@router.get("/", response_model=List[Project])
def list_projects():
    engine: WorkflowEngine = get_workflow_engine()
    return engine.list_projects()

@router.get("/{project_id}", response_model=Project)
def get_project_details(project_id: str):
    engine: WorkflowEngine = get_workflow_engine()
    return engine.get_project(project_id)

@router.post("/{project_id}/bids", response_model=Application, status_code=status.HTTP_201_CREATED)
def place_bid(project_id: str, bid_in: BidCreate):
    engine: WorkflowEngine = get_workflow_engine()

    # No dedup: every bid becomes its own application and ledger entry.
    return engine.place_bid(project_id, bid_in)
