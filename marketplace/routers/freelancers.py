from fastapi import APIRouter

from marketplace.models.schemas import Freelancer, FreelancerUpdate
from marketplace.dependencies import get_workflow_engine
from marketplace.services.workflow import WorkflowEngine

router = APIRouter(prefix="/freelancers", tags=["Freelancers"])

@router.get("/{user_id}", response_model=Freelancer)
def get_freelancer(user_id: str):
    """Profile of the freelancer owning user `user_id`."""
    engine: WorkflowEngine = get_workflow_engine()
    return engine.get_freelancer(user_id)

@router.put("/{freelancer_id}", response_model=Freelancer)
def update_freelancer(freelancer_id: str, update: FreelancerUpdate):
    engine: WorkflowEngine = get_workflow_engine()
    return engine.update_freelancer(freelancer_id, update)
