from fastapi import APIRouter, status

from marketplace.models.schemas import UserCreate, UserPublic, LoginRequest
from marketplace.dependencies import get_workflow_engine
from marketplace.services.workflow import WorkflowEngine

router = APIRouter(prefix="/auth", tags=["Authentication"])

@router.post("/register", response_model=UserPublic, status_code=status.HTTP_201_CREATED)
def register_user(user_in: UserCreate):
    engine: WorkflowEngine = get_workflow_engine()

    # Freelancers get an empty profile in the same commit as their user record.
    return engine.register_user(user_in)

@router.post("/login", response_model=UserPublic)
def login(credentials: LoginRequest):
    engine: WorkflowEngine = get_workflow_engine()
    return engine.login(credentials.email, credentials.password)
