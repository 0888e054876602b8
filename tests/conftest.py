import os

# Keep a developer's .env (and Firestore) out of the test run.
os.environ["DISABLE_DOTENV"] = "1"
os.environ["STORE_BACKEND"] = "memory"

import pytest

from marketplace.db.memory_store import InMemoryStore
from marketplace.db.unit_of_work import UnitOfWork
from marketplace.models.schemas import BidCreate, Freelancer, ProjectCreate, User, UserRole
from marketplace.services.workflow import WorkflowEngine

ROUTER_MODULES = [
    "marketplace.routers.auth",
    "marketplace.routers.users",
    "marketplace.routers.freelancers",
    "marketplace.routers.projects",
    "marketplace.routers.applications",
    "marketplace.routers.submissions",
]


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def engine(store):
    return WorkflowEngine(store)


@pytest.fixture
def api_engine(engine, monkeypatch):
    """Points every router at the test engine."""
    for module in ROUTER_MODULES:
        monkeypatch.setattr(f"{module}.get_workflow_engine", lambda: engine)
    return engine


@pytest.fixture
def make_user(store):
    """
    Writes a user straight into the store (and a profile for freelancers),
    skipping bcrypt so engine tests stay fast.
    """
    def _make_user(username: str, role: UserRole = UserRole.CLIENT) -> User:
        user = User(username=username, email=f"{username}@example.com", role=role, hashed_password="unused")
        uow = UnitOfWork()
        uow.create("users", user.user_id, user)
        if role == UserRole.FREELANCER:
            profile = Freelancer(user_id=user.user_id, skills=["python"])
            uow.create("freelancers", profile.freelancer_id, profile)
        store.commit(uow)
        return store.get("users", user.user_id, pydantic_model=User)
    return _make_user


@pytest.fixture
def client_user(make_user):
    return make_user("acme", UserRole.CLIENT)


@pytest.fixture
def make_project(engine, client_user):
    def _make_project(budget=500, title="Landing page", skills="html, css"):
        return engine.create_project(ProjectCreate(
            title=title,
            description="Build a landing page",
            budget=budget,
            skills=skills,
            client_id=client_user.user_id,
        ))
    return _make_project


@pytest.fixture
def place_bid(engine, client_user):
    def _place_bid(project, freelancer, amount, proposal="I can do it"):
        return engine.place_bid(project.project_id, BidCreate(
            client_id=client_user.user_id,
            freelancer_id=freelancer.user_id,
            proposal=proposal,
            bid_amount=amount,
            estimated_time="1 week",
        ))
    return _place_bid
