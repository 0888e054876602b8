import pytest
from fastapi.testclient import TestClient

from marketplace.main import app # FastAPI application
from marketplace.core.errors import InvalidArgumentError, InvalidStateError, NotFoundError
from marketplace.db.unit_of_work import UnitOfWork
from marketplace.models.schemas import ApplicationStatus, BidCreate, ProjectStatus, UserRole
from marketplace.services.events import BidPlaced
from marketplace.services.workflow import parse_amount

client = TestClient(app)


@pytest.fixture
def freelancer(make_user):
    return make_user("dev_one", UserRole.FREELANCER)


# --- parse_amount ---

@pytest.mark.parametrize("raw, expected", [
    (300, 300),
    ("300", 300),
    (" 42 ", 42),
    ("300.75", 300),
    (250.0, 250),
    (0, 0),
])
def test_parse_amount_accepts_numbers(raw, expected):
    assert parse_amount(raw) == expected

@pytest.mark.parametrize("raw", ["abc", "", "12abc", None, True, "nan", float("inf"), -5, "-1"])
def test_parse_amount_rejects_bad_input(raw):
    with pytest.raises(InvalidArgumentError):
        parse_amount(raw)


# --- WorkflowEngine.place_bid ---

def test_place_bid_creates_pending_application(engine, make_project, place_bid, freelancer, client_user):
    project = make_project(budget=500)

    application = place_bid(project, freelancer, "300")

    assert application.status == ApplicationStatus.PENDING
    assert application.bid_amount == 300
    assert application.project_id == project.project_id
    assert application.freelancer_name == "dev_one"
    assert application.freelancer_email == "dev_one@example.com"
    assert application.freelancer_skills == ["python"]
    assert application.project.title == project.title
    assert application.project.budget == 500
    assert application.project.required_skills == ["html", "css"]
    assert application.project.client_id == client_user.user_id
    assert application.project.client_email == client_user.email

    project = engine.get_project(project.project_id)
    assert project.bidders == [freelancer.user_id]
    assert project.bid_amounts == [300]

    profile = engine.get_freelancer(freelancer.user_id)
    assert profile.applications == [application.application_id]

def test_place_bid_allows_repeated_bids_from_same_freelancer(engine, make_project, place_bid, freelancer):
    project = make_project()

    first = place_bid(project, freelancer, 300)
    second = place_bid(project, freelancer, 280)

    assert first.application_id != second.application_id
    project = engine.get_project(project.project_id)
    assert project.bidders == [freelancer.user_id, freelancer.user_id]
    assert project.bid_amounts == [300, 280]
    assert len(project.bidders) == len(project.bid_amounts)
    assert engine.get_freelancer(freelancer.user_id).applications == [first.application_id, second.application_id]

def test_application_snapshot_does_not_follow_project_edits(engine, store, make_project, place_bid, freelancer):
    project = make_project(title="Original title")
    application = place_bid(project, freelancer, 300)

    uow = UnitOfWork()
    uow.update("projects", project.project_id, {"title": "Renamed"}, engine.get_project(project.project_id).version)
    store.commit(uow)

    assert engine.get_application(application.application_id).project.title == "Original title"

def test_place_bid_rejects_non_numeric_amount(engine, make_project, place_bid, freelancer):
    project = make_project()

    with pytest.raises(InvalidArgumentError):
        place_bid(project, freelancer, "a lot")

    assert engine.get_project(project.project_id).bids == []
    assert engine.list_applications() == []

def test_place_bid_unknown_project(engine, client_user, freelancer):
    with pytest.raises(NotFoundError):
        engine.place_bid("missing", BidCreate(
            client_id=client_user.user_id, freelancer_id=freelancer.user_id, proposal="hi", bid_amount=10
        ))

def test_place_bid_unknown_client(engine, make_project, freelancer):
    project = make_project()
    with pytest.raises(NotFoundError):
        engine.place_bid(project.project_id, BidCreate(
            client_id="missing", freelancer_id=freelancer.user_id, proposal="hi", bid_amount=10
        ))

def test_place_bid_requires_freelancer_profile(engine, make_project, place_bid, make_user):
    project = make_project()
    not_a_freelancer = make_user("plain_client", UserRole.CLIENT)

    with pytest.raises(NotFoundError):
        place_bid(project, not_a_freelancer, 100)
    assert engine.get_project(project.project_id).bids == []

def test_place_bid_on_completed_project_changes_nothing(engine, store, make_project, place_bid, freelancer):
    project = make_project()
    uow = UnitOfWork()
    uow.update("projects", project.project_id, {"status": ProjectStatus.COMPLETED}, project.version)
    store.commit(uow)

    with pytest.raises(InvalidStateError):
        place_bid(project, freelancer, 100)

    assert engine.list_applications() == []
    assert engine.get_project(project.project_id).bids == []
    assert engine.get_freelancer(freelancer.user_id).applications == []

def test_place_bid_on_assigned_project_is_refused(engine, make_project, place_bid, make_user, freelancer):
    project = make_project()
    winner = place_bid(project, freelancer, 300)
    engine.approve_application(winner.application_id)
    latecomer = make_user("late_dev", UserRole.FREELANCER)

    with pytest.raises(InvalidStateError):
        place_bid(project, latecomer, 100)
    assert engine.get_project(project.project_id).bid_amounts == [300]

def test_place_bid_publishes_event(engine, make_project, place_bid, freelancer):
    received = []
    engine.events.subscribe(BidPlaced, received.append)
    project = make_project()

    application = place_bid(project, freelancer, 300)

    assert len(received) == 1
    assert received[0].application_id == application.application_id
    assert received[0].bid_amount == 300


# --- Tests for POST /projects/{project_id}/bids ---

def test_place_bid_endpoint_success(api_engine, make_project, client_user, freelancer):
    project = make_project()

    response = client.post(f"/projects/{project.project_id}/bids", json={
        "client_id": client_user.user_id,
        "freelancer_id": freelancer.user_id,
        "proposal": "My bid",
        "bid_amount": "450",
        "estimated_time": "2 weeks",
    })

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "Pending"
    assert data["bid_amount"] == 450
    assert data["estimated_time"] == "2 weeks"
    assert data["project"]["title"] == project.title

def test_place_bid_endpoint_invalid_amount(api_engine, make_project, client_user, freelancer):
    project = make_project()

    response = client.post(f"/projects/{project.project_id}/bids", json={
        "client_id": client_user.user_id,
        "freelancer_id": freelancer.user_id,
        "proposal": "My bid",
        "bid_amount": "cheap",
    })

    assert response.status_code == 400
    assert response.json()["error"] == "InvalidArgument"

def test_place_bid_endpoint_project_not_found(api_engine, client_user, freelancer):
    response = client.post("/projects/does-not-exist/bids", json={
        "client_id": client_user.user_id,
        "freelancer_id": freelancer.user_id,
        "proposal": "My bid",
        "bid_amount": 100,
    })

    assert response.status_code == 404
    assert response.json()["error"] == "NotFound"
    assert response.json()["detail"] == "Project does-not-exist not found"
