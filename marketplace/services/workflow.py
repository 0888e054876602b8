"""
Bid-and-award workflow for projects, applications and freelancer profiles.

Every operation that writes more than one record follows the same protocol:

1. acquire the entity locks of the project and/or freelancer it touches,
2. re-read the records and validate the transition against the tables below,
3. stage all derived writes in a UnitOfWork,
4. commit the unit atomically (the store rejects it if a record's version moved),
5. release the locks and publish the domain event.
"""
import logging
import math
from typing import Any, Dict, Iterable, List, Optional, Union

from marketplace.core.errors import (
    ConflictError,
    ConsistencyError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
)
from marketplace.core.security import get_password_hash, verify_password
from marketplace.db.store import EntityStore
from marketplace.db.unit_of_work import UnitOfWork
from marketplace.models.schemas import (
    Application,
    ApplicationStatus,
    BidCreate,
    BidEntry,
    Freelancer,
    FreelancerUpdate,
    Project,
    ProjectCreate,
    ProjectSnapshot,
    ProjectStatus,
    SubmissionCreate,
    User,
    UserCreate,
    UserEmail,
    UserRole,
)
from marketplace.services import events
from marketplace.services.events import EventBus
from marketplace.services.locks import EntityLocks

logger = logging.getLogger(__name__)

USERS = "users"
FREELANCERS = "freelancers"
PROJECTS = "projects"
APPLICATIONS = "applications"
USER_EMAILS = "user_emails"

# action -> {current status: next status}. Anything not listed is illegal.
PROJECT_TRANSITIONS: Dict[str, Dict[ProjectStatus, ProjectStatus]] = {
    "award": {ProjectStatus.OPEN: ProjectStatus.ASSIGNED},
    "submit": {ProjectStatus.ASSIGNED: ProjectStatus.ASSIGNED},
    "approve_submission": {ProjectStatus.ASSIGNED: ProjectStatus.COMPLETED},
    "reject_submission": {ProjectStatus.ASSIGNED: ProjectStatus.ASSIGNED},
}

APPLICATION_TRANSITIONS: Dict[str, Dict[ApplicationStatus, ApplicationStatus]] = {
    "accept": {ApplicationStatus.PENDING: ApplicationStatus.ACCEPTED},
    "reject": {ApplicationStatus.PENDING: ApplicationStatus.REJECTED},
}


def next_project_status(project: Project, action: str) -> ProjectStatus:
    allowed = PROJECT_TRANSITIONS[action]
    if project.status not in allowed:
        raise InvalidStateError(
            f"Cannot {action.replace('_', ' ')} project {project.project_id} while it is {project.status.value}"
        )
    return allowed[project.status]


def next_application_status(application: Application, action: str) -> ApplicationStatus:
    allowed = APPLICATION_TRANSITIONS[action]
    if application.status not in allowed:
        raise InvalidStateError(
            f"Cannot {action} application {application.application_id} while it is {application.status.value}"
        )
    return allowed[application.status]


def parse_amount(value: Any, label: str = "Amount") -> int:
    """
    Parse a money amount into a non-negative integer. Fractions are truncated
    ("300.75" -> 300); anything non-numeric raises InvalidArgumentError.
    """
    if isinstance(value, bool) or value is None:
        raise InvalidArgumentError(f"{label} must be numeric, got {value!r}")
    if isinstance(value, int):
        amount = value
    else:
        text = str(value).strip()
        try:
            amount = int(text)
        except ValueError:
            try:
                number = float(text)
            except ValueError:
                raise InvalidArgumentError(f"{label} must be numeric, got {value!r}") from None
            if not math.isfinite(number):
                raise InvalidArgumentError(f"{label} must be a finite number, got {value!r}")
            amount = int(number)
    if amount < 0:
        raise InvalidArgumentError(f"{label} must not be negative, got {value!r}")
    return amount


def parse_skills(skills: Union[str, Iterable[str], None]) -> List[str]:
    """Accepts "python, sql" or ["python", "sql"]; trims entries and drops empty ones."""
    if skills is None:
        return []
    if isinstance(skills, str):
        skills = skills.split(",")
    return [skill.strip() for skill in skills if skill and skill.strip()]


class WorkflowEngine:

    def __init__(self, store: EntityStore, event_bus: Optional[EventBus] = None, locks: Optional[EntityLocks] = None):
        self.store = store
        self.events = event_bus or EventBus()
        self.locks = locks or EntityLocks()

    # --- lookups ---

    def _require(self, collection_name: str, document_id: str, model: type, label: str) -> Any:
        record = self.store.get(collection_name=collection_name, document_id=document_id, pydantic_model=model)
        if record is None:
            raise NotFoundError(f"{label} {document_id} not found")
        return record

    def _require_profile(self, user_id: str) -> Freelancer:
        profiles = self.store.query(
            collection_name=FREELANCERS, field="user_id", operator="==", value=user_id, pydantic_model=Freelancer
        )
        if not profiles:
            raise NotFoundError(f"Freelancer profile for user {user_id} not found")
        if len(profiles) > 1:
            raise ConsistencyError(f"User {user_id} has {len(profiles)} freelancer profiles")
        return profiles[0]

    def get_user(self, user_id: str) -> User:
        return self._require(USERS, user_id, User, "User")

    def list_users(self) -> List[User]:
        return self.store.get_all(collection_name=USERS, pydantic_model=User)

    def get_freelancer(self, user_id: str) -> Freelancer:
        return self._require_profile(user_id)

    def get_project(self, project_id: str) -> Project:
        return self._require(PROJECTS, project_id, Project, "Project")

    def list_projects(self) -> List[Project]:
        return self.store.get_all(collection_name=PROJECTS, pydantic_model=Project)

    def get_application(self, application_id: str) -> Application:
        return self._require(APPLICATIONS, application_id, Application, "Application")

    def list_applications(self, project_id: Optional[str] = None, freelancer_id: Optional[str] = None) -> List[Application]:
        if project_id is not None:
            applications = self.store.query(
                collection_name=APPLICATIONS, field="project_id", operator="==", value=project_id, pydantic_model=Application
            )
        elif freelancer_id is not None:
            applications = self.store.query(
                collection_name=APPLICATIONS, field="freelancer_id", operator="==", value=freelancer_id, pydantic_model=Application
            )
        else:
            applications = self.store.get_all(collection_name=APPLICATIONS, pydantic_model=Application)
        if freelancer_id is not None:
            applications = [a for a in applications if a.freelancer_id == freelancer_id]
        return applications

    # --- accounts and profiles ---

    def register_user(self, user_in: UserCreate) -> User:
        email = user_in.email.lower()
        with self.locks.hold((USER_EMAILS, email)):
            existing = self.store.query(collection_name=USERS, field="email", operator="==", value=email)
            if existing:
                raise ConflictError("Email already registered")

            user = User(
                username=user_in.username,
                email=email,
                role=user_in.role,
                hashed_password=get_password_hash(user_in.password),
            )
            uow = UnitOfWork()
            # A second registration of the same email from another process fails this create.
            uow.create(USER_EMAILS, email, UserEmail(email=email, user_id=user.user_id))
            uow.create(USERS, user.user_id, user)
            if user.role == UserRole.FREELANCER:
                profile = Freelancer(user_id=user.user_id)
                uow.create(FREELANCERS, profile.freelancer_id, profile)
            self.store.commit(uow)

        logger.info("Registered %s %s", user.role.value, user.user_id)
        return self.get_user(user.user_id)

    def login(self, email: str, password: str) -> User:
        users = self.store.query(collection_name=USERS, field="email", operator="==", value=email.lower(), pydantic_model=User)
        if not users:
            raise NotFoundError("User does not exist")
        user = users[0]
        if not verify_password(password, user.hashed_password):
            raise InvalidArgumentError("Invalid credentials")
        return user

    def update_freelancer(self, freelancer_id: str, update: FreelancerUpdate) -> Freelancer:
        profile = self._require(FREELANCERS, freelancer_id, Freelancer, "Freelancer")
        with self.locks.hold((FREELANCERS, profile.user_id)):
            profile = self._require(FREELANCERS, freelancer_id, Freelancer, "Freelancer")
            uow = UnitOfWork()
            uow.update(
                FREELANCERS,
                freelancer_id,
                {"skills": parse_skills(update.skills), "description": update.description},
                profile.version,
            )
            self.store.commit(uow)
        return self._require(FREELANCERS, freelancer_id, Freelancer, "Freelancer")

    def create_project(self, project_in: ProjectCreate) -> Project:
        client = self._require(USERS, project_in.client_id, User, "Client")
        if client.role != UserRole.CLIENT:
            raise InvalidArgumentError(f"User {client.user_id} is not a client")

        project = Project(
            title=project_in.title,
            description=project_in.description,
            budget=parse_amount(project_in.budget, "Budget"),
            skills=parse_skills(project_in.skills),
            client_id=client.user_id,
            client_name=client.username,
            client_email=client.email,
        )
        uow = UnitOfWork()
        uow.create(PROJECTS, project.project_id, project)
        self.store.commit(uow)
        logger.info("Client %s posted project %s", client.user_id, project.project_id)
        return self.get_project(project.project_id)

    # --- bidding ---

    def place_bid(self, project_id: str, bid_in: BidCreate) -> Application:
        amount = parse_amount(bid_in.bid_amount, "Bid amount")
        client = self._require(USERS, bid_in.client_id, User, "Client")
        freelancer_user = self._require(USERS, bid_in.freelancer_id, User, "Freelancer user")

        with self.locks.hold((PROJECTS, project_id), (FREELANCERS, freelancer_user.user_id)):
            project = self._require(PROJECTS, project_id, Project, "Project")
            if project.status != ProjectStatus.OPEN:
                raise InvalidStateError(f"Project {project_id} is {project.status.value} and no longer accepts bids")
            profile = self._require_profile(freelancer_user.user_id)

            application = Application(
                project_id=project.project_id,
                project=ProjectSnapshot(
                    title=project.title,
                    description=project.description,
                    budget=project.budget,
                    required_skills=project.skills,
                    client_id=client.user_id,
                    client_name=client.username,
                    client_email=client.email,
                ),
                freelancer_id=freelancer_user.user_id,
                freelancer_name=freelancer_user.username,
                freelancer_email=freelancer_user.email,
                freelancer_skills=profile.skills,
                proposal=bid_in.proposal,
                bid_amount=amount,
                estimated_time=bid_in.estimated_time,
            )

            uow = UnitOfWork()
            uow.create(APPLICATIONS, application.application_id, application)
            uow.update(
                PROJECTS,
                project.project_id,
                {"bids": project.bids + [BidEntry(freelancer_id=freelancer_user.user_id, amount=amount)]},
                project.version,
            )
            uow.update(
                FREELANCERS,
                profile.freelancer_id,
                {"applications": profile.applications + [application.application_id]},
                profile.version,
            )
            self.store.commit(uow)

        logger.info("Freelancer %s bid %d on project %s", freelancer_user.user_id, amount, project_id)
        self.events.publish(events.BidPlaced(
            project_id=project_id,
            application_id=application.application_id,
            freelancer_id=freelancer_user.user_id,
            bid_amount=amount,
        ))
        return self.get_application(application.application_id)

    def approve_application(self, application_id: str) -> Application:
        application = self.get_application(application_id)

        with self.locks.hold((PROJECTS, application.project_id), (FREELANCERS, application.freelancer_id)):
            application = self.get_application(application_id)
            if application.status != ApplicationStatus.PENDING:
                raise ConflictError(f"Application {application_id} is already {application.status.value}")
            project = self._require(PROJECTS, application.project_id, Project, "Project")
            if project.status != ProjectStatus.OPEN:
                raise ConflictError(f"Project {project.project_id} was already awarded (status {project.status.value})")
            profile = self._require_profile(application.freelancer_id)
            if project.project_id in profile.current_projects or project.project_id in profile.completed_projects:
                raise ConsistencyError(
                    f"Open project {project.project_id} is already listed on freelancer {profile.freelancer_id}"
                )

            siblings = [
                other
                for other in self.list_applications(project_id=project.project_id)
                if other.application_id != application_id and other.status == ApplicationStatus.PENDING
            ]

            uow = UnitOfWork()
            uow.update(
                APPLICATIONS, application_id,
                {"status": next_application_status(application, "accept")},
                application.version,
            )
            for other in siblings:
                uow.update(
                    APPLICATIONS, other.application_id,
                    {"status": next_application_status(other, "reject")},
                    other.version,
                )
            uow.update(
                PROJECTS,
                project.project_id,
                {
                    "status": next_project_status(project, "award"),
                    "freelancer_id": application.freelancer_id,
                    "freelancer_name": application.freelancer_name,
                    "budget": application.bid_amount,
                },
                project.version,
            )
            uow.update(
                FREELANCERS,
                profile.freelancer_id,
                {"current_projects": profile.current_projects + [project.project_id]},
                profile.version,
            )
            self.store.commit(uow)

        logger.info(
            "Awarded project %s to freelancer %s (application %s, %d other bid(s) rejected)",
            project.project_id, application.freelancer_id, application_id, len(siblings),
        )
        self.events.publish(events.ApplicationApproved(
            project_id=project.project_id,
            application_id=application_id,
            freelancer_id=application.freelancer_id,
            rejected_application_ids=[other.application_id for other in siblings],
        ))
        return self.get_application(application_id)

    def reject_application(self, application_id: str) -> Application:
        application = self.get_application(application_id)

        with self.locks.hold((PROJECTS, application.project_id)):
            application = self.get_application(application_id)
            if application.status == ApplicationStatus.REJECTED:
                return application
            if application.status == ApplicationStatus.ACCEPTED:
                raise ConflictError(f"Application {application_id} was already accepted")

            uow = UnitOfWork()
            uow.update(
                APPLICATIONS, application_id,
                {"status": next_application_status(application, "reject")},
                application.version,
            )
            self.store.commit(uow)

        self.events.publish(events.ApplicationRejected(project_id=application.project_id, application_id=application_id))
        return self.get_application(application_id)

    # --- submission review ---

    def submit_project(self, project_id: str, submission: SubmissionCreate) -> Project:
        with self.locks.hold((PROJECTS, project_id)):
            project = self.get_project(project_id)
            uow = UnitOfWork()
            uow.update(
                PROJECTS,
                project_id,
                {
                    "status": next_project_status(project, "submit"),
                    "project_link": submission.project_link,
                    "manual_link": submission.manual_link,
                    "submission_description": submission.submission_description,
                    "submission": True,
                },
                project.version,
            )
            self.store.commit(uow)

        self.events.publish(events.ProjectSubmitted(project_id=project_id, freelancer_id=project.freelancer_id))
        return self.get_project(project_id)

    def approve_submission(self, project_id: str) -> Project:
        project = self.get_project(project_id)
        locked_freelancer_id = project.freelancer_id

        with self.locks.hold((PROJECTS, project_id), (FREELANCERS, locked_freelancer_id) if locked_freelancer_id else None):
            project = self.get_project(project_id)
            if project.freelancer_id != locked_freelancer_id:
                raise ConflictError(f"Project {project_id} was reassigned while its submission was being approved")
            status = next_project_status(project, "approve_submission")
            if not project.submission:
                raise InvalidStateError(f"Project {project_id} has no submission awaiting review")
            if not project.freelancer_id:
                raise ConsistencyError(f"Assigned project {project_id} has no freelancer recorded")
            profile = self._require_profile(project.freelancer_id)
            if project_id not in profile.current_projects:
                raise ConsistencyError(
                    f"Project {project_id} is not among the active projects of freelancer {profile.freelancer_id}"
                )
            if project_id in profile.completed_projects:
                raise ConsistencyError(
                    f"Project {project_id} is already completed for freelancer {profile.freelancer_id}"
                )
            amount = parse_amount(project.budget, "Project budget")

            uow = UnitOfWork()
            uow.update(
                PROJECTS, project_id,
                {"status": status, "submission_accepted": True},
                project.version,
            )
            uow.update(
                FREELANCERS,
                profile.freelancer_id,
                {
                    "current_projects": [p for p in profile.current_projects if p != project_id],
                    "completed_projects": profile.completed_projects + [project_id],
                    "funds": profile.funds + amount,
                },
                profile.version,
            )
            self.store.commit(uow)

        logger.info("Project %s completed, credited %d to freelancer %s", project_id, amount, project.freelancer_id)
        self.events.publish(events.ProjectCompleted(
            project_id=project_id, freelancer_id=project.freelancer_id, amount_credited=amount
        ))
        return self.get_project(project_id)

    def reject_submission(self, project_id: str) -> Project:
        with self.locks.hold((PROJECTS, project_id)):
            project = self.get_project(project_id)
            status = next_project_status(project, "reject_submission")
            if not project.submission:
                raise InvalidStateError(f"Project {project_id} has no submission awaiting review")

            uow = UnitOfWork()
            uow.update(
                PROJECTS,
                project_id,
                {
                    "status": status,
                    "project_link": "",
                    "manual_link": "",
                    "submission_description": "",
                    "submission": False,
                },
                project.version,
            )
            self.store.commit(uow)

        self.events.publish(events.SubmissionRejected(project_id=project_id, freelancer_id=project.freelancer_id))
        return self.get_project(project_id)
