from typing import Optional, List, Union
from datetime import datetime, timezone
from enum import Enum
from uuid import uuid4
from pydantic import BaseModel, ConfigDict, EmailStr, Field, NonNegativeInt


def new_id() -> str:
    return str(uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UserRole(str, Enum):
    CLIENT = "client"
    FREELANCER = "freelancer"


class ProjectStatus(str, Enum):
    OPEN = "Open"
    ASSIGNED = "Assigned"
    COMPLETED = "Completed"


class ApplicationStatus(str, Enum):
    PENDING = "Pending"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"


class StoredRecord(BaseModel):
    # Maintained by the store: version is bumped by every committed write.
    version: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class UserBase(BaseModel):
    username: str
    email: EmailStr
    role: UserRole

class UserCreate(UserBase):
    password: str

class UserPublic(UserBase):
    user_id: str

class User(UserBase, StoredRecord):
    user_id: str = Field(default_factory=new_id)
    hashed_password: str

class UserEmail(StoredRecord):
    """Claim on a lower-cased email address; the document id is the email itself."""
    email: EmailStr
    user_id: str

class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class FreelancerUpdate(BaseModel):
    # Either a comma separated string ("python, sql") or a list of skills.
    skills: Union[str, List[str]] = []
    description: str = ""

class Freelancer(StoredRecord):
    freelancer_id: str = Field(default_factory=new_id)
    user_id: str # Owning User (role freelancer)
    skills: List[str] = []
    description: str = ""
    applications: List[str] = [] # Application ids
    current_projects: List[str] = [] # Project ids
    completed_projects: List[str] = [] # Project ids
    funds: NonNegativeInt = 0


class BidEntry(BaseModel):
    """One entry of a project's bid ledger."""
    model_config = ConfigDict(frozen=True)

    freelancer_id: str
    amount: int


class ProjectCreate(BaseModel):
    title: str
    description: str
    budget: Union[int, float, str]
    skills: Union[str, List[str]] = []
    client_id: str

class Project(StoredRecord):
    project_id: str = Field(default_factory=new_id)
    title: str
    description: str
    # Records written by older clients may hold the posted budget as a string.
    budget: Union[int, str]
    skills: List[str] = []
    client_id: str
    client_name: str
    client_email: str
    status: ProjectStatus = ProjectStatus.OPEN
    bids: List[BidEntry] = []
    freelancer_id: Optional[str] = None
    freelancer_name: Optional[str] = None
    project_link: str = ""
    manual_link: str = ""
    submission_description: str = ""
    submission: bool = False
    submission_accepted: bool = False
    posted_date: datetime = Field(default_factory=utcnow)

    @property
    def bidders(self) -> List[str]:
        return [entry.freelancer_id for entry in self.bids]

    @property
    def bid_amounts(self) -> List[int]:
        return [entry.amount for entry in self.bids]


class ProjectSnapshot(BaseModel):
    """The project and its client as they were when a bid was placed."""
    model_config = ConfigDict(frozen=True)

    title: str
    description: str
    budget: Union[int, str]
    required_skills: List[str] = []
    client_id: str
    client_name: str
    client_email: str

class BidCreate(BaseModel):
    client_id: str
    freelancer_id: str # User id of the bidding freelancer
    proposal: str
    bid_amount: Union[int, float, str]
    estimated_time: str = "" # e.g. "2 weeks"

class Application(StoredRecord):
    application_id: str = Field(default_factory=new_id)
    project_id: str
    project: ProjectSnapshot
    freelancer_id: str
    freelancer_name: str
    freelancer_email: str
    freelancer_skills: List[str] = []
    proposal: str
    bid_amount: int
    estimated_time: str = ""
    status: ApplicationStatus = ApplicationStatus.PENDING


class SubmissionCreate(BaseModel):
    project_link: str = ""
    manual_link: str = ""
    submission_description: str = ""


class Message(BaseModel):
    message: str
