"""
Database Schemas

MongoDB collection schemas as Pydantic models.
Each Pydantic model represents a collection in the database.
Model name is converted to lowercase for the collection name:
- User -> "user" collection
- Question -> "question" collection
- KnowledgeBaseArticle -> "knowledgebasearticle" collection
- CodeChallenge -> "codechallenge" collection
- ConsultingSession -> "consultingsession" collection
- PullRequest -> "pullrequest" collection

References to other documents are stored as the referenced _id string.
Request bodies that differ from the stored shape live at the bottom.
"""

from datetime import date as Date, datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

Difficulty = Literal["beginner", "intermediate", "advanced", "expert"]
SessionStatus = Literal["scheduled", "completed", "cancelled"]
IssueStatus = Literal["open", "closed"]
IssuePriority = Literal["low", "medium", "high"]
PullRequestStatus = Literal["open", "merged", "closed"]
EventStatus = Literal["pending", "approved", "rejected"]
EventType = Literal["conference", "webinar", "hackathon", "meetup", "workshop", "other"]
EventCategory = Literal[
    "development", "design", "business", "marketing", "data",
    "ai", "mobile", "web", "devops", "security",
]


# ----- Community -----

class User(BaseModel):
    """
    Community members, synchronized from the identity provider
    Collection: "user"
    """
    clerk_id: str = Field(..., description="Identity provider user id")
    name: str = Field("", description="Display name")
    username: str = Field(..., description="Unique handle")
    email: Optional[EmailStr] = None
    picture: Optional[str] = Field(None, description="Avatar URL")
    bio: Optional[str] = None
    location: Optional[str] = None
    portfolio_website: Optional[str] = None
    reputation: int = 0
    role: List[str] = Field(default_factory=lambda: ["user"])
    saved: List[str] = Field(default_factory=list, description="Saved question ids")
    joined_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc).replace(tzinfo=None))


class Question(BaseModel):
    """
    Collection: "question"
    """
    title: str = Field(..., min_length=5, max_length=130)
    content: str
    tags: List[str] = Field(default_factory=list, description="Tag ids")
    views: int = 0
    upvotes: List[str] = Field(default_factory=list)
    downvotes: List[str] = Field(default_factory=list)
    author: str = Field(..., description="User id")
    answers: List[str] = Field(default_factory=list)


class Answer(BaseModel):
    """
    Collection: "answer"
    """
    content: str
    author: str
    question: str
    upvotes: List[str] = Field(default_factory=list)
    downvotes: List[str] = Field(default_factory=list)


class Tag(BaseModel):
    """
    Collection: "tag"
    """
    name: str
    description: Optional[str] = None
    questions: List[str] = Field(default_factory=list)
    followers: List[str] = Field(default_factory=list)


class Interaction(BaseModel):
    """
    User activity used for recommendations
    Collection: "interaction"
    """
    user: str
    action: str = Field(..., description="ask_question | view | answer")
    question: Optional[str] = None
    answer: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


class Job(BaseModel):
    """
    Collection: "job"
    """
    title: str
    employer_name: str
    employer_logo: Optional[str] = None
    employer_website: Optional[str] = None
    employment_type: Optional[str] = Field(None, description="FULLTIME, PARTTIME, CONTRACTOR, INTERN")
    description: str = ""
    apply_link: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    country: Optional[str] = None


class Event(BaseModel):
    """
    Developer events directory
    Collection: "event"
    """
    title: str = Field(..., min_length=5)
    description: str = Field(..., min_length=20)
    start_date: datetime
    end_date: datetime
    location: str = Field(..., min_length=2)
    country: str = Field(..., min_length=2)
    technologies: List[str] = Field(default_factory=list)
    website: Optional[str] = None
    organizer: str = Field(..., min_length=2)
    is_virtual: bool = False
    event_type: EventType = "conference"
    category: EventCategory = "development"
    difficulty: Difficulty = "beginner"
    tags: List[str] = Field(default_factory=list)
    capacity: int = Field(100, ge=1, le=100000)
    is_paid: bool = False
    price: float = Field(0, ge=0)
    language: str = "English"
    timezone: str = "UTC"
    status: EventStatus = "pending"
    submitted_by: Optional[str] = None

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date < self.start_date:
            raise ValueError("end_date must not be before start_date")
        return self


# ----- Expert features -----

class KnowledgeBaseArticle(BaseModel):
    """
    Expert-written articles
    Collection: "knowledgebasearticle"
    """
    title: str = Field(..., min_length=1)
    content: str = Field(..., description="HTML content")
    category: str
    author: str
    views: int = 0
    likes: List[str] = Field(default_factory=list)
    published: bool = False
    slug: Optional[str] = Field(None, description="Unique, derived from title")


class TestCase(BaseModel):
    __test__ = False

    input: str
    expected_output: str


class CodeChallenge(BaseModel):
    """
    Collection: "codechallenge"
    """
    title: str = Field(..., min_length=1)
    description: str
    difficulty: Difficulty
    tags: List[str] = Field(default_factory=list)
    author: str
    starter_code: str = "// Your code here"
    test_cases: List[TestCase] = Field(default_factory=list)
    submissions: List[str] = Field(default_factory=list)
    published: bool = False
    slug: Optional[str] = None


class CodeSubmission(BaseModel):
    """
    Collection: "codesubmission"
    """
    challenge: str
    user: str
    code: str
    passed: bool
    execution_time: int = Field(..., description="Milliseconds")
    test_results: List[dict] = Field(default_factory=list)


class ConsultingSession(BaseModel):
    """
    Collection: "consultingsession"
    """
    expert: str
    client: str
    date: datetime
    time_slot: str
    duration: int = Field(60, ge=1, description="Minutes")
    rate: float = Field(..., ge=0, description="Hourly rate in USD")
    status: SessionStatus = "scheduled"
    topic: str
    notes: str = ""


class ExpertAvailability(BaseModel):
    """
    Collection: "expertavailability"
    """
    expert: str
    date: datetime
    time_slots: List[str] = Field(default_factory=list)
    rate: float = Field(..., ge=0)


class ExpertProfile(BaseModel):
    """
    One per user
    Collection: "expertprofile"
    """
    user: str
    expertise: List[str] = Field(..., min_length=1)
    bio: str = Field(..., min_length=1)
    is_verified: bool = False
    rating: float = 0
    review_count: int = 0
    consulting_rate: float = Field(0, ge=0)


# ----- Projects -----

class Project(BaseModel):
    """
    Collaborative projects with stars, forks and watchers
    Collection: "project"
    """
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    is_private: bool = False
    owner: str
    stars: List[str] = Field(default_factory=list, description="User ids")
    forks: List[str] = Field(default_factory=list, description="Ids of users who forked")
    watchers: List[str] = Field(default_factory=list)
    technologies: List[str] = Field(default_factory=list)
    contributors: List[str] = Field(default_factory=list)
    readme: str = ""
    repository_url: str = ""
    demo_url: Optional[str] = None
    completion_percentage: int = Field(0, ge=0, le=100)
    issues: List[str] = Field(default_factory=list)
    pull_requests: List[str] = Field(default_factory=list)
    parent_project: Optional[str] = Field(None, description="Set on forks")


class Issue(BaseModel):
    """
    Collection: "issue"
    """
    title: str = Field(..., min_length=1)
    description: str
    status: IssueStatus = "open"
    priority: IssuePriority = "medium"
    project: str
    creator: str
    assignees: List[str] = Field(default_factory=list)
    labels: List[str] = Field(default_factory=list)
    closed_at: Optional[datetime] = None


class PullRequest(BaseModel):
    """
    Collection: "pullrequest"
    """
    title: str = Field(..., min_length=1)
    description: str
    status: PullRequestStatus = "open"
    project: str
    creator: str
    reviewers: List[str] = Field(default_factory=list)
    source_branch: str = "feature"
    target_branch: str = "main"
    merged_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None


class Activity(BaseModel):
    """
    Project activity feed entries
    Collection: "activity"
    """
    user: str
    project: str
    action: str
    details: Optional[str] = None


# ----- Request bodies -----

class QuestionIn(BaseModel):
    title: str = Field(..., min_length=5, max_length=130)
    content: str = Field(..., min_length=1)
    tags: List[str] = Field(..., min_length=1, max_length=3)
    author: str


class QuestionEdit(BaseModel):
    title: str = Field(..., min_length=5, max_length=130)
    content: str = Field(..., min_length=1)


class AnswerIn(BaseModel):
    content: str = Field(..., min_length=1)
    author: str
    question: str


class VoteIn(BaseModel):
    user_id: str


class ViewIn(BaseModel):
    user_id: Optional[str] = None


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=3)
    username: Optional[str] = Field(None, min_length=3)
    bio: Optional[str] = None
    location: Optional[str] = None
    portfolio_website: Optional[str] = None


class SaveQuestionIn(BaseModel):
    question_id: str


class ArticleIn(BaseModel):
    title: str = Field(..., min_length=1)
    content: str
    category: str
    author: str
    published: bool = False


class ArticleUpdate(BaseModel):
    title: Optional[str] = None
    content: Optional[str] = None
    category: Optional[str] = None
    published: Optional[bool] = None


class ChallengeIn(BaseModel):
    title: str = Field(..., min_length=1)
    description: str
    difficulty: Difficulty
    tags: List[str] = Field(default_factory=list)
    author: str
    starter_code: str = "// Your code here"
    test_cases: List[TestCase] = Field(default_factory=list)
    published: bool = False


class ChallengeUpdate(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    difficulty: Optional[Difficulty] = None
    tags: Optional[List[str]] = None
    starter_code: Optional[str] = None
    test_cases: Optional[List[TestCase]] = None
    published: Optional[bool] = None


class CodeIn(BaseModel):
    code: str = Field(..., min_length=1)
    user_id: Optional[str] = None


class AvailabilityIn(BaseModel):
    expert_id: str
    date: Date
    time_slots: List[str]
    rate: float = Field(..., ge=0)


class BookingIn(BaseModel):
    expert_id: str
    client_id: str
    date: Date
    time_slot: str
    duration: int = Field(60, ge=1)
    topic: str = Field(..., min_length=1)
    notes: Optional[str] = None


class SessionUpdate(BaseModel):
    status: Optional[SessionStatus] = None
    notes: Optional[str] = None


class ExpertProfileIn(BaseModel):
    user_id: str
    expertise: List[str] = Field(..., min_length=1)
    bio: str = Field(..., min_length=1)
    consulting_rate: float = Field(0, ge=0)


class ExpertProfileUpdate(BaseModel):
    expertise: Optional[List[str]] = None
    bio: Optional[str] = None
    consulting_rate: Optional[float] = Field(None, ge=0)


class EventStatusIn(BaseModel):
    status: EventStatus


class AIQuestionIn(BaseModel):
    question: str = Field(..., min_length=1)


class ProjectIn(BaseModel):
    owner: str
    name: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    is_private: bool = False
    technologies: List[str] = Field(default_factory=list)
    readme: str = ""
    repository_url: str = ""
    demo_url: Optional[str] = None
    completion_percentage: int = Field(0, ge=0, le=100)


class ProjectUpdate(BaseModel):
    user_id: str
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = Field(None, min_length=1)
    is_private: Optional[bool] = None
    technologies: Optional[List[str]] = None
    readme: Optional[str] = None
    repository_url: Optional[str] = None
    demo_url: Optional[str] = None
    completion_percentage: Optional[int] = Field(None, ge=0, le=100)


class IssueIn(BaseModel):
    user_id: str
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    priority: IssuePriority = "medium"
    labels: List[str] = Field(default_factory=list)


class PullRequestIn(BaseModel):
    user_id: str
    title: str = Field(..., min_length=1)
    description: str = Field(..., min_length=1)
    source_branch: str = "feature"
    target_branch: str = "main"
