"""
Database Schemas for the Sustainability Hub

Each Pydantic model corresponds to a MongoDB collection or to a document
embedded in one. Collection name is the lowercase of the class name.
References to other documents are stored as ObjectIds.
"""

from datetime import datetime
from typing import List, Literal, Optional

from bson import ObjectId
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator, model_validator

BLOG_CATEGORIES = (
    "sustainability",
    "energy",
    "environment",
    "education",
    "research",
    "news",
    "events",
    "projects",
)
BlogCategory = Literal[
    "sustainability", "energy", "environment", "education", "research", "news", "events", "projects"
]
PostStatus = Literal["draft", "published", "archived"]

PROJECT_TYPES = (
    "Recycling",
    "Zero Waste",
    "Seminar",
    "Energy",
    "Water",
    "Transportation",
    "Education",
    "Research",
    "Other",
)
ProjectType = Literal[
    "Recycling", "Zero Waste", "Seminar", "Energy", "Water", "Transportation", "Education", "Research", "Other"
]
ProjectStatus = Literal["Planning", "In Progress", "Ongoing", "Completed", "On Hold", "Cancelled"]
ACTIVE_PROJECT_STATUSES = ("In Progress", "Ongoing")


def normalize_tags(tags: List[str]) -> List[str]:
    return [t.strip().lower() for t in tags if t and t.strip()]


class User(BaseModel):
    """
    Accounts
    Collection: "user"
    """
    fullname: str = Field(..., min_length=2, max_length=100, description="Full name")
    email: EmailStr = Field(..., description="Unique, stored lowercase")
    password_hash: str = Field(..., description="bcrypt hash")
    role: Literal["user", "admin"] = Field("user")
    avatar: Optional[str] = None
    emailVerified: bool = False
    isActive: bool = True
    approved: bool = Field(False, description="Non-admins cannot sign in until approved")
    lastLogin: Optional[datetime] = None

    @field_validator("email")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()


class Reply(BaseModel):
    """Single-level reply under a comment"""
    model_config = ConfigDict(arbitrary_types_allowed=True)

    author: ObjectId
    content: str = Field(..., min_length=1, max_length=500)


class Comment(BaseModel):
    """
    Comment embedded in BlogPost.comments
    Visible to readers only once isApproved is true.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    author: ObjectId
    content: str = Field(..., min_length=1, max_length=1000)
    isApproved: bool = False
    likes: List[ObjectId] = Field(default_factory=list)
    replies: List[dict] = Field(default_factory=list)


class ImageRef(BaseModel):
    url: str
    caption: Optional[str] = None
    alt: Optional[str] = None


class Seo(BaseModel):
    metaTitle: Optional[str] = None
    metaDescription: Optional[str] = Field(None, max_length=160)
    keywords: List[str] = Field(default_factory=list)


class BlogPost(BaseModel):
    """
    Blog posts with their comments embedded
    Collection: "blogpost"
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    title: str = Field(..., min_length=3, max_length=200)
    content: str = Field(..., min_length=50)
    excerpt: Optional[str] = Field(None, max_length=500)
    author: ObjectId
    featuredImage: Optional[ImageRef] = None
    images: List[ImageRef] = Field(default_factory=list)
    categories: List[BlogCategory] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    status: PostStatus = "draft"
    isPublic: bool = True
    isFeatured: bool = False
    seo: Seo = Field(default_factory=Seo)
    views: int = Field(0, ge=0)
    likes: List[ObjectId] = Field(default_factory=list)
    comments: List[dict] = Field(default_factory=list)

    @field_validator("categories", mode="before")
    @classmethod
    def lower_categories(cls, v):
        if isinstance(v, list):
            return [c.strip().lower() if isinstance(c, str) else c for c in v]
        return v

    @field_validator("tags")
    @classmethod
    def lower_tags(cls, v: List[str]) -> List[str]:
        return normalize_tags(v)


class ProjectImage(BaseModel):
    url: str
    caption: Optional[str] = ""
    isPrimary: bool = False


class ProjectDocument(BaseModel):
    url: str
    name: Optional[str] = None
    type: Optional[str] = None
    size: Optional[int] = Field(None, ge=0)


class Budget(BaseModel):
    amount: Optional[float] = Field(None, ge=0)
    currency: Literal["EUR", "USD", "GBP"] = "EUR"


class CarbonReduction(BaseModel):
    value: Optional[float] = None
    unit: Literal["kg", "tons", "kWh", "liters"] = "kg"


class EnergySaved(BaseModel):
    value: Optional[float] = None
    unit: Literal["kWh", "MWh", "GWh"] = "kWh"


class WasteReduced(BaseModel):
    value: Optional[float] = None
    unit: Literal["kg", "tons", "liters"] = "kg"


class CostSavings(BaseModel):
    value: Optional[float] = None
    currency: str = "EUR"


class ProjectMetrics(BaseModel):
    carbonReduction: Optional[CarbonReduction] = None
    energySaved: Optional[EnergySaved] = None
    wasteReduced: Optional[WasteReduced] = None
    peopleImpacted: Optional[int] = Field(None, ge=0)
    costSavings: Optional[CostSavings] = None


class Project(BaseModel):
    """
    Sustainability projects
    Collection: "project"

    At most one image is primary; the first image is promoted when none is.
    """
    title: str = Field(..., min_length=3, max_length=200)
    description: str = Field(..., min_length=10, max_length=2000)
    departments: List[str] = Field(..., min_length=1)
    type: ProjectType
    status: ProjectStatus = "Planning"
    priority: Literal["Low", "Medium", "High", "Critical"] = "Medium"
    partners: List[str] = Field(default_factory=list)
    responsiblePerson: str = Field(..., min_length=2, max_length=100)
    responsibleEmail: EmailStr
    yearInitiated: int = Field(..., ge=2000)
    yearCompleted: Optional[int] = Field(None, ge=2000)
    location: str = Field(..., min_length=2, max_length=200)
    budget: Optional[Budget] = None
    images: List[ProjectImage] = Field(default_factory=list)
    documents: List[ProjectDocument] = Field(default_factory=list)
    metrics: Optional[ProjectMetrics] = None
    tags: List[str] = Field(default_factory=list)
    isPublic: bool = True
    isFeatured: bool = False

    @field_validator("title", "description", "responsiblePerson", "location")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return v.strip()

    @field_validator("responsibleEmail")
    @classmethod
    def lower_email(cls, v: str) -> str:
        return v.lower()

    @field_validator("departments", "partners")
    @classmethod
    def strip_items(cls, v: List[str]) -> List[str]:
        return [item.strip() for item in v if item and item.strip()]

    @field_validator("tags")
    @classmethod
    def lower_tags(cls, v: List[str]) -> List[str]:
        return normalize_tags(v)

    @field_validator("yearInitiated")
    @classmethod
    def not_too_far_ahead(cls, v: int) -> int:
        if v > datetime.now().year + 10:
            raise ValueError("Year cannot be more than 10 years in the future")
        return v

    @model_validator(mode="after")
    def check_years_and_primary_image(self):
        if not self.departments:
            raise ValueError("At least one department must be specified")
        if self.yearCompleted is not None and self.yearCompleted < self.yearInitiated:
            raise ValueError("Completion year must be after initiation year")
        if self.images:
            first = next((i for i, img in enumerate(self.images) if img.isPrimary), 0)
            for i, img in enumerate(self.images):
                img.isPrimary = i == first
        return self
