"""
Database Schemas

Pydantic models for the MongoDB collections and for the request payloads that
feed them.

Each document model represents a collection in the database. Model name is
converted to lowercase for the collection name:
- Category -> "category" collection
- Product -> "product" collection (comments are embedded, no own collection)
- User -> "user" collection

Request models (suffix ``In``) mirror the rules clients are held to: strings
may not be empty and unknown keys are rejected.
"""

from datetime import datetime, timezone
from typing import Annotated, Any, List, Optional, Union

from bson import ObjectId
from pydantic import AfterValidator, BaseModel, ConfigDict, Field, field_validator
from pydantic.networks import validate_email
from pydantic_core import PydanticCustomError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ------------------------- Documents -------------------------

class Category(BaseModel):
    """
    Categories collection schema
    Collection name: "category"
    """
    name: str = Field(..., description="Category name")
    imageUrl: Optional[str] = Field(None, description="Image URL")


class Comment(BaseModel):
    """
    Embedded in product.comments, never stored on its own.
    """
    model_config = ConfigDict(arbitrary_types_allowed=True, populate_by_name=True)

    id: ObjectId = Field(default_factory=ObjectId, alias="_id")
    text: Optional[str] = Field(None, description="Comment body")
    likeCount: Union[int, float] = Field(0, description="Number of likes")
    username: str = Field(..., description="Display name of the author")
    date: datetime = Field(default_factory=utcnow)
    user: ObjectId = Field(..., description="Referenced user _id")


class Product(BaseModel):
    """
    Products collection schema
    Collection name: "product"
    """
    model_config = ConfigDict(arbitrary_types_allowed=True)

    title: str = Field(..., description="Product title")
    author: str = Field(..., description="Author name")
    description: str = Field(..., description="Product description")
    imageUrl: Optional[str] = Field(None, description="Image URL")
    videoUrl: Optional[str] = Field(None, description="Video URL")
    date: datetime = Field(default_factory=utcnow)
    isActive: Optional[bool] = Field(None, description="Whether product is listed")
    category: List[ObjectId] = Field(default_factory=list, description="Referenced category _ids")
    comments: List[Any] = Field(default_factory=list, description="Embedded comments, oldest first")


class User(BaseModel):
    """
    Users collection schema
    Collection name: "user"
    """
    name: str = Field(..., description="Full name")
    email: str = Field(..., description="Email address, unique")
    password: str = Field(..., description="bcrypt hash")
    isAdmin: bool = Field(False, description="Admin privileges")
    createdAt: datetime = Field(default_factory=utcnow)


# ------------------------- Requests -------------------------

class PayloadModel(BaseModel):
    model_config = ConfigDict(extra="forbid", str_min_length=1)


class CategoryIn(PayloadModel):
    name: str = Field(..., min_length=3, max_length=50)
    imageUrl: Optional[str] = None


class ProductIn(PayloadModel):
    title: str = Field(..., min_length=3, max_length=100)
    author: str = Field(..., min_length=3, max_length=30)
    description: str
    imageUrl: Optional[str] = None
    videoUrl: Optional[str] = None
    isActive: Optional[bool] = None
    category: Optional[List[Any]] = None
    comments: Optional[List[Any]] = None


class CommentIn(PayloadModel):
    text: Optional[str] = None
    likeCount: Union[int, float] = 0
    username: str
    userId: str

    @field_validator("userId")
    @classmethod
    def check_user_id(cls, value: str) -> str:
        if not ObjectId.is_valid(value):
            raise PydanticCustomError("object_id", "Value is not a valid id")
        return value


class CommentUpdateIn(PayloadModel):
    # Clients may echo back the create shape, userId included.
    model_config = ConfigDict(extra="ignore", str_min_length=1)

    text: Optional[str] = None
    likeCount: Union[int, float] = 0
    username: Optional[str] = None


def check_email(value: str) -> str:
    _, email = validate_email(value)
    # validate_email also takes "Name <addr>"; only a bare address is allowed.
    if email.lower() != value.strip().lower():
        raise PydanticCustomError("value_error", "value is not a valid email address")
    return email


Email = Annotated[str, Field(min_length=3, max_length=50), AfterValidator(check_email)]


class RegisterIn(PayloadModel):
    name: str = Field(..., min_length=3, max_length=50)
    email: Email
    password: str = Field(..., min_length=5)


class LoginIn(PayloadModel):
    email: Email
    password: str = Field(..., min_length=5)
