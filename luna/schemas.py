"""
Pydantic request / response schemas for the API layer.
Kept separate from ORM models to avoid coupling transport to storage.
"""
from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, EmailStr, Field, field_validator

from luna.tags import MAX_TAG_LENGTH


# ──────────────────────────── Auth ────────────────────────────────────────

class RegisterRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    email: EmailStr
    password: str = Field(..., min_length=6)

    @field_validator("name")
    @classmethod
    def _strip_name(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Name is required")
        return v


class RegisterResponse(BaseModel):
    message: str
    email: str


class LoginRequest(BaseModel):
    email: EmailStr
    password: str = Field(..., min_length=1)


class VerifyOtpRequest(BaseModel):
    email: EmailStr
    otp: str = Field(..., min_length=4, max_length=12)


class ResendOtpRequest(BaseModel):
    email: EmailStr


class MessageResponse(BaseModel):
    message: str


# ──────────────────────────── Users ───────────────────────────────────────

class UserSummary(BaseModel):
    user_id: str
    name: str
    avatar_url: str = ""

    class Config:
        from_attributes = True


class UserResponse(BaseModel):
    user_id: str
    name: str
    email: str
    bio: str
    avatar_url: str
    created_at: datetime

    class Config:
        from_attributes = True


class TokenResponse(BaseModel):
    token: str
    user: UserResponse


class UserUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    bio: Optional[str] = Field(None, max_length=1000)
    avatar_url: Optional[str] = Field(None, max_length=1000)


class FollowListResponse(BaseModel):
    user_id: str
    users: list[str]


# ──────────────────────────── Posts ───────────────────────────────────────

def _check_tag_lengths(tags: Optional[list[str]]) -> Optional[list[str]]:
    if tags is not None and any(
        len(t.strip().lstrip("#").strip()) > MAX_TAG_LENGTH for t in tags
    ):
        raise ValueError(f"tags must be at most {MAX_TAG_LENGTH} characters")
    return tags


class PostCreate(BaseModel):
    caption: str = Field("", max_length=1000)
    # Explicit tags win; otherwise hashtags are parsed out of the caption
    tags: Optional[list[str]] = None
    # Base64-encoded image payload — stored in MinIO; optional
    image_base64: Optional[str] = None
    image_type: Optional[str] = Field(None, pattern="^(jpeg|png|gif)$")

    @field_validator("tags")
    @classmethod
    def _tag_lengths(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        return _check_tag_lengths(v)


class PostUpdate(BaseModel):
    caption: Optional[str] = Field(None, max_length=1000)
    tags: Optional[list[str]] = None
    image_base64: Optional[str] = None
    image_type: Optional[str] = Field(None, pattern="^(jpeg|png|gif)$")

    @field_validator("tags")
    @classmethod
    def _tag_lengths(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        return _check_tag_lengths(v)


class PostResponse(BaseModel):
    post_id: str
    user_id: str
    author: Optional[UserSummary] = None
    caption: str
    image_url: Optional[str]   # pre-signed MinIO URL
    tags: list[str]
    like_count: int
    created_at: datetime
    updated_at: datetime


class LikeToggleResponse(BaseModel):
    likes: int
    liked: bool


class LikersResponse(BaseModel):
    post_id: str
    likers: list[UserSummary]


# ──────────────────────────── Comments ────────────────────────────────────

class CommentCreate(BaseModel):
    text: str = Field(..., max_length=500)

    @field_validator("text")
    @classmethod
    def _strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Comment cannot be empty")
        return v


class CommentResponse(BaseModel):
    comment_id: str
    post_id: str
    author: UserSummary
    text: str
    created_at: datetime

    class Config:
        from_attributes = True


# ──────────────────────────── Feed ────────────────────────────────────────

class FeedResponse(BaseModel):
    """
    `status` separates "nothing to show" (ok + empty posts) from
    "not allowed to see this profile" (private).
    """
    status: Literal["ok", "private"]
    posts: list[PostResponse]


# ──────────────────────────── Groups ──────────────────────────────────────

class GroupCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: str = Field("", max_length=500)

    @field_validator("name", "description")
    @classmethod
    def _strip(cls, v: str) -> str:
        return v.strip()

    @field_validator("name")
    @classmethod
    def _name_required(cls, v: str) -> str:
        if not v:
            raise ValueError("Group name is required")
        return v


class GroupResponse(BaseModel):
    group_id: str
    name: str
    description: str
    created_by: UserSummary
    members: list[UserSummary]
    created_at: datetime
    updated_at: datetime


class GroupSummary(BaseModel):
    group_id: str
    name: str
    description: str

    class Config:
        from_attributes = True


class InviteRequest(BaseModel):
    email: EmailStr


class InviteResponse(BaseModel):
    invite_id: str
    group: GroupSummary
    inviter: UserSummary
    invitee: UserSummary
    status: str
    created_at: datetime

    class Config:
        from_attributes = True


class InviteCreatedResponse(BaseModel):
    invite: InviteResponse
    notification_id: Optional[str]


class InviteRespondRequest(BaseModel):
    action: Literal["accept", "decline"]


# ──────────────────────────── Notifications ───────────────────────────────

class NotificationResponse(BaseModel):
    notification_id: str
    type: str
    actor: UserSummary
    post_id: Optional[str]
    comment_id: Optional[str]
    group_id: Optional[str]
    invite_id: Optional[str]
    action: Optional[str]
    read: bool
    created_at: datetime

    class Config:
        from_attributes = True


class UnreadCountResponse(BaseModel):
    count: int
