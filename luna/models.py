"""
SQLAlchemy ORM models.

Tables:
  users          — accounts, profile fields, email verification state
  follows        — social graph edges (follower → followee)
  posts          — post metadata (image bytes stored in MinIO)
  post_tags      — lowercase hashtags attached to a post
  likes          — user × post likes
  comments       — comments on posts
  user_groups    — named user groups
  group_members  — group membership
  group_invites  — pending / answered invitations into a group
  notifications  — per-recipient activity feed
"""
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.dialects import mysql
from sqlalchemy.orm import Mapped, mapped_column, relationship

from luna.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    # Stored naive (UTC)
    return datetime.now(timezone.utc).replace(tzinfo=None)


# MySQL/TiDB DATETIME drops fractions unless fsp is given
Timestamp = DateTime().with_variant(mysql.DATETIME(fsp=6), "mysql")


class User(Base):
    __tablename__ = "users"

    user_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False)
    bio: Mapped[str] = mapped_column(Text, default="", nullable=False)
    avatar_url: Mapped[str] = mapped_column(String(1000), default="", nullable=False)

    is_email_verified: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    email_otp: Mapped[Optional[str]] = mapped_column(String(12))
    otp_expires_at: Mapped[Optional[datetime]] = mapped_column(Timestamp)

    created_at: Mapped[datetime] = mapped_column(Timestamp, default=utcnow, nullable=False)

    posts = relationship("Post", back_populates="author", lazy="noload")


class Follow(Base):
    __tablename__ = "follows"

    follower_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), primary_key=True
    )
    followee_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=utcnow, nullable=False)

    __table_args__ = (
        # "who follows user X?" — profile visibility checks
        Index("idx_followee", "followee_id"),
    )


class Post(Base):
    __tablename__ = "posts"

    # Insertion sequence; orders posts whose created_at ties
    seq: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[str] = mapped_column(
        String(36), unique=True, nullable=False, default=_uuid
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), nullable=False
    )
    caption: Mapped[str] = mapped_column(Text, default="", nullable=False)
    # MinIO object key — clients get a pre-signed URL, never the key itself
    image_key: Mapped[Optional[str]] = mapped_column(String(500))
    like_count: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        Timestamp, default=utcnow, onupdate=utcnow, nullable=False
    )

    author = relationship("User", back_populates="posts", lazy="joined")
    tags = relationship(
        "PostTag",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="PostTag.position",
    )

    __table_args__ = (
        Index("idx_posts_user", "user_id"),
        Index("idx_posts_created", "created_at"),
    )

    @property
    def tag_names(self) -> list[str]:
        return [t.tag for t in self.tags]


class PostTag(Base):
    __tablename__ = "post_tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.post_id"), nullable=False
    )
    tag: Mapped[str] = mapped_column(String(100), nullable=False)
    position: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    __table_args__ = (
        Index("idx_post_tags_tag", "tag"),
        Index("idx_post_tags_post", "post_id"),
    )


class Like(Base):
    __tablename__ = "likes"

    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), primary_key=True
    )
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.post_id"), primary_key=True
    )
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=utcnow, nullable=False)

    user = relationship("User", lazy="joined")


class Comment(Base):
    __tablename__ = "comments"

    comment_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    post_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("posts.post_id"), nullable=False
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), nullable=False
    )
    text: Mapped[str] = mapped_column(String(500), nullable=False)
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=utcnow, nullable=False)

    author = relationship("User", lazy="joined")

    __table_args__ = (Index("idx_comments_post", "post_id"),)


class Group(Base):
    __tablename__ = "user_groups"

    group_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(String(500), default="", nullable=False)
    created_by: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        Timestamp, default=utcnow, onupdate=utcnow, nullable=False
    )

    creator = relationship("User", lazy="joined")
    members = relationship(
        "GroupMember",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="GroupMember.joined_at",
    )

    def has_member(self, user_id: str) -> bool:
        return any(m.user_id == user_id for m in self.members)


class GroupMember(Base):
    __tablename__ = "group_members"

    group_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("user_groups.group_id"), primary_key=True
    )
    user_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), primary_key=True
    )
    joined_at: Mapped[datetime] = mapped_column(Timestamp, default=utcnow, nullable=False)

    user = relationship("User", lazy="joined")

    __table_args__ = (Index("idx_group_members_user", "user_id"),)


class GroupInvite(Base):
    __tablename__ = "group_invites"

    invite_id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    group_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("user_groups.group_id"), nullable=False
    )
    inviter_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), nullable=False
    )
    invitee_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), default="pending", nullable=False
    )  # 'pending' | 'accepted' | 'declined'
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        Timestamp, default=utcnow, onupdate=utcnow, nullable=False
    )

    group = relationship("Group", lazy="joined")
    inviter = relationship("User", foreign_keys=[inviter_id], lazy="joined")
    invitee = relationship("User", foreign_keys=[invitee_id], lazy="joined")

    __table_args__ = (
        Index("idx_group_invites_lookup", "group_id", "invitee_id", "status"),
    )


class Notification(Base):
    __tablename__ = "notifications"

    notification_id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=_uuid
    )
    type: Mapped[str] = mapped_column(
        String(32), nullable=False
    )  # 'like' | 'comment' | 'group_invite' | 'group_invite_response'
    actor_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), nullable=False
    )
    recipient_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("users.user_id"), nullable=False
    )
    post_id: Mapped[Optional[str]] = mapped_column(String(36))
    comment_id: Mapped[Optional[str]] = mapped_column(String(36))
    group_id: Mapped[Optional[str]] = mapped_column(String(36))
    invite_id: Mapped[Optional[str]] = mapped_column(String(36))
    # 'accept' | 'decline' on group_invite_response
    action: Mapped[Optional[str]] = mapped_column(String(20))
    read: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    created_at: Mapped[datetime] = mapped_column(Timestamp, default=utcnow, nullable=False)

    actor = relationship("User", foreign_keys=[actor_id], lazy="joined")

    __table_args__ = (
        Index("idx_notifications_recipient", "recipient_id", "created_at"),
    )
