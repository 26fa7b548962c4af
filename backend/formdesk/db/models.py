import uuid
from datetime import datetime

from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text, Index
from sqlalchemy.orm import relationship
from formdesk.db.database import Base


def _uuid() -> str:
    return str(uuid.uuid4())


class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        Index("ix_users_admin_id", "admin_id"),
        Index("ix_users_pending", "is_admin", "is_approved"),
    )
    id = Column(String(36), primary_key=True, default=_uuid)
    email = Column(String(255), index=True)
    name = Column(String(255), nullable=False)
    hashed_password = Column(String(255))  # Null for people who only submit forms
    is_admin = Column(Boolean, default=False, nullable=False)
    is_super_admin = Column(Boolean, default=False, nullable=False)
    is_approved = Column(Boolean, default=False, nullable=False)
    admin_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"))
    avatar_url = Column(String(500))
    avatar_path = Column(String(500))
    # Notification settings (delivery happens elsewhere)
    telegram_chat_id = Column(String(100))
    telegram_notifications_enabled = Column(Boolean, default=False, nullable=False)
    email_notifications_enabled = Column(Boolean, default=False, nullable=False)
    notification_preferences = Column(Text)  # JSON object
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)
    updated_at = Column(DateTime(timezone=True), onupdate=datetime.utcnow)

    forms = relationship("Form", back_populates="creator", cascade="all, delete-orphan")


class Form(Base):
    __tablename__ = "forms"

    id = Column(String(36), primary_key=True, default=_uuid)
    title = Column(String(255), nullable=False)
    description = Column(Text)
    creator_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, index=True)
    updated_at = Column(DateTime(timezone=True), onupdate=datetime.utcnow)

    creator = relationship("User", back_populates="forms")
    fields = relationship(
        "FormField",
        back_populates="form",
        cascade="all, delete-orphan",
        order_by="FormField.order",
    )
    submissions = relationship("Submission", back_populates="form", cascade="all, delete-orphan")


class FormField(Base):
    __tablename__ = "form_fields"

    id = Column(String(36), primary_key=True, default=_uuid)
    form_id = Column(String(36), ForeignKey("forms.id", ondelete="CASCADE"), nullable=False, index=True)
    # Plain string: unknown tags must survive a round trip
    field_type = Column(String(50), nullable=False)
    label = Column(String(500), nullable=False)
    name = Column(String(255), nullable=False)
    is_required = Column(Boolean, default=False, nullable=False)
    order = Column(Integer, default=0, nullable=False)
    options = Column(Text)  # JSON array string
    placeholder = Column(String(500))

    form = relationship("Form", back_populates="fields")


class Submission(Base):
    __tablename__ = "submissions"
    __table_args__ = (
        Index("ix_submissions_form_submitted", "form_id", "submitted_at"),
    )

    id = Column(String(36), primary_key=True, default=_uuid)
    form_id = Column(String(36), ForeignKey("forms.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"))
    submitted_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    form = relationship("Form", back_populates="submissions")
    user = relationship("User")
    field_values = relationship("FieldValue", back_populates="submission", cascade="all, delete-orphan")
    files = relationship("SubmissionFile", back_populates="submission", cascade="all, delete-orphan")


class FieldValue(Base):
    __tablename__ = "field_values"

    id = Column(String(36), primary_key=True, default=_uuid)
    submission_id = Column(String(36), ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False, index=True)
    # No FK: values outlive fields dropped by a later form update
    field_id = Column(String(36), nullable=False, index=True)
    value = Column(Text)

    submission = relationship("Submission", back_populates="field_values")


class SubmissionFile(Base):
    __tablename__ = "submission_files"

    id = Column(String(36), primary_key=True, default=_uuid)
    submission_id = Column(String(36), ForeignKey("submissions.id", ondelete="CASCADE"), nullable=False, index=True)
    field_id = Column(String(36), index=True)
    original_filename = Column(String(255), nullable=False)
    storage_path = Column(String(500), nullable=False)
    blob_url = Column(String(500), nullable=False)
    file_size = Column(Integer, nullable=False)
    content_type = Column(String(100))
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow)

    submission = relationship("Submission", back_populates="files")
