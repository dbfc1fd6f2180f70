from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Index,
    String,
    func,
)
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import relationship

from portal.db.base import Base


APPLICATION_STATUSES = ("incomplete", "submitted", "under_review", "approved", "rejected")
ROLES = ("student", "admin")


class ApplicantRecord(Base):
    """One row per identity: profile, application blocks and review status."""

    __tablename__ = "applicants"
    __table_args__ = (
        CheckConstraint("role IN ('student', 'admin')", name="ck_applicants_role"),
        CheckConstraint(
            "application_status IN ('incomplete', 'submitted', 'under_review', 'approved', 'rejected')",
            name="ck_applicants_status",
        ),
        CheckConstraint(
            "application_status = 'incomplete' OR submitted_at IS NOT NULL",
            name="ck_applicants_submitted_at",
        ),
        Index("ix_applicants_status_submitted_at", "application_status", "submitted_at"),
    )

    uid = Column(
        UUID(as_uuid=True),
        ForeignKey("identities.id", ondelete="CASCADE"),
        primary_key=True,
    )
    email = Column(String(255), nullable=False)
    display_name = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default="student", server_default="student")
    application_status = Column(
        String(20), nullable=False, default="incomplete", server_default="incomplete"
    )
    personal_info = Column(JSONB, nullable=True)
    academic_info = Column(JSONB, nullable=True)
    documents = Column(JSONB, nullable=True)
    phone = Column(String(20), nullable=True)
    address = Column(String(255), nullable=True)
    city = Column(String(100), nullable=True)
    state = Column(String(100), nullable=True)
    zip_code = Column(String(10), nullable=True)
    submitted_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
    )

    identity = relationship("Identity", back_populates="applicant")
