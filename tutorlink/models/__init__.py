# SQLAlchemy ORM Models
"""Model package exports for Alembic discovery and application use.

All models must be imported here to ensure Alembic can discover them
for automatic migration generation.
"""

from tutorlink.models.catalog import Course, Subject
from tutorlink.models.contact import Contact, ContactStatus
from tutorlink.models.payment import Payment, PaymentStatus
from tutorlink.models.post_requirement import PostRequirement
from tutorlink.models.subject_resources import SubjectResources
from tutorlink.models.teacher import TeacherProfile
from tutorlink.models.teacher_application import ApplicationStatus, TeacherApplication
from tutorlink.models.user import User, UserRole
from tutorlink.models.wallet import (
    ReferenceKind,
    TransactionType,
    Wallet,
    WalletTransaction,
)

__all__ = [
    "ApplicationStatus",
    "Contact",
    "ContactStatus",
    "Course",
    "Payment",
    "PaymentStatus",
    "PostRequirement",
    "ReferenceKind",
    "Subject",
    "SubjectResources",
    "TeacherApplication",
    "TeacherProfile",
    "TransactionType",
    "User",
    "UserRole",
    "Wallet",
    "WalletTransaction",
]
