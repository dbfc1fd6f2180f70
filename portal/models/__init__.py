from portal.models.applicant import ApplicantRecord
from portal.models.identity import Identity

__all__ = [
    "ApplicantRecord",
    "Identity",
]
