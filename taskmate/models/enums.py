from enum import Enum

class ProjectRole(str, Enum):
    owner = "owner"
    member = "member"

class MembershipStatus(str, Enum):
    active = "active"

class RequestStatus(str, Enum):
    pending = "pending"
    approved = "approved"
    rejected = "rejected"
    withdrawn = "withdrawn"

TERMINAL_REQUEST_STATUSES = {RequestStatus.approved, RequestStatus.rejected, RequestStatus.withdrawn}

class RequestAction(str, Enum):
    approve = "approve"
    reject = "reject"
