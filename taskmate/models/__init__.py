from taskmate.models.base import Base
from taskmate.models.membership import Membership
from taskmate.models.message import Message
from taskmate.models.project import Project
from taskmate.models.project_request import ProjectRequest
from taskmate.models.user import User

__all__ = ["Base", "User", "Project", "Membership", "ProjectRequest", "Message"]
