from .user import User
from .skill import Skill
from .developer import DeveloperProfile, DeveloperSkill
from .project import Project
from .assignment import AssignmentBatch, AssignmentCandidate, RotationCursor
from .contact_grant import ContactGrant
from .billing import Package, Subscription, SubscriptionUsage
from .cron_run import CronRun

__all__ = [
    "User",
    "Skill",
    "DeveloperProfile",
    "DeveloperSkill",
    "Project",
    "AssignmentBatch",
    "AssignmentCandidate",
    "RotationCursor",
    "ContactGrant",
    "Package",
    "Subscription",
    "SubscriptionUsage",
    "CronRun",
]
