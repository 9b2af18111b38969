# Database models
from archplans.models.user import User, UserProfile
from archplans.models.category import Category
from archplans.models.plan import Plan, PlanFile, PlanImage, PlanTag
from archplans.models.project import Project, Visualization
from archplans.models.gallery import GalleryImage
from archplans.models.order import Order, OrderItem
from archplans.models.license import License
from archplans.models.download_log import DownloadLog
from archplans.models.sequence import PlanSequence, ProjectSequence, VisualizationSequence, GallerySequence
from archplans.models.audit_log import AuditLog

__all__ = [
    "User",
    "UserProfile",
    "Category",
    "Plan",
    "PlanFile",
    "PlanImage",
    "PlanTag",
    "Project",
    "Visualization",
    "GalleryImage",
    "Order",
    "OrderItem",
    "License",
    "DownloadLog",
    "PlanSequence",
    "ProjectSequence",
    "VisualizationSequence",
    "GallerySequence",
    "AuditLog",
]
