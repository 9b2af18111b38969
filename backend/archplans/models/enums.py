"""
枚举类型：角色、状态、授权类型等
"""
import enum


class UserRole(str, enum.Enum):
    CUSTOMER = "CUSTOMER"
    ADMIN = "ADMIN"
    SUPER_ADMIN = "SUPER_ADMIN"


class PlanStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    ARCHIVED = "ARCHIVED"


class ProjectStatus(str, enum.Enum):
    PLANNING = "PLANNING"
    DESIGN = "DESIGN"
    CONSTRUCTION = "CONSTRUCTION"
    COMPLETED = "COMPLETED"


class ImageStatus(str, enum.Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ImageCategory(str, enum.Enum):
    ARCHITECTURAL_PLAN = "ARCHITECTURAL_PLAN"
    RESIDENTIAL = "RESIDENTIAL"
    COMMERCIAL = "COMMERCIAL"
    LUXURY = "LUXURY"


class OrderStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class LicenseType(str, enum.Enum):
    """授权等级，按权益从低到高排列"""
    PREVIEW = "PREVIEW"
    STANDARD = "STANDARD"
    COMMERCIAL = "COMMERCIAL"
    EXTENDED = "EXTENDED"

    @property
    def rank(self) -> int:
        return list(LicenseType).index(self)


class ItemType(str, enum.Enum):
    PLAN = "PLAN"
    IMAGE = "IMAGE"
