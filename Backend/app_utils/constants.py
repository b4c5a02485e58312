import enum

from app_utils.exceptions import InvalidInputError


# ---------------- Enumerations ----------------
class ComplaintStatus(str, enum.Enum):
    SUBMITTED = "SUBMITTED"
    IN_PROGRESS = "IN_PROGRESS"
    RESOLVED = "RESOLVED"
    ESCALATED = "ESCALATED"


class UserRole(str, enum.Enum):
    CITIZEN = "CITIZEN"
    STAFF = "STAFF"
    ADMIN = "ADMIN"


class NotificationType(str, enum.Enum):
    INFO = "INFO"
    STATUS_CHANGE = "STATUS_CHANGE"
    COMMENT = "COMMENT"
    ASSIGNMENT = "ASSIGNMENT"


# Roles allowed to triage complaints
STAFF_ROLES = (UserRole.STAFF, UserRole.ADMIN)

# Reopening is only allowed for unrated or poorly rated resolutions
MAX_RATING_FOR_REOPEN = 2
MIN_RATING = 1
MAX_RATING = 5

# Hotspot histogram: coordinates rounded to 3 decimals (~110 m cells)
HOTSPOT_GRID_DECIMALS = 3
HOTSPOT_LIMIT = 10

# Columns clients may sort complaint listings by
COMPLAINT_SORT_FIELDS = {
    "createdAt": "created_at",
    "created_at": "created_at",
    "updatedAt": "updated_at",
    "updated_at": "updated_at",
    "dueDate": "due_date",
    "due_date": "due_date",
    "status": "status",
    "category": "category",
    "title": "title",
    "rating": "rating",
    "id": "id",
}

DEFAULT_PAGE_SIZE = 10
MAX_PAGE_SIZE = 100


def parse_enum(enum_cls, value, field="value"):
    """
    Parse a client supplied string into ``enum_cls`` (case-insensitive).
    Raises InvalidInputError for unknown values.
    """
    if isinstance(value, enum_cls):
        return value
    if value is None:
        raise InvalidInputError(f"Invalid {field}: None")
    try:
        return enum_cls(str(value).strip().upper())
    except ValueError:
        raise InvalidInputError(f"Invalid {field}: {value}")
