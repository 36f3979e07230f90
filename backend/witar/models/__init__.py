# Import models here so Alembic can discover metadata.
from witar.models.user import User  # noqa: F401

# Companies, memberships, org structure
from witar.models.company import Company  # noqa: F401
from witar.models.company_settings import CompanySettings  # noqa: F401
from witar.models.department import Department  # noqa: F401
from witar.models.company_membership import CompanyMembership  # noqa: F401
from witar.models.invitation import Invitation  # noqa: F401

# Time tracking
from witar.models.time_entry import TimeEntry  # noqa: F401
from witar.models.time_entry_edit_request import TimeEntryEditRequest  # noqa: F401
from witar.models.leave_request import LeaveRequest  # noqa: F401

# Documents, notifications, billing
from witar.models.document import Document  # noqa: F401
from witar.models.notification import Notification, DeletedNotification  # noqa: F401
from witar.models.billing import Subscription, Invoice  # noqa: F401
