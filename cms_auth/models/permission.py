"""Permission model and the stable permission catalog."""

import enum
import uuid

from sqlalchemy import Column, String, DateTime, Boolean, Integer, Index
from cms_auth.database import Base
from cms_auth.utils.clock import utcnow


class PermissionCode(enum.IntEnum):
    """
    Authorization keys carried in access tokens.

    The integer values are persisted and embedded in issued tokens;
    renumbering a member is a breaking data migration.
    """

    # User management
    GET_USER = 0
    REGISTER_USER = 1
    GET_ROLES = 2
    GET_PERMISSIONS_OF_USER = 3
    RESET_PASSWORD = 4
    SET_ROLE_TO_USER = 5
    DELETE_USER = 6
    UPDATE_USER = 7
    GET_USERS_BY_FILTER = 8
    GET_USERS = 9
    GET_PERMISSIONS = 10
    GET_USER_BY_EMAIL = 11
    SET_ACCURACY_TO_USER = 12
    SEARCH_USER = 13
    SET_USER_PERMISSIONS = 46
    ADD_ROLE = 47
    GET_USER_LOGIN_LOGS = 48

    # Content management
    GET_ALL_POSTS = 15
    REGISTER_POSTS = 16
    SEARCH_POST = 17
    GET_POST_BY_TITLE = 18
    GET_ALL_POST_TYPES = 19
    CREATE_POST = 20
    UPDATE_POST = 21
    DELETE_POST = 22
    GET_POSTS_BY_CATEGORY = 23
    GET_ALL_CATEGORIES = 24
    GET_ALL_TAGS = 25
    GET_ALL_POST_STATUS = 26
    UPDATE_CATEGORIES = 27

    # Innovation management
    SET_IDEA_SUBMISSION_ACCURACY = 14
    GET_ALL_INNOVATIONS = 29
    CREATE_INNOVATION = 30
    UPDATE_INNOVATION = 31
    DELETE_INNOVATION = 32

    # Dynamic pages
    GET_ALL_DYNAMIC_PAGES = 33
    GET_DYNAMIC_PAGE = 34
    CREATE_DYNAMIC_PAGE = 35
    UPDATE_DYNAMIC_PAGE = 36
    DELETE_DYNAMIC_PAGE = 37
    SEARCH_DYNAMIC_PAGES = 38

    # Menu management
    GET_ALL_MENU_ITEMS = 39
    GET_MENU_ITEM = 40
    GET_ROOT_MENU_ITEMS = 41
    GET_CHILD_MENU_ITEMS = 42
    CREATE_MENU_ITEM = 43
    UPDATE_MENU_ITEM = 44
    DELETE_MENU_ITEM = 45

    # Contact and support
    GET_ALL_ADMIN_TICKETS = 49
    GET_USER_TICKETS = 50
    GET_ALL_CONTACT_US = 51
    CREATE_CONTACT_US = 52
    UPDATE_CONTACT_US = 53
    DELETE_CONTACT_US = 54
    SEARCH_CONTACT_US = 55

    # Menu access
    VIEW_COMPLETE_PROFILE_MENU = 2001
    VIEW_USER_MANAGE_MENU = 2002
    VIEW_IDEA_SUBMISSIONS_MENU = 2003
    VIEW_MENU_MANAGE_MENU = 2004
    VIEW_DYNAMIC_PAGES_MENU = 2005
    VIEW_BLOG_MANAGE_MENU = 2006
    VIEW_INNOVATIONS_MENU = 2007
    VIEW_CONTACT_US_MENU = 2008
    VIEW_TICKET_GROUPS_MENU = 2009
    VIEW_SUPPORT_MENU = 2010
    VIEW_USER_SUPPORT_MENU = 2011

    # Ticket groups
    CREATE_TICKET_GROUP_BUTTON = 4001
    EDIT_TICKET_GROUP_BUTTON = 4002
    DELETE_TICKET_GROUP_BUTTON = 4003

    # Admin tickets
    SEND_ADMIN_MESSAGE_BUTTON = 4101
    CLOSE_TICKET_BUTTON = 4102
    DOWNLOAD_ATTACHMENT_BUTTON = 4103
    GET_USER_PERMISSIONS = 4104

    @property
    def display_name(self) -> str:
        """Human readable name, e.g. ``GET_USERS`` -> ``Get Users``."""
        return self.name.replace("_", " ").title()


class Permission(Base):
    """Atomic capability; identity for comparison is the enum value alone."""

    __tablename__ = "permissions"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(String(100), nullable=False)
    code = Column(String(50), nullable=False)
    description = Column(String(500), nullable=True)
    permission_enum = Column(Integer, nullable=False, unique=True)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_permission_code", "code"),
    )

    @classmethod
    def from_code(cls, code: PermissionCode, description: str = None) -> "Permission":
        code = PermissionCode(code)
        return cls(
            id=str(uuid.uuid4()),
            name=code.display_name,
            code=code.name,
            permission_enum=int(code),
            description=description or f"Can {code.display_name.lower()}",
            is_active=True,
        )

    @property
    def permission_code(self) -> PermissionCode:
        return PermissionCode(self.permission_enum)

    def __eq__(self, other):
        if not isinstance(other, Permission):
            return NotImplemented
        return self.permission_enum == other.permission_enum

    def __hash__(self):
        return hash(self.permission_enum)

    def __repr__(self):
        return f"<Permission {self.code}={self.permission_enum}>"
