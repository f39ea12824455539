from enum import StrEnum


class UserRole(StrEnum):
    ADMIN = "admin"
    EMPLOYEE = "employee"
    CUSTOMER = "customer"
    PROVIDER = "provider"


class UserStatus(StrEnum):
    ACTIVE = "active"
    PENDING = "pending"
    REJECTED = "rejected"
    INACTIVE = "inactive"


STAFF_ROLES: frozenset[UserRole] = frozenset({UserRole.ADMIN, UserRole.EMPLOYEE})


class Action(StrEnum):
    # Events
    CREATE_EVENT = "event:create"
    VIEW_EVENT = "event:view"
    EDIT_EVENT = "event:edit"  # owner edits details while pending
    TRANSITION_EVENT = "event:transition"
    DELETE_EVENT = "event:delete"

    # Proposals
    CREATE_PROPOSAL = "proposal:create"
    EDIT_PROPOSAL = "proposal:edit"
    SEND_PROPOSAL = "proposal:send"  # draft -> pending
    VIEW_PROPOSAL = "proposal:view"
    RESOLVE_PROPOSAL = "proposal:resolve"  # pending -> accepted / rejected

    # Bookings
    CREATE_BOOKING = "booking:create"
    RESOLVE_BOOKING = "booking:resolve"  # pending -> confirmed / declined
    ADMINISTER_BOOKING = "booking:administer"  # cancel / complete

    # Services
    CREATE_SERVICE = "service:create"
    EDIT_SERVICE = "service:edit"
