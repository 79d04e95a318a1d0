# db/enums.py
import enum

class UserRole(enum.StrEnum):
    ADMIN = "admin"
    ORGANIZER = "organizer"
    COORDINATOR = "coordinator"
    JUDGE = "judge"
    STUDENT = "student"

class HackathonStatus(enum.StrEnum):
    DRAFT = "draft"
    PUBLISHED = "published"
    REGISTRATION_OPEN = "registration_open"
    REGISTRATION_CLOSED = "registration_closed"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class HackathonMode(enum.StrEnum):
    ONLINE = "online"
    OFFLINE = "offline"
    HYBRID = "hybrid"

class RoundType(enum.StrEnum):
    SUBMISSION = "submission"
    PRESENTATION = "presentation"
    INTERVIEW = "interview"
    WORKSHOP = "workshop"
    OTHER = "other"

class RoundMode(enum.StrEnum):
    ONLINE = "online"
    OFFLINE = "offline"

class RoundStatus(enum.StrEnum):
    PENDING = "pending"
    ONGOING = "ongoing"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

class RegistrationStatus(enum.StrEnum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"

class SubmissionStatus(enum.StrEnum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"

class TeamState(enum.StrEnum):
    """Single approval lifecycle; both public status fields are views of it."""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"

    @property
    def registration_status(self) -> RegistrationStatus:
        return _REGISTRATION_VIEW[self]

    @property
    def submission_status(self) -> SubmissionStatus:
        return _SUBMISSION_VIEW[self]

    @classmethod
    def with_submission_status(cls, status: SubmissionStatus) -> list["TeamState"]:
        return [state for state, view in _SUBMISSION_VIEW.items() if view == status]

    @classmethod
    def with_registration_status(cls, status: RegistrationStatus) -> list["TeamState"]:
        return [state for state, view in _REGISTRATION_VIEW.items() if view == status]

_REGISTRATION_VIEW = {
    TeamState.DRAFT: RegistrationStatus.PENDING,
    TeamState.SUBMITTED: RegistrationStatus.PENDING,
    TeamState.APPROVED: RegistrationStatus.APPROVED,
    TeamState.REJECTED: RegistrationStatus.REJECTED,
}

# rejection re-opens the submission side while the registration stays rejected
_SUBMISSION_VIEW = {
    TeamState.DRAFT: SubmissionStatus.DRAFT,
    TeamState.SUBMITTED: SubmissionStatus.SUBMITTED,
    TeamState.APPROVED: SubmissionStatus.APPROVED,
    TeamState.REJECTED: SubmissionStatus.DRAFT,
}

class ApprovalSource(enum.StrEnum):
    MANUAL = "manual"
    SYSTEM = "system"

class MemberRole(enum.StrEnum):
    LEADER = "leader"
    MEMBER = "member"

class MemberStatus(enum.StrEnum):
    ACTIVE = "active"
    LEFT = "left"
    REMOVED = "removed"

class PaymentStatus(enum.StrEnum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"

class ProjectStatus(enum.StrEnum):
    SUBMITTED = "submitted"
    UNDER_REVIEW = "under_review"
    REVIEWED = "reviewed"

class JoinRequestStatus(enum.StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

class InvitationStatus(enum.StrEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"

class Permission(enum.StrEnum):
    VIEW_TEAMS = "can_view_teams"
    EDIT_TEAMS = "can_edit_teams"
    CHECK_IN = "can_check_in"
    ASSIGN_TABLES = "can_assign_tables"
    VIEW_SUBMISSIONS = "can_view_submissions"
    ELIMINATE_TEAMS = "can_eliminate_teams"
    COMMUNICATE = "can_communicate"

class NotificationKind(enum.StrEnum):
    COORDINATOR_INVITATION = "coordinator_invitation"
    JUDGE_INVITATION = "judge_invitation"
    JOIN_REQUEST = "join_request"
    TEAM_APPROVED = "team_approved"
    TEAM_REJECTED = "team_rejected"
    TEAM_NOTE = "team_note"
