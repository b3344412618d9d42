"""Import every model so Base.metadata knows about all tables."""
from training_bookings.models.session import TrainingSession, SessionStatus  # noqa: F401
from training_bookings.models.attendee import SessionAttendee, AttendeeStatus, AttendeeSource  # noqa: F401
from training_bookings.models.person import Person  # noqa: F401
from training_bookings.models.training_record import TrainingRecord, DueStatus  # noqa: F401
from training_bookings.models.attendance_mutation import AttendanceMutation, AttendanceAction  # noqa: F401
from training_bookings.models.notification import Notification, NotificationKind  # noqa: F401
