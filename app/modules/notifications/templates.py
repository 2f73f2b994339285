import enum
from typing import Dict, Tuple

class NotificationEvent(str, enum.Enum):
    STATUS_SCHEDULED = "STATUS_SCHEDULED"
    STATUS_RESOLVED = "STATUS_RESOLVED"
    STATUS_CLOSED = "STATUS_CLOSED"
    STATUS_REOPENED = "STATUS_REOPENED"
    SURVEY_INVITATION = "SURVEY_INVITATION" # not allow-listed, always sent on closure

# Events an admin can switch on or off in the configuration store
CONFIGURABLE_EVENTS = (
    NotificationEvent.STATUS_SCHEDULED,
    NotificationEvent.STATUS_RESOLVED,
    NotificationEvent.STATUS_CLOSED,
    NotificationEvent.STATUS_REOPENED,
)

# In-code templates: (subject, text body). Placeholders are filled by render().
TEMPLATES: Dict[NotificationEvent, Tuple[str, str]] = {
    NotificationEvent.STATUS_SCHEDULED: (
        "Your report has been scheduled",
        "Your {category} report at {address} has been scheduled for repair.\n"
        "Report id: {report_id}\n{note_line}",
    ),
    NotificationEvent.STATUS_RESOLVED: (
        "Your report has been resolved",
        "The crew marked your {category} report at {address} as resolved.\n"
        "Report id: {report_id}\n{note_line}",
    ),
    NotificationEvent.STATUS_CLOSED: (
        "Your report has been closed",
        "Your {category} report at {address} is now closed. Thank you for helping your city.\n"
        "Report id: {report_id}\n{note_line}",
    ),
    NotificationEvent.STATUS_REOPENED: (
        "Your report has been reopened",
        "Your {category} report at {address} was reopened and is being reviewed again.\n"
        "Report id: {report_id}\n{note_line}",
    ),
    NotificationEvent.SURVEY_INVITATION: (
        "How did we do?",
        "Your {category} report at {address} was closed.\n"
        "Tell us how it went, it takes less than a minute:\n{survey_url}\n\n"
        "This link can be used once.",
    ),
}

def render(event: NotificationEvent, **context) -> Tuple[str, str]:
    subject, body = TEMPLATES[event]
    note = context.pop("note", None)
    context.setdefault("address", "the reported location")
    context["note_line"] = f"Note from the team: {note}\n" if note else ""
    return subject, body.format(**context)
