"""Google OAuth scope constants and shorthand handling."""

# Gmail
SCOPE_GMAIL_READONLY = "https://www.googleapis.com/auth/gmail.readonly"
SCOPE_GMAIL_SEND = "https://www.googleapis.com/auth/gmail.send"
SCOPE_GMAIL_MODIFY = "https://www.googleapis.com/auth/gmail.modify"
SCOPE_GMAIL_COMPOSE = "https://www.googleapis.com/auth/gmail.compose"
SCOPE_GMAIL_LABELS = "https://www.googleapis.com/auth/gmail.labels"

# Calendar
SCOPE_CALENDAR_READONLY = "https://www.googleapis.com/auth/calendar.readonly"
SCOPE_CALENDAR_EVENTS = "https://www.googleapis.com/auth/calendar.events"
SCOPE_CALENDAR = "https://www.googleapis.com/auth/calendar"

# Drive
SCOPE_DRIVE_READONLY = "https://www.googleapis.com/auth/drive.readonly"
SCOPE_DRIVE_FILE = "https://www.googleapis.com/auth/drive.file"
SCOPE_DRIVE = "https://www.googleapis.com/auth/drive"

# Identity
SCOPE_USERINFO_EMAIL = "https://www.googleapis.com/auth/userinfo.email"
SCOPE_USERINFO_PROFILE = "https://www.googleapis.com/auth/userinfo.profile"
SCOPE_OPENID = "openid"

# Required so the account email can be looked up after consent
IDENTITY_SCOPES = [SCOPE_USERINFO_EMAIL, SCOPE_OPENID]

DEFAULT_SCOPES = [
    SCOPE_GMAIL_READONLY,
    SCOPE_CALENDAR_READONLY,
    SCOPE_USERINFO_EMAIL,
    SCOPE_OPENID,
]

SCOPE_SHORTHANDS = {
    "gmail": SCOPE_GMAIL_READONLY,
    "gmail.readonly": SCOPE_GMAIL_READONLY,
    "gmail.send": SCOPE_GMAIL_SEND,
    "gmail.modify": SCOPE_GMAIL_MODIFY,
    "gmail.compose": SCOPE_GMAIL_COMPOSE,
    "gmail.labels": SCOPE_GMAIL_LABELS,
    "calendar": SCOPE_CALENDAR_READONLY,
    "calendar.readonly": SCOPE_CALENDAR_READONLY,
    "calendar.events": SCOPE_CALENDAR_EVENTS,
    "calendar.full": SCOPE_CALENDAR,
    "drive": SCOPE_DRIVE_READONLY,
    "drive.readonly": SCOPE_DRIVE_READONLY,
    "drive.file": SCOPE_DRIVE_FILE,
    "drive.full": SCOPE_DRIVE,
    "email": SCOPE_USERINFO_EMAIL,
    "profile": SCOPE_USERINFO_PROFILE,
    "openid": SCOPE_OPENID,
}


def expand_scope(scope: str) -> str:
    """Map a shorthand like ``gmail.send`` to its full scope URL.

    Full URLs and unknown names pass through unchanged so the
    authorization server can reject them.
    """
    cleaned = scope.strip()
    return SCOPE_SHORTHANDS.get(cleaned.lower(), cleaned)


def normalize_scopes(scopes: list[str] | None) -> list[str]:
    """Expand, deduplicate and complete a requested scope list.

    Args:
        scopes: Shorthands or full scope URLs. Empty or ``None`` selects
            ``DEFAULT_SCOPES``.

    Returns:
        Ordered, duplicate-free scope URLs that always include the
        identity scopes.
    """
    if not scopes:
        return list(DEFAULT_SCOPES)

    result: list[str] = []
    for scope in scopes:
        if not scope or not scope.strip():
            continue
        full = expand_scope(scope)
        if full not in result:
            result.append(full)

    for identity in IDENTITY_SCOPES:
        if identity not in result:
            result.append(identity)

    return result


def parse_scope_option(values: tuple[str, ...] | list[str] | None) -> list[str]:
    """Split repeated and comma-separated ``--scopes`` values."""
    scopes: list[str] = []
    for value in values or ():
        scopes.extend(part.strip() for part in value.split(",") if part.strip())
    return scopes
