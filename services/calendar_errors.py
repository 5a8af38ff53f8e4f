from typing import List, Optional


class CalendarError(Exception):
    """Base class for calendar failures that the views know how to present."""
    user_message = "Noe gikk galt med kalenderen"


class SourceReadFailure(CalendarError):
    """One source's query failed or timed out. The other sources are unaffected."""
    user_message = "Kunne ikke laste alle kalenderoppføringer"

    def __init__(self, source_type, cause: Optional[str] = None, timed_out: bool = False):
        self.source_type = source_type
        self.cause = cause
        self.timed_out = timed_out
        label = getattr(source_type, "value", source_type)
        detail = "timed out" if timed_out else (cause or "query failed")
        super().__init__(f"{label}: {detail}")


class StaleReferenceFailure(CalendarError):
    """The referenced row no longer exists (deleted since the calendar was loaded)."""
    user_message = "Oppføringen finnes ikke lenger"

    def __init__(self, source_type, source_id):
        self.source_type = source_type
        self.source_id = source_id
        label = getattr(source_type, "value", source_type)
        super().__init__(f"{label} {source_id} not found")


class ValidationFailure(CalendarError):
    user_message = "Ugyldig kalenderoppføring"

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors))


class Unauthenticated(CalendarError):
    user_message = "Du må være logget inn i et selskap"

    def __init__(self, message: str = "no active user/company context"):
        super().__init__(message)
