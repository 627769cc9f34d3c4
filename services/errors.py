class JuryError(Exception):
    """Base for every error the jury pipeline reports to its callers."""


class ScoringConfigError(JuryError):
    pass


class UpstreamError(JuryError):
    def __init__(self, backend: str, status: int | None, body: str):
        self.backend = backend
        self.status = status
        self.body = body
        super().__init__(f"{backend} API error ({status}): {body}")


class ScoreParseError(JuryError):
    def __init__(self, message: str, raw_text: str = ""):
        self.raw_text = raw_text
        super().__init__(message)


class SubmissionValidationError(JuryError):
    pass


class SubmissionNotFound(JuryError):
    pass


class SheetsError(JuryError):
    pass


class MailerError(JuryError):
    pass
