"""Error types shared by the remote adapters and the controllers."""


class TutorFlowError(Exception):
    """Base class for application errors."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class BackendError(TutorFlowError):
    """The remote backend failed (network, database, policy violation)."""


class AuthError(TutorFlowError):
    """Credential or signup failure reported by the auth subsystem."""


class InvalidCredentials(AuthError):
    pass


class EmailAlreadyRegistered(AuthError):
    pass


class NotAuthenticated(AuthError):
    pass


class ProfileFetchError(TutorFlowError):
    """The profile (and therefore the role) of a user could not be loaded."""


class CourseFetchError(TutorFlowError):
    pass


class CourseWriteError(TutorFlowError):
    pass
