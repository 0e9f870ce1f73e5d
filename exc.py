class ApplicationError(Exception):
    pass


class ProviderError(ApplicationError):
    pass


class InvalidAdmissionReview(ApplicationError):
    pass


class InvalidAdmissionReviewObject(ApplicationError):
    pass


class MissingConfiguration(ApplicationError):
    pass


class InvalidConfiguration(ApplicationError):
    pass


class FailedToCreatePatch(ApplicationError):
    pass
