class SigningError(Exception):
    """Base class for every failure raised while signing a request.

    ``stage`` names the step of the signing call that failed.
    """

    stage = 'signing'


class InvalidKeyMaterialError(SigningError):
    stage = 'key-derivation'


class MalformedURLError(SigningError):
    stage = 'url-parsing'


class SerializationError(SigningError):
    stage = 'body-serialization'


class BackendUnavailableError(SigningError):
    stage = 'hashing'
