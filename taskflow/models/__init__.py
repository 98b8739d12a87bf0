# Models package - database models
from taskflow.models.user import User
from taskflow.models.token import AuthToken, AuthTokenKind
