# app/core/exceptions.py
"""
매치 엔진 에러 분류

서비스 계층은 HTTPException 대신 아래 예외를 던지고,
main.py의 핸들러가 status_code / code 로 변환한다.
거부된 요청은 항상 구체적인 code 를 돌려준다.
"""


class MatchError(Exception):
    """Base exception for match engine errors"""
    status_code = 400
    code = "match_error"

    def __init__(self, message: str = None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


class ValidationError(MatchError):
    """Request payload is invalid"""
    status_code = 400
    code = "validation_error"


class NotFound(MatchError):
    """Requested resource does not exist"""
    status_code = 404
    code = "not_found"


class PreconditionFailed(MatchError):
    """Match or team is in the wrong status for this operation"""
    status_code = 409
    code = "precondition_failed"


class InsufficientFunds(MatchError):
    """Wallet balance is lower than the entry fee"""
    status_code = 402
    code = "insufficient_funds"


class AlreadyPaid(MatchError):
    """Entry fee has already been paid"""
    status_code = 409
    code = "already_paid"


class NotAuthorized(MatchError):
    """Caller is not allowed to perform this operation"""
    status_code = 403
    code = "not_authorized"


class NotATeamMember(NotAuthorized):
    """Caller is not a member of this team"""
    code = "not_a_team_member"


class Conflict(MatchError):
    """Concurrent mutation conflict"""
    status_code = 409
    code = "conflict"


class NoSlotAvailable(Conflict):
    """No open team slot left in this match"""
    code = "no_slot_available"


class ExternalServiceError(MatchError):
    """External collaborator failed"""
    status_code = 502
    code = "external_service_error"
