# 관계 문자열("Team" 등) 해석을 위해 모든 모델을 한 번에 등록
from app.models.user import User
from app.models.ledger import LedgerEntry, LedgerEntryType
from app.models.margin import PrizeMargin
from app.models.match import Match, MatchType, MatchStatus
from app.models.team import Team, TeamMember, TeamSlot, SlotState, PaymentStatus
from app.models.evidence import Evidence, VerificationStatus
from app.models.dispute import Dispute, DisputeStatus
from app.models.match_result import MatchResult, ResolutionMethod
