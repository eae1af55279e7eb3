"""
Domain and SQLAlchemy models
"""
from boost_guard.core.database import Base  # noqa: F401
from boost_guard.models.boost import Boost, Strategy, Token  # noqa: F401
from boost_guard.models.claim_record import BoostTotal, ClaimRecord  # noqa: F401
from boost_guard.models.status import Reward, Status  # noqa: F401
