from mission_coach.db.base import Base
from mission_coach.db.session import engine
import mission_coach.models.conversation


def init_db(bind=None):
    # Create all tables; there is no migration step
    Base.metadata.create_all(bind=bind or engine)
