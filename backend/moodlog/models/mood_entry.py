from sqlalchemy import CheckConstraint, Column, Integer, String, Text, text

from ..database import Base
from ..rules import MOOD_RULES


class MoodEntry(Base):
    """心情记录表 - 每个日期最多一条"""
    __tablename__ = "mood_entries"
    __table_args__ = (
        # 与应用层校验同源（MOOD_RULES），作为第二道防线
        CheckConstraint(MOOD_RULES.emoji_check_sql(), name="ck_mood_entries_emoji"),
        CheckConstraint(MOOD_RULES.note_check_sql(), name="ck_mood_entries_note_length"),
        {"sqlite_autoincrement": True},
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(String(10), unique=True, nullable=False)  # YYYY-MM-DD
    emoji = Column(String(8), nullable=False)
    note = Column(Text, nullable=True)
    created_at = Column(String(32), nullable=False, server_default=text("CURRENT_TIMESTAMP"))
    updated_at = Column(String(32), nullable=False, server_default=text("CURRENT_TIMESTAMP"))


mood_entries = MoodEntry.__table__
