from sqlalchemy import Column, Integer, BigInteger, Boolean, DateTime, ForeignKey, Text, Index, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from core.database import Base


class User(Base):
    """
    A monitored subject.

    The id is generated on the client at registration and never reassigned.
    Timestamps that travel over the wire (last_check_in, last_alert_sent_at)
    are epoch milliseconds.
    """
    __tablename__ = "users"

    id = Column(Text, primary_key=True)
    name = Column(Text, nullable=False)
    email = Column(Text, nullable=True)
    last_check_in = Column(BigInteger, nullable=True)  # never moves backward
    streak = Column(Integer, default=0, nullable=False)
    language = Column(Text, default="zh", nullable=False)  # 'zh' | 'en'
    is_registered = Column(Boolean, default=False, nullable=False)

    # --- ALERT WATERMARK ---
    # Time of the last successfully delivered overdue alert. A subject is
    # eligible again only once last_check_in moves past it.
    last_alert_sent_at = Column(BigInteger, nullable=True)

    updated_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    contacts = relationship(
        "Contact",
        back_populates="user",
        order_by="Contact.position",
        cascade="all, delete-orphan",
    )
    check_ins = relationship(
        "CheckIn",
        back_populates="user",
        order_by="CheckIn.timestamp",
        cascade="all, delete-orphan",
    )

    __table_args__ = (
        Index("ix_users_registered_check_in", "is_registered", "last_check_in"),
    )

    @property
    def primary_contact(self):
        """First guardian (by position) with a usable email, or None."""
        for contact in self.contacts:
            if contact.email:
                return contact
        return None


class Contact(Base):
    """Guardian notified when the subject is overdue. Fully replaced on every sync."""
    __tablename__ = "contacts"

    id = Column(Text, primary_key=True)
    user_id = Column(Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(Text, nullable=False)
    email = Column(Text, nullable=False)
    phone = Column(Text, nullable=True)  # stored, unused by the alert path
    position = Column(Integer, default=0, nullable=False)  # 0 = primary guardian

    user = relationship("User", back_populates="contacts")


class CheckIn(Base):
    """Durable check-in history. Append-only, at most one row per subject-local date."""
    __tablename__ = "check_ins"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Text, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    timestamp = Column(BigInteger, nullable=False)
    date_string = Column(Text, nullable=False)  # YYYY-MM-DD, subject-local
    time_string = Column(Text, nullable=False)  # HH:MM

    user = relationship("User", back_populates="check_ins")

    __table_args__ = (
        UniqueConstraint("user_id", "date_string", name="uq_check_ins_user_date"),
    )
