"""
ContentVariant model — one piece of ad copy ("angle") being measured.

Lineage: iterations point at the winner they were spawned from through
parent_variant_id. version is owned by the editing side and starts at 1.
"""
import uuid
from datetime import datetime, timezone
from typing import Dict, Any

from sqlalchemy import Column, Text, Integer, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.sql import func

from adloop.database import Base


# The copy fields every variant must carry
CONTENT_FIELDS = ('hook', 'problem_agitation', 'solution', 'cta')


class ContentVariant(Base):
    __tablename__ = 'content_variants'
    __table_args__ = (
        Index('ix_content_variants_campaign_winner', 'campaign_id', 'is_winner'),
    )

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    campaign_id = Column(Text, ForeignKey('campaigns.id'), nullable=False, index=True)
    hook = Column(Text, nullable=False)
    problem_agitation = Column(Text, nullable=False)
    solution = Column(Text, nullable=False)
    cta = Column(Text, nullable=False)
    visual_direction = Column(Text, nullable=True)
    audio_notes = Column(Text, nullable=True)
    estimated_duration = Column(Integer, nullable=True)   # seconds
    generation_notes = Column(Text, nullable=True)
    status = Column(Text, nullable=False, default='draft')
    version = Column(Integer, nullable=False, default=1)
    is_winner = Column(Boolean, nullable=False, default=False)
    parent_variant_id = Column(Text, ForeignKey('content_variants.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def content(self) -> Dict[str, Any]:
        """The creative copy only — what the content generator sees."""
        return {
            'hook': self.hook,
            'problem_agitation': self.problem_agitation,
            'solution': self.solution,
            'cta': self.cta,
            'visual_direction': self.visual_direction,
            'audio_notes': self.audio_notes,
            'estimated_duration': self.estimated_duration,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'campaign_id': self.campaign_id,
            **self.content(),
            'generation_notes': self.generation_notes,
            'status': self.status,
            'version': self.version,
            'is_winner': bool(self.is_winner),
            'parent_variant_id': self.parent_variant_id,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }
