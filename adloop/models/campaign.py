"""
Campaign model — the product a set of variants is written for.

Created by the project CRUD layer; the optimization loop only reads it.
"""
import uuid
from dataclasses import dataclass, field
from typing import Any, Dict, List

from sqlalchemy import Column, Text, DateTime, JSON
from sqlalchemy.sql import func

from adloop.database import Base


class Campaign(Base):
    __tablename__ = 'campaigns'

    id = Column(Text, primary_key=True, default=lambda: str(uuid.uuid4()))
    name = Column(Text, nullable=False)
    seed_data = Column(JSON, default=dict)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    @property
    def product_context(self) -> 'ProductContext':
        return ProductContext.from_seed_data(self.seed_data, fallback_name=self.name)


@dataclass
class ProductContext:
    """Typed view of Campaign.seed_data handed to the content generator."""
    product_name: str
    product_description: str = ''
    target_audience: str = ''
    tone: str = ''
    key_benefits: List[str] = field(default_factory=list)
    pain_points: List[str] = field(default_factory=list)

    @classmethod
    def from_seed_data(cls, seed_data: Dict[str, Any], fallback_name: str = '') -> 'ProductContext':
        seed_data = seed_data or {}
        return cls(
            product_name=seed_data.get('product_name') or fallback_name,
            product_description=seed_data.get('product_description', ''),
            target_audience=seed_data.get('target_audience', ''),
            tone=seed_data.get('tone', ''),
            key_benefits=list(seed_data.get('key_benefits') or []),
            pain_points=list(seed_data.get('pain_points') or []),
        )
