"""Shared test fixtures."""
import itertools
from datetime import datetime, timedelta, timezone

import pytest
from unittest.mock import patch
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from adloop.database import Base
from adloop.services.content_generator import ContentGenerator, PatternAnalysis, VariantDraft


@pytest.fixture
def db_engine():
    """In-memory SQLite engine with schema created, shared across connections."""
    engine = create_engine(
        'sqlite://',
        connect_args={'check_same_thread': False},
        poolclass=StaticPool,
    )
    import adloop.models.campaign
    import adloop.models.variant
    import adloop.models.import_batch
    import adloop.models.performance_row
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db_session(db_engine):
    """Session for seeding and asserting. Call expire_all() before re-reading."""
    Session = sessionmaker(bind=db_engine, expire_on_commit=False)
    session = Session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture(autouse=True)
def patch_session_factory(db_engine):
    """Route all get_session() calls to the test engine."""
    with patch('adloop.database.SessionLocal', sessionmaker(bind=db_engine, expire_on_commit=False)):
        yield


# ── Factories ────────────────────────────────────────────────────────────────

@pytest.fixture
def make_campaign(db_session):
    """Factory fixture — persists a Campaign and returns it."""
    from adloop.models.campaign import Campaign

    def _make(**overrides):
        defaults = dict(
            name='GlowSerum Launch',
            seed_data={
                'product_name': 'GlowSerum',
                'product_description': 'Vitamin C serum for dull skin',
                'target_audience': 'Women 25-40',
                'tone': 'friendly',
                'key_benefits': ['brighter skin in 7 days'],
                'pain_points': ['dull skin'],
            },
        )
        defaults.update(overrides)
        campaign = Campaign(**defaults)
        db_session.add(campaign)
        db_session.commit()
        return campaign
    return _make


@pytest.fixture
def make_variant(db_session):
    """Factory fixture — persists a ContentVariant; each one is created 1s after the last."""
    from adloop.models.variant import ContentVariant

    base = datetime(2026, 1, 15, 10, 0, tzinfo=timezone.utc)
    ticks = itertools.count()

    def _make(campaign, **overrides):
        n = next(ticks)
        defaults = dict(
            campaign_id=campaign.id,
            hook=f'Hook {n}',
            problem_agitation=f'Problem {n}',
            solution=f'Solution {n}',
            cta=f'CTA {n}',
            created_at=base + timedelta(seconds=n),
        )
        defaults.update(overrides)
        variant = ContentVariant(**defaults)
        db_session.add(variant)
        db_session.commit()
        return variant
    return _make


@pytest.fixture
def make_rows(db_session):
    """Factory fixture — persists PerformanceRows under a fresh completed batch."""
    from decimal import Decimal
    from adloop.models.import_batch import ImportBatch
    from adloop.models.performance_row import PerformanceRow

    def _make(campaign, rows):
        batch = ImportBatch(campaign_id=campaign.id, filename='seed.csv', status='completed',
                            rows_total=len(rows), rows_processed=len(rows))
        db_session.add(batch)
        db_session.flush()
        for row in rows:
            values = dict(row)
            values['spend'] = Decimal(str(values.get('spend', 0)))
            values['revenue'] = Decimal(str(values.get('revenue', 0)))
            db_session.add(PerformanceRow(import_batch_id=batch.id, **values))
        db_session.commit()
        return batch
    return _make


# ── Fakes ────────────────────────────────────────────────────────────────────

class FakeRedis:
    """Minimal in-memory Redis fake: the hash commands the circuit breaker uses."""

    def __init__(self):
        self.hash_store = {}

    def hgetall(self, key):
        return dict(self.hash_store.get(key, {}))

    def hset(self, key, field=None, value=None, mapping=None):
        h = self.hash_store.setdefault(key, {})
        if field is not None:
            h[field] = str(value)
        for k, v in (mapping or {}).items():
            h[k] = str(v)

    def hincrby(self, key, field, amount=1):
        h = self.hash_store.setdefault(key, {})
        h[field] = str(int(h.get(field, 0)) + amount)
        return int(h[field])

    def hdel(self, key, *fields):
        h = self.hash_store.get(key, {})
        for f in fields:
            h.pop(f, None)


@pytest.fixture
def fake_redis():
    return FakeRedis()


class FakeContentGenerator(ContentGenerator):
    """Records every call; returns configured patterns and drafts."""
    name = 'fake'

    def __init__(self, patterns=None, recommendations=None, drafts=None, error=None):
        self.patterns = patterns if patterns is not None else ['Questions in hooks win']
        self.recommendations = recommendations if recommendations is not None else ['Test more questions']
        self.drafts = drafts
        self.error = error
        self.analyze_calls = []
        self.generate_calls = []

    def analyze_patterns(self, winners):
        self.analyze_calls.append(winners)
        if self.error:
            raise self.error
        return PatternAnalysis(patterns=list(self.patterns), recommendations=list(self.recommendations))

    def generate_variants(self, seed_winners, patterns, product_context, count):
        self.generate_calls.append({
            'seed_winners': seed_winners,
            'patterns': patterns,
            'product_context': product_context,
            'count': count,
        })
        if self.drafts is not None:
            return list(self.drafts)
        return [
            VariantDraft(
                hook=f'New hook {i}',
                problem_agitation=f'New problem {i}',
                solution=f'New solution {i}',
                cta=f'New CTA {i}',
                generation_notes=f'draft {i}',
            )
            for i in range(count)
        ]


@pytest.fixture
def fake_generator():
    return FakeContentGenerator()


@pytest.fixture
def make_generator():
    """Factory fixture — FakeContentGenerator with custom output or error."""
    return FakeContentGenerator


# ── Flask ────────────────────────────────────────────────────────────────────

@pytest.fixture
def app(fake_redis):
    """Flask test app with circuit breakers backed by FakeRedis."""
    from adloop import create_app
    from adloop.services.circuit_breaker import init_breakers
    app = create_app()
    app.config['TESTING'] = True
    init_breakers(fake_redis)
    yield app


@pytest.fixture
def client(app):
    """Flask test client."""
    with app.test_client() as c:
        yield c
