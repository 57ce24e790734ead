"""Tests for adloop.models.variant and the campaign's product context."""
from adloop.models.campaign import Campaign, ProductContext
from adloop.models.variant import ContentVariant


class TestProductContext:

    def test_from_seed_data(self):
        ctx = ProductContext.from_seed_data({'product_name': 'Glow', 'key_benefits': ['a']})
        assert ctx.product_name == 'Glow'
        assert ctx.key_benefits == ['a']
        assert ctx.tone == ''

    def test_falls_back_to_campaign_name(self):
        campaign = Campaign(name='Spring Push', seed_data=None)
        assert campaign.product_context.product_name == 'Spring Push'


def test_defaults_after_insert(db_session, make_campaign):
    campaign = make_campaign()
    v = ContentVariant(campaign_id=campaign.id, hook='h', problem_agitation='p', solution='s', cta='c')
    db_session.add(v)
    db_session.commit()
    assert v.status == 'draft'
    assert v.version == 1
    assert v.is_winner is False
    assert v.parent_variant_id is None
