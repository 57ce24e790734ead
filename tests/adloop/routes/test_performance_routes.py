"""Tests for the performance blueprint — import, history, metrics, winners, iterate."""
import io
import uuid
from unittest.mock import patch

import pytest

from adloop.errors import GeneratorError
from adloop.services.content_generator import get_content_generator

HEADER = 'angle_id,impressions,clicks,conversions,spend,revenue,platform,locale\n'


@pytest.fixture
def campaign(make_campaign):
    return make_campaign()


@pytest.fixture
def variant(campaign, make_variant):
    return make_variant(campaign)


@pytest.fixture(autouse=True)
def generator(fake_generator):
    with patch('adloop.services.winners.get_content_generator', return_value=fake_generator), \
            patch('adloop.services.iterations.get_content_generator', return_value=fake_generator):
        yield fake_generator


@pytest.fixture
def production_without_key(generator):
    """Real generator factory, production mode, no OpenAI key configured."""
    with patch('adloop.services.winners.get_content_generator', get_content_generator), \
            patch('adloop.services.iterations.get_content_generator', get_content_generator), \
            patch('adloop.config.IS_PRODUCTION', True), \
            patch('adloop.extensions.openai_client', None):
        yield


def _upload(client, campaign_id, body, filename='perf.csv', content_type=None):
    file = (io.BytesIO(body), filename, content_type) if content_type else (io.BytesIO(body), filename)
    return client.post(
        f'/api/campaigns/{campaign_id}/performance/import',
        data={'file': file},
        content_type='multipart/form-data',
    )


class TestImport:

    def test_import_returns_201_summary(self, client, campaign, variant):
        body = (HEADER + f'{variant.id},10000,500,50,100.00,250.00,tiktok,en-US\n'
                + f'{variant.id},100,-1,0,0,0,,\n').encode()
        resp = _upload(client, campaign.id, body)

        assert resp.status_code == 201
        data = resp.get_json()
        assert data['success'] is True
        summary = data['data']
        assert summary['status'] == 'partial'
        assert summary['filename'] == 'perf.csv'
        assert (summary['rows_total'], summary['rows_processed'], summary['rows_failed']) == (2, 1, 1)
        assert summary['errors'] == [{'row': 3, 'code': 'negative_value', 'message': 'clicks must be >= 0, got -1'}]

    def test_missing_file(self, client, campaign):
        resp = client.post(f'/api/campaigns/{campaign.id}/performance/import',
                           data={}, content_type='multipart/form-data')
        assert resp.status_code == 400
        assert resp.get_json()['error']['code'] == 'VALIDATION_ERROR'

    def test_non_csv_rejected(self, client, campaign):
        resp = _upload(client, campaign.id, b'hello', filename='notes.txt', content_type='text/plain')
        assert resp.status_code == 400

    def test_text_csv_mimetype_accepted(self, client, campaign):
        resp = _upload(client, campaign.id, HEADER.encode(), filename='export', content_type='text/csv')
        assert resp.status_code == 201
        assert resp.get_json()['data']['status'] == 'completed'

    def test_malformed_file_still_201_with_failed_batch(self, client, campaign):
        resp = _upload(client, campaign.id, b'angle_id,clicks\nx,1\n')
        assert resp.status_code == 201
        summary = resp.get_json()['data']
        assert summary['status'] == 'failed'
        assert summary['errors'][0]['code'] == 'missing_columns'

    def test_unknown_campaign(self, client):
        resp = _upload(client, uuid.uuid4(), HEADER.encode())
        assert resp.status_code == 404
        assert resp.get_json()['error']['code'] == 'NOT_FOUND'

    def test_non_uuid_campaign_id(self, client):
        resp = _upload(client, 'abc', HEADER.encode())
        assert resp.status_code == 400

    def test_oversized_upload(self, app, client, campaign):
        app.config['MAX_CONTENT_LENGTH'] = 64
        resp = _upload(client, campaign.id, HEADER.encode() * 10)
        assert resp.status_code == 413
        assert resp.get_json()['success'] is False


class TestImportHistory:

    def test_list_and_get(self, client, campaign, variant):
        body = (HEADER + f'{variant.id},1,1,1,1,1,,\n').encode()
        batch_id = _upload(client, campaign.id, body).get_json()['data']['batch_id']

        listing = client.get(f'/api/campaigns/{campaign.id}/performance/imports').get_json()['data']
        assert [b['id'] for b in listing] == [batch_id]

        resp = client.get(f'/api/performance/imports/{batch_id}')
        assert resp.status_code == 200
        assert resp.get_json()['data']['status'] == 'completed'

    def test_unknown_batch(self, client):
        resp = client.get(f'/api/performance/imports/{uuid.uuid4()}')
        assert resp.status_code == 404

    def test_bad_batch_id(self, client):
        assert client.get('/api/performance/imports/not-an-id').status_code == 400


class TestMetrics:

    def test_metrics(self, client, campaign, variant):
        body = (HEADER + f'{variant.id},10000,500,50,100.00,250.00,tiktok,en-US\n').encode()
        _upload(client, campaign.id, body)

        resp = client.get(f'/api/campaigns/{campaign.id}/performance/metrics')
        assert resp.status_code == 200
        (m,) = resp.get_json()['data']
        assert m['variant_id'] == variant.id
        assert (m['ctr'], m['cpa'], m['roas']) == (5.0, 2.0, 2.5)

    def test_filter_excludes_rows(self, client, campaign, variant):
        _upload(client, campaign.id, (HEADER + f'{variant.id},100,1,0,0,0,tiktok,en-US\n').encode())
        resp = client.get(f'/api/campaigns/{campaign.id}/performance/metrics?platform=youtube')
        (m,) = resp.get_json()['data']
        assert m['impressions'] == 0

    def test_bad_filter(self, client, campaign):
        resp = client.get(f'/api/campaigns/{campaign.id}/performance/metrics?locale=en-GB')
        assert resp.status_code == 400


class TestWinners:

    def test_identify_winners(self, client, campaign, variant, generator):
        _upload(client, campaign.id, (HEADER + f'{variant.id},100,10,1,1,1,,\n').encode())

        resp = client.post(f'/api/campaigns/{campaign.id}/performance/winners?topN=1&metric=ctr')
        assert resp.status_code == 200
        data = resp.get_json()['data']
        assert data['top_performers'][0]['variant_id'] == variant.id
        assert data['patterns'] == generator.patterns

    def test_no_data(self, client, campaign, variant):
        data = client.post(f'/api/campaigns/{campaign.id}/performance/winners').get_json()['data']
        assert data['top_performers'] == []
        assert data['recommendations'] == ['No performance data available. Import CSV data first.']

    @pytest.mark.parametrize('query', ['topN=0', 'topN=11', 'topN=abc', 'metric=cpm'])
    def test_bad_query(self, client, campaign, query):
        resp = client.post(f'/api/campaigns/{campaign.id}/performance/winners?{query}')
        assert resp.status_code == 400

    def test_generator_unavailable(self, client, campaign, variant, generator):
        _upload(client, campaign.id, (HEADER + f'{variant.id},100,10,1,1,1,,\n').encode())
        generator.error = GeneratorError('Circuit breaker is open')

        resp = client.post(f'/api/campaigns/{campaign.id}/performance/winners')
        assert resp.status_code == 503
        assert resp.get_json()['error']['code'] == 'AI_SERVICE_ERROR'

    def test_no_data_needs_no_generator_in_production(self, client, campaign, variant, production_without_key):
        resp = client.post(f'/api/campaigns/{campaign.id}/performance/winners')
        assert resp.status_code == 200
        assert resp.get_json()['data']['recommendations'] == [
            'No performance data available. Import CSV data first.']

    def test_missing_key_in_production_is_503(self, client, campaign, variant, production_without_key):
        _upload(client, campaign.id, (HEADER + f'{variant.id},100,10,1,1,1,,\n').encode())
        resp = client.post(f'/api/campaigns/{campaign.id}/performance/winners')
        assert resp.status_code == 503
        assert resp.get_json()['error']['code'] == 'AI_SERVICE_ERROR'


class TestIterate:

    def test_iterate_returns_201_variants(self, client, campaign, make_variant):
        winner = make_variant(campaign, is_winner=True)
        resp = client.post(f'/api/campaigns/{campaign.id}/performance/iterate?count=2')

        assert resp.status_code == 201
        created = resp.get_json()['data']
        assert len(created) == 2
        assert all(v['parent_variant_id'] == winner.id for v in created)
        assert all(v['status'] == 'draft' and v['version'] == 1 for v in created)

    def test_iterate_without_winners(self, client, campaign, variant):
        resp = client.post(f'/api/campaigns/{campaign.id}/performance/iterate')
        assert resp.status_code == 400
        assert 'No winners' in resp.get_json()['error']['message']

    def test_without_winners_in_production_is_400(self, client, campaign, variant, production_without_key):
        resp = client.post(f'/api/campaigns/{campaign.id}/performance/iterate')
        assert resp.status_code == 400
        assert 'No winners' in resp.get_json()['error']['message']

    def test_count_bounds(self, client, campaign):
        resp = client.post(f'/api/campaigns/{campaign.id}/performance/iterate?count=11')
        assert resp.status_code == 400
