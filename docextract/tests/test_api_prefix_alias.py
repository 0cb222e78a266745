import pytest
from fastapi.testclient import TestClient

from docextract.app import app


@pytest.mark.parametrize('path', ['/health', '/api/health'])
def test_health_route_supported_with_and_without_prefix(path):
    client = TestClient(app)

    response = client.get(path)

    assert response.status_code == 200
    assert response.json() == {'status': 'ok'}


def test_unprefixed_process_route_supported(service_settings, cleanup_manager):
    client = TestClient(app)

    response = client.post('/process', files={'other': ('a.txt', b'x', 'text/plain')})

    assert response.status_code == 400
    assert response.json()['error']['code'] == 'NO_FILE'
