def test_health_check(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_api_v1_phone_lines(client):
    """Phone line router is mounted: listing without user_id is a validation error."""
    response = client.get("/api/v1/phone-lines/")
    assert response.status_code == 422


def test_api_v1_routing_rules(client):
    """Routing rule router is mounted: unknown rule is a 404."""
    response = client.get("/api/v1/routing-rules/00000000-0000-0000-0000-000000000000")
    assert response.status_code == 404
