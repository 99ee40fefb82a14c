import uuid

PREFIX = "/api/v1/routing-rules"


def _create(client, phone_line_id, **kwargs):
    body = {
        "phone_line_id": str(phone_line_id),
        "name": "Voicemail",
        "condition": "always",
        "action": {"type": "voicemail"},
    }
    body.update(kwargs)
    return client.post(f"{PREFIX}/", json=body)


class TestRoutingRuleAPI:
    def test_create_rule(self, client, phone_line):
        response = _create(
            client,
            phone_line.id,
            name="Busy to mobile",
            priority=10,
            condition="busy",
            action={"type": "forward_number", "target_number": "+79169998877"},
        )
        assert response.status_code == 201
        data = response.json()
        assert data["name"] == "Busy to mobile"
        assert data["priority"] == 10
        assert data["condition"] == "busy"
        assert data["action"]["type"] == "forward_number"
        assert data["action"]["target_number"] == "+79169998877"
        assert data["is_active"] is True
        assert data["triggered_count"] == 0

    def test_create_for_unknown_line(self, client):
        response = _create(client, uuid.uuid4())
        assert response.status_code == 404

    def test_create_invalid_action(self, client, phone_line):
        response = _create(client, phone_line.id, action={"type": "forward_number"})
        assert response.status_code == 422

    def test_create_unknown_action_type(self, client, phone_line):
        response = _create(client, phone_line.id, action={"type": "fax"})
        assert response.status_code == 422

    def test_create_unknown_condition(self, client, phone_line):
        response = _create(client, phone_line.id, condition="vip_caller")
        assert response.status_code == 422

    def test_create_priority_out_of_range(self, client, phone_line):
        response = _create(client, phone_line.id, priority=101)
        assert response.status_code == 422

    def test_create_bad_schedule_time(self, client, phone_line):
        response = _create(
            client,
            phone_line.id,
            condition="working_hours",
            schedule={"timezone": "Europe/Moscow", "start_time": "9:00am"},
        )
        assert response.status_code == 422

    def test_create_working_hours_without_schedule(self, client, phone_line):
        response = _create(client, phone_line.id, condition="working_hours")
        assert response.status_code == 422

    def test_list_rules_sorted(self, client, phone_line):
        for priority in (1, 30, 10):
            _create(client, phone_line.id, name=f"p{priority}", priority=priority)

        response = client.get(f"{PREFIX}/?phone_line_id={phone_line.id}")
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 3
        assert [r["priority"] for r in data["rules"]] == [30, 10, 1]

    def test_list_requires_phone_line(self, client):
        response = client.get(f"{PREFIX}/")
        assert response.status_code == 422

    def test_list_include_inactive(self, client, phone_line):
        _create(client, phone_line.id, name="on")
        _create(client, phone_line.id, name="off", is_active=False)

        active = client.get(f"{PREFIX}/?phone_line_id={phone_line.id}").json()
        everything = client.get(f"{PREFIX}/?phone_line_id={phone_line.id}&include_inactive=true").json()
        assert active["total"] == 1
        assert everything["total"] == 2

    def test_search_by_action_type(self, client, phone_line):
        _create(client, phone_line.id, name="vm")
        _create(client, phone_line.id, name="rej", action={"type": "reject"})

        response = client.post(
            f"{PREFIX}/search",
            json={"phone_line_id": str(phone_line.id), "action_type": "reject"},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["total"] == 1
        assert data["rules"][0]["name"] == "rej"

    def test_get_rule(self, client, phone_line):
        rule_id = _create(client, phone_line.id).json()["id"]

        response = client.get(f"{PREFIX}/{rule_id}")
        assert response.status_code == 200
        assert response.json()["id"] == rule_id

    def test_get_nonexistent_rule(self, client):
        response = client.get(f"{PREFIX}/{uuid.uuid4()}")
        assert response.status_code == 404

    def test_update_rule(self, client, phone_line):
        rule_id = _create(client, phone_line.id, action={"type": "voicemail", "voicemail_greeting": "Hi"}).json()["id"]

        response = client.patch(
            f"{PREFIX}/{rule_id}",
            json={"name": "Renamed", "is_active": False, "action": {"transcribe_voicemail": False}},
        )
        assert response.status_code == 200
        data = response.json()
        assert data["name"] == "Renamed"
        assert data["is_active"] is False
        assert data["action"]["voicemail_greeting"] == "Hi"
        assert data["action"]["transcribe_voicemail"] is False

    def test_update_invalid_action(self, client, phone_line):
        rule_id = _create(client, phone_line.id).json()["id"]

        response = client.patch(f"{PREFIX}/{rule_id}", json={"action": {"type": "queue"}})
        assert response.status_code == 422

    def test_update_to_schedule_condition_without_schedule(self, client, phone_line):
        rule_id = _create(client, phone_line.id).json()["id"]

        response = client.patch(f"{PREFIX}/{rule_id}", json={"condition": "after_hours"})
        assert response.status_code == 422

    def test_update_nonexistent_rule(self, client):
        response = client.patch(f"{PREFIX}/{uuid.uuid4()}", json={"name": "x"})
        assert response.status_code == 404

    def test_delete_rule(self, client, phone_line):
        rule_id = _create(client, phone_line.id).json()["id"]

        response = client.delete(f"{PREFIX}/{rule_id}")
        assert response.status_code == 204
        assert client.get(f"{PREFIX}/{rule_id}").status_code == 404

    def test_delete_nonexistent_rule(self, client):
        response = client.delete(f"{PREFIX}/{uuid.uuid4()}")
        assert response.status_code == 404


class TestReorderAPI:
    def test_reorder(self, client, phone_line):
        ids = [_create(client, phone_line.id, name=f"r{i}").json()["id"] for i in range(3)]
        new_order = [ids[2], ids[0], ids[1]]

        response = client.post(
            f"{PREFIX}/reorder",
            json={"phone_line_id": str(phone_line.id), "rule_ids": new_order},
        )
        assert response.status_code == 200
        assert response.json() == {"success": True}

        listed = client.get(f"{PREFIX}/?phone_line_id={phone_line.id}").json()
        assert [r["id"] for r in listed["rules"]] == new_order

    def test_reorder_missing_rule(self, client, phone_line):
        ids = [_create(client, phone_line.id, name=f"r{i}", priority=i).json()["id"] for i in range(2)]

        response = client.post(
            f"{PREFIX}/reorder",
            json={"phone_line_id": str(phone_line.id), "rule_ids": [ids[0]]},
        )
        assert response.status_code == 400

        listed = client.get(f"{PREFIX}/?phone_line_id={phone_line.id}").json()
        assert [r["id"] for r in listed["rules"]] == [ids[1], ids[0]]

    def test_reorder_empty_list(self, client, phone_line):
        response = client.post(
            f"{PREFIX}/reorder",
            json={"phone_line_id": str(phone_line.id), "rule_ids": []},
        )
        assert response.status_code == 422
