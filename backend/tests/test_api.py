"""
HTTP API tests: the custody scenario end to end, error mapping and the
notification stream.
"""

import json

from zimmet.services.notification_service import hub


class TestCustodyScenario:
    """A hands document 500 to B, B returns it, A accepts and archives it."""

    def test_scenario(self, client, alice, bob, headers_for):
        a = headers_for(alice)
        b = headers_for(bob)

        created = client.post("/api/transactions", json={
            "document_number": "500", "to_user_id": bob.id, "note": "please sign",
        }, headers=a)
        assert created.status_code == 201
        row1 = created.json
        assert row1["status"] == "PENDING"
        assert row1["to_user"]["id"] == bob.id

        unread = client.get("/api/transactions/unread", headers=b)
        assert unread.json == {"incoming": 1, "iade": 0, "red": 0}

        accepted = client.patch(f"/api/transactions/{row1['id']}/accept", headers=b)
        assert accepted.status_code == 200
        assert accepted.json["status"] == "ACCEPTED"

        document = client.get("/api/documents/500", headers=a)
        assert document.json["current_holder"]["id"] == bob.id

        mine = client.get("/api/transactions/me", headers=b)
        assert mine.json["transactions"][0]["is_active_for_me"] is True

        no_note = client.patch(f"/api/transactions/{row1['id']}/return", json={}, headers=b)
        assert no_note.status_code == 400

        returned = client.patch(f"/api/transactions/{row1['id']}/return", json={"note": "done"}, headers=b)
        assert returned.status_code == 200
        row2 = returned.json
        assert row2["kind"] == "RETURN_REQUEST"
        assert row2["from_user_id"] == bob.id
        assert row2["to_user_id"] == alice.id

        assert client.get("/api/transactions/unread", headers=a).json["iade"] == 1
        seen = client.patch("/api/transactions/mark-seen?tab=IADE", headers=a)
        assert seen.status_code == 200
        assert client.get("/api/transactions/unread", headers=a).json["iade"] == 0

        assert client.patch(f"/api/transactions/{row2['id']}/accept", headers=a).status_code == 200
        assert client.get("/api/documents/500", headers=a).json["current_holder"]["id"] == alice.id

        archived = client.patch("/api/documents/500/archive", json={"note": "filed"}, headers=a)
        assert archived.status_code == 200
        assert archived.json["status"] == "ARCHIVED"
        assert archived.json["archived_by"]["id"] == alice.id
        assert archived.json["current_holder"] is None
        assert archived.json["last_holder"]["id"] == alice.id

        again = client.patch("/api/documents/500/archive", json={"note": "filed"}, headers=a)
        assert again.status_code == 400

        timeline = client.get("/api/transactions/document/500", headers=b)
        assert timeline.status_code == 200
        assert [e["type"] for e in timeline.json["timeline"]] == [
            "TRANSACTION", "TRANSACTION", "RETURN", "ARCHIVED",
        ]

        assert client.get("/api/documents", headers=a).json["count"] == 0


class TestErrorMapping:
    def test_validation_is_400(self, client, alice, bob, headers_for):
        resp = client.post("/api/transactions", json={
            "document_number": "12ab", "to_user_id": bob.id,
        }, headers=headers_for(alice))
        assert resp.status_code == 400
        assert resp.json == {"error": "Document number must contain digits only"}

    def test_self_assignment_is_400(self, client, alice, headers_for):
        resp = client.post("/api/transactions", json={
            "document_number": "1", "to_user_id": alice.id,
        }, headers=headers_for(alice))
        assert resp.status_code == 400

    def test_forbidden_is_403(self, client, alice, bob, carol, headers_for):
        created = client.post("/api/transactions", json={
            "document_number": "500", "to_user_id": bob.id,
        }, headers=headers_for(alice))

        resp = client.patch(f"/api/transactions/{created.json['id']}/accept", headers=headers_for(carol))
        assert resp.status_code == 403

    def test_not_found_is_404(self, client, alice, headers_for):
        headers = headers_for(alice)
        assert client.patch("/api/transactions/nope/accept", headers=headers).status_code == 404
        assert client.get("/api/transactions/document/999", headers=headers).status_code == 404
        assert client.get("/api/documents/999", headers=headers).status_code == 404

    def test_conflict_is_409(self, client, alice, bob, carol, headers_for):
        headers = headers_for(alice)
        client.post("/api/transactions", json={"document_number": "500", "to_user_id": bob.id}, headers=headers)

        resp = client.post("/api/transactions", json={"document_number": "500", "to_user_id": carol.id}, headers=headers)
        assert resp.status_code == 409

    def test_non_string_note_is_400(self, client, alice, bob, headers_for):
        resp = client.post("/api/transactions", json={
            "document_number": "42", "to_user_id": bob.id, "note": 5,
        }, headers=headers_for(alice))
        assert resp.status_code == 400
        assert resp.json == {"error": "note must be a string"}

    def test_list_target_is_400(self, client, alice, headers_for):
        resp = client.post("/api/transactions", json={
            "document_number": "42", "to_user_id": [1, 2],
        }, headers=headers_for(alice))
        assert resp.status_code == 400
        assert resp.json == {"error": "to_user_id must be a string"}

    def test_non_string_return_note_is_400(self, client, alice, bob, headers_for):
        created = client.post("/api/transactions", json={
            "document_number": "42", "to_user_id": bob.id,
        }, headers=headers_for(alice))
        b = headers_for(bob)
        client.patch(f"/api/transactions/{created.json['id']}/accept", headers=b)

        resp = client.patch(f"/api/transactions/{created.json['id']}/return", json={"note": 7}, headers=b)
        assert resp.status_code == 400
        assert resp.json == {"error": "note must be a string"}

    def test_non_string_archive_fields_are_400(self, client, alice, bob, headers_for):
        created = client.post("/api/transactions", json={
            "document_number": "44", "to_user_id": bob.id,
        }, headers=headers_for(alice))
        b = headers_for(bob)
        client.patch(f"/api/transactions/{created.json['id']}/accept", headers=b)

        resp = client.patch("/api/documents/44/archive", json={"note": 123}, headers=b)
        assert resp.status_code == 400
        assert resp.json == {"error": "note must be a string"}

        resp = client.patch("/api/documents/44/archive", json={
            "note": "filed", "archive_department": ["legal"],
        }, headers=b)
        assert resp.status_code == 400
        assert client.get("/api/documents/44", headers=b).json["status"] == "ACTIVE"

    def test_non_string_login_fields_are_401(self, client, alice):
        resp = client.post("/api/auth/login", json={"email": 5, "password": ["x"]})
        assert resp.status_code == 401

    def test_mark_seen_requires_known_tab(self, client, alice, headers_for):
        headers = headers_for(alice)
        assert client.patch("/api/transactions/mark-seen", headers=headers).status_code == 400
        assert client.patch("/api/transactions/mark-seen?tab=SPAM", headers=headers).status_code == 400

    def test_unknown_route_is_json_404(self, client, db_session):
        resp = client.get("/api/nothing-here")
        assert resp.status_code == 404
        assert resp.json["error"] == "Not found"


class TestNotificationStream:
    def test_stream_accepts_query_token_and_relays_events(self, client, alice, headers_for):
        token = headers_for(alice)["Authorization"].split(" ", 1)[1]

        resp = client.get(f"/api/notifications/stream?access_token={token}")
        assert resp.status_code == 200
        assert resp.mimetype == "text/event-stream"

        chunks = iter(resp.response)
        assert b": connected" in next(chunks)

        hub.publish(alice.id, {"type": "TRANSACTION_UPDATE"})
        line = next(chunks).decode()
        assert line.startswith("data: ")
        assert json.loads(line[len("data: "):]) == {"type": "TRANSACTION_UPDATE"}

        resp.close()
        assert hub.subscriber_count(alice.id) == 0
