"""WebSocket hub tests."""


def test_members_of_a_project_see_each_other(client):
    with client.websocket_connect("/ws") as first, client.websocket_connect("/ws") as second:
        first.send_json({"type": "join_project", "userId": "u1", "projectId": "p1"})
        # Round trip so the join is processed before anyone else arrives
        first.send_text("sync")
        assert first.receive_json()["type"] == "error"
        second.send_json({"type": "join_project", "userId": "u2", "projectId": "p1"})

        joined = first.receive_json()
        assert joined["type"] == "user_joined"
        assert joined["userId"] == "u2"

        second.send_json({"type": "activity_update", "details": "added cake"})
        relayed = first.receive_json()
        assert relayed == {"type": "activity_update", "details": "added cake"}

        second.send_json({"type": "leave_project"})
        left = first.receive_json()
        assert left["type"] == "user_left"
        assert left["userId"] == "u2"


def test_invalid_messages_get_an_error_reply(client):
    with client.websocket_connect("/ws") as ws:
        ws.send_text("not json")
        assert ws.receive_json() == {"type": "error", "error": "Invalid JSON"}

        ws.send_json({"type": "join_project"})
        assert ws.receive_json()["type"] == "error"


def test_rest_changes_are_pushed_to_the_project_room(client, auth_headers, project):
    with client.websocket_connect("/ws") as ws:
        ws.send_json({"type": "join_project", "userId": "u1", "projectId": project["id"]})
        ws.send_text("sync")
        assert ws.receive_json()["type"] == "error"

        response = client.post(f"/api/projects/{project['id']}/tasks", headers=auth_headers,
                               json={"title": "Taste wine"})
        assert response.status_code == 201

        event = ws.receive_json()
        assert event["type"] == "task_updated"
        assert event["action"] == "created"
        assert event["task"]["title"] == "Taste wine"


def test_hub_rooms(app):
    hub = app.state.hub
    socket = object()
    hub.join(socket, "p1", "u1")
    assert hub.connection_count("p1") == 1
    assert hub.room_of(socket) == "p1"

    hub.join(socket, "p2", "u1")
    assert hub.connection_count("p1") == 0
    assert hub.leave(socket) == "p2"
    assert hub.rooms == {}
