import uuid

from models import LanpaMember, LanpaStatus, Notification, UserPunishment
from tests.utils import auth, set_status


def patch_status(client, party, status, user=None):
    return client.patch(
        f"/api/lanpas/{party.lanpa.id}/status",
        json={"status": status},
        headers=auth(user or party.admin)
    )


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_register_user_and_create_lanpa(client):
    response = client.post("/api/users", json={"username": "hostess", "display_name": "Hostess"})
    assert response.status_code == 201
    user_id = response.json()["id"]

    response = client.post(
        "/api/lanpas",
        json={"name": "Saturday LAN"},
        headers={"X-User-Id": user_id}
    )

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "draft"
    assert body["admin_id"] == user_id
    assert body["selected_game_id"] is None


def test_duplicate_username(client):
    client.post("/api/users", json={"username": "dup", "display_name": "One"})
    response = client.post("/api/users", json={"username": "dup", "display_name": "Two"})

    assert response.status_code == 409
    assert response.json()["error"] == "Conflict"


def test_missing_identity_is_401(client, party):
    response = client.get(f"/api/lanpas/{party.lanpa.id}")

    assert response.status_code == 401
    assert response.json() == {
        "error": "Unauthorized",
        "message": "No user id provided",
        "statusCode": 401,
    }


def test_unknown_identity_is_401(client, party):
    response = client.get(f"/api/lanpas/{party.lanpa.id}", headers={"X-User-Id": str(uuid.uuid4())})
    assert response.status_code == 401


def test_unknown_lanpa_is_404(client, party):
    response = client.get(f"/api/lanpas/{uuid.uuid4()}", headers=auth(party.admin))

    assert response.status_code == 404
    assert response.json()["error"] == "Not Found"


def test_non_admin_cannot_change_status(client, party):
    response = patch_status(client, party, "voting_games", user=party.alice)

    assert response.status_code == 403
    body = response.json()
    assert body["statusCode"] == 403
    assert body["error"] == "Forbidden"


def test_invalid_transition_is_400(client, party):
    set_status(party.db, party.lanpa, LanpaStatus.COMPLETED)

    response = patch_status(client, party, "draft")

    assert response.status_code == 400
    assert response.json()["message"] == "Cannot transition from completed to draft"


def test_unknown_status_value_is_validation_error(client, party):
    response = patch_status(client, party, "party_time")

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Validation Error"
    assert body["message"] == "Invalid request data"
    assert body["details"][0]["field"] == "status"


def test_full_game_vote_flow(client, party):
    assert patch_status(client, party, "voting_games").status_code == 200

    for game in (party.a, party.b):
        response = client.post(
            f"/api/lanpas/{party.lanpa.id}/suggest-game",
            json={"game_id": str(game.id)},
            headers=auth(party.alice)
        )
        assert response.status_code == 201

    games = client.get(f"/api/lanpas/{party.lanpa.id}/games", headers=auth(party.bob)).json()
    assert {g["game"]["name"] for g in games} == {"Counter-Strike", "Age of Empires II"}

    assert patch_status(client, party, "voting_active").status_code == 200

    for user, game in ((party.alice, party.b), (party.bob, party.b), (party.carol, party.a)):
        response = client.post(
            f"/api/lanpas/{party.lanpa.id}/vote-game",
            json={"game_id": str(game.id)},
            headers=auth(user)
        )
        assert response.status_code == 200

    response = patch_status(client, party, "in_progress")
    assert response.status_code == 200
    body = response.json()
    assert body["status"] == "in_progress"
    assert body["selected_game_id"] == str(party.b.id)
    assert body["actual_date"] is not None

    results = client.get(f"/api/lanpas/{party.lanpa.id}/game-results", headers=auth(party.carol)).json()
    assert results["winner"]["name"] == "Age of Empires II"
    assert results["was_random_tiebreaker"] is False
    assert [r["votes"] for r in results["results"]] == [2, 1]

    # admin + alice, bob, carol were told about each of the three transitions
    assert party.db.query(Notification).count() == 12


def test_duplicate_suggestion_is_409(client, party):
    set_status(party.db, party.lanpa, LanpaStatus.VOTING_GAMES)
    url = f"/api/lanpas/{party.lanpa.id}/suggest-game"

    client.post(url, json={"game_id": str(party.a.id)}, headers=auth(party.alice))
    response = client.post(url, json={"game_id": str(party.a.id)}, headers=auth(party.bob))

    assert response.status_code == 409


def test_vote_outside_voting_window_is_400(client, party):
    response = client.post(
        f"/api/lanpas/{party.lanpa.id}/vote-game",
        json={"game_id": str(party.a.id)},
        headers=auth(party.alice)
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Voting is not open for this lanpa"


def test_invited_member_accepts_invitation(client, party):
    response = client.patch(
        f"/api/lanpas/{party.lanpa.id}/members/{party.dave.id}",
        json={"status": "confirmed"},
        headers=auth(party.dave)
    )

    assert response.status_code == 200
    assert response.json()["status"] == "confirmed"


def test_admin_invites_member(client, party):
    response = client.post(
        f"/api/lanpas/{party.lanpa.id}/members",
        json={"user_id": str(party.outsider.id)},
        headers=auth(party.admin)
    )

    assert response.status_code == 201
    assert response.json()["status"] == "invited"


def test_outsider_cannot_read_lanpa(client, party):
    response = client.get(f"/api/lanpas/{party.lanpa.id}", headers=auth(party.outsider))

    assert response.status_code == 403
    assert response.json()["message"] == "You do not have access to this lanpa"

    response = client.get(f"/api/lanpas/{party.lanpa.id}", headers=auth(party.bob))
    assert response.status_code == 200
    assert response.json()["name"] == "Friday Frag"


def test_member_cannot_reset_to_invited(client, party):
    response = client.patch(
        f"/api/lanpas/{party.lanpa.id}/members/{party.alice.id}",
        json={"status": "invited"},
        headers=auth(party.alice)
    )

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid status"


def test_list_lanpas(client, party):
    response = client.get("/api/lanpas", headers=auth(party.alice))

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["page"] == 1
    assert body["limit"] == 20
    assert body["lanpas"][0]["id"] == str(party.lanpa.id)

    body = client.get("/api/lanpas?status=completed,in_progress", headers=auth(party.alice)).json()
    assert body["total"] == 0

    assert client.get("/api/lanpas", headers=auth(party.outsider)).json()["total"] == 0


def test_list_lanpas_rejects_unknown_status(client, party):
    response = client.get("/api/lanpas?status=draft,partying", headers=auth(party.alice))

    assert response.status_code == 400
    assert response.json()["message"] == "Invalid status filter: draft,partying"


def test_admin_updates_lanpa(client, party):
    response = client.patch(
        f"/api/lanpas/{party.lanpa.id}",
        json={"name": "Friday Frag II", "description": "BYO chair"},
        headers=auth(party.admin)
    )

    assert response.status_code == 200
    assert response.json()["name"] == "Friday Frag II"
    assert response.json()["status"] == "draft"
    assert party.db.query(Notification).filter(Notification.type == "lanpa_updated").count() == 3

    response = client.patch(
        f"/api/lanpas/{party.lanpa.id}",
        json={"name": "Hijacked"},
        headers=auth(party.alice)
    )
    assert response.status_code == 403
    assert response.json()["message"] == "Only the admin can update this lanpa"


def test_admin_deletes_lanpa(client, party):
    response = client.delete(f"/api/lanpas/{party.lanpa.id}", headers=auth(party.alice))
    assert response.status_code == 403

    response = client.delete(f"/api/lanpas/{party.lanpa.id}", headers=auth(party.admin))
    assert response.status_code == 200
    assert response.json() == {"message": "Lanpa deleted successfully"}

    assert client.get(f"/api/lanpas/{party.lanpa.id}", headers=auth(party.admin)).status_code == 404


def test_admin_removes_member(client, party):
    response = client.delete(
        f"/api/lanpas/{party.lanpa.id}/members/{party.bob.id}",
        headers=auth(party.admin)
    )

    assert response.status_code == 200
    assert response.json() == {"message": "Member removed successfully"}
    assert party.db.query(LanpaMember).filter(LanpaMember.user_id == party.bob.id).count() == 0

    response = client.delete(
        f"/api/lanpas/{party.lanpa.id}/members/{party.admin.id}",
        headers=auth(party.admin)
    )
    assert response.status_code == 400


def test_lanpa_punishments_endpoint(client, party, punishment):
    party.db.add(UserPunishment(user_id=party.carol.id, punishment_id=punishment.id, lanpa_id=party.lanpa.id))
    party.db.commit()

    response = client.get(f"/api/lanpas/{party.lanpa.id}/punishments", headers=auth(party.alice))
    assert response.status_code == 200
    body = response.json()
    assert len(body) == 1
    assert body[0]["user_id"] == str(party.carol.id)
    assert body[0]["punishment"]["point_impact"] == -5

    response = client.get(f"/api/lanpas/{party.lanpa.id}/punishments", headers=auth(party.outsider))
    assert response.status_code == 403


def test_user_punishments_endpoint(client, party, punishment):
    party.db.add(UserPunishment(user_id=party.carol.id, punishment_id=punishment.id, lanpa_id=party.lanpa.id))
    party.db.commit()

    response = client.get(f"/api/punishments/users/{party.carol.id}", headers=auth(party.outsider))

    assert response.status_code == 200
    body = response.json()
    assert body["total_point_impact"] == -5
    assert body["punishments"][0]["punishment"]["name"] == "Buys the pizza"
