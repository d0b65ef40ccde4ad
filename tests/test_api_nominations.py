import uuid

from models import PunishmentNomination, UserPunishment
from tests.utils import auth, close_voting


def nominate(client, party, punishment, nominee, by, **extra):
    payload = {
        "lanpa_id": str(party.lanpa.id),
        "punishment_id": str(punishment.id),
        "nominated_user_id": str(nominee.id),
        "reason": "Unplugged the switch",
    }
    payload.update(extra)
    return client.post("/api/nominations", json=payload, headers=auth(by))


def test_create_nomination(client, party, punishment):
    response = nominate(client, party, punishment, party.carol, party.alice)

    assert response.status_code == 201
    body = response.json()
    assert body["status"] == "pending"
    assert body["nominated_by"] == str(party.alice.id)


def test_voting_hours_out_of_range(client, party, punishment):
    response = nominate(client, party, punishment, party.carol, party.alice, voting_hours=200)

    assert response.status_code == 400
    body = response.json()
    assert body["error"] == "Validation Error"
    assert body["details"][0]["field"] == "voting_hours"
    assert party.db.query(PunishmentNomination).count() == 0


def test_duplicate_pending_nomination_is_409(client, party, punishment):
    nominate(client, party, punishment, party.carol, party.alice)

    response = nominate(client, party, punishment, party.carol, party.bob)

    assert response.status_code == 409
    assert response.json()["statusCode"] == 409


def test_self_vote_is_403(client, party, punishment):
    nomination_id = nominate(client, party, punishment, party.carol, party.alice).json()["id"]

    response = client.post(
        f"/api/nominations/{nomination_id}/vote",
        json={"vote": False},
        headers=auth(party.carol)
    )

    assert response.status_code == 403
    assert response.json()["message"] == "You cannot vote on your own nomination"


def test_unknown_nomination_is_404(client, party):
    response = client.get(f"/api/nominations/{uuid.uuid4()}", headers=auth(party.alice))
    assert response.status_code == 404


def test_finalize_before_deadline_is_400(client, party, punishment):
    nomination_id = nominate(client, party, punishment, party.carol, party.alice).json()["id"]

    response = client.post(f"/api/nominations/{nomination_id}/finalize", headers=auth(party.admin))

    assert response.status_code == 400
    assert response.json()["message"] == "Voting period has not ended yet"


def test_vote_and_finalize_flow(client, party, punishment):
    nomination_id = nominate(client, party, punishment, party.carol, party.alice).json()["id"]

    for user, guilty in ((party.alice, True), (party.bob, True), (party.admin, False)):
        response = client.post(
            f"/api/nominations/{nomination_id}/vote",
            json={"vote": guilty},
            headers=auth(user)
        )
        assert response.status_code == 200

    detail = client.get(f"/api/nominations/{nomination_id}", headers=auth(party.bob)).json()
    assert (detail["votes_for"], detail["votes_against"]) == (2, 1)

    nomination = party.db.query(PunishmentNomination).one()
    close_voting(party.db, nomination)

    response = client.post(f"/api/nominations/{nomination_id}/finalize", headers=auth(party.bob))
    assert response.status_code == 200
    assert response.json() == {
        "nomination_id": nomination_id,
        "status": "approved",
        "votes_for": 2,
        "votes_against": 1,
        "punishment_applied": True,
    }
    assert party.db.query(UserPunishment).count() == 1

    again = client.post(f"/api/nominations/{nomination_id}/finalize", headers=auth(party.bob))
    assert again.status_code == 400
    assert party.db.query(UserPunishment).count() == 1


def test_list_lanpa_nominations(client, party, punishment):
    nominate(client, party, punishment, party.carol, party.alice)
    nominate(client, party, punishment, party.bob, party.alice)

    response = client.get(f"/api/nominations/lanpa/{party.lanpa.id}", headers=auth(party.carol))
    assert response.status_code == 200
    assert len(response.json()) == 2

    response = client.get(f"/api/nominations/lanpa/{party.lanpa.id}", headers=auth(party.outsider))
    assert response.status_code == 403
