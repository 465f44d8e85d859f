from datetime import datetime, timezone

from orm import LoanORM


def _status(client, asset_id):
    r = client.get(f"/assets/{asset_id}")
    assert r.status_code == 200
    return r.json()["status"]


def _borrow(client, asset_id, borrower_id, **extra):
    return client.post("/loans", json={"asset_id": asset_id, "borrower_id": borrower_id, **extra})


def test_borrow_marks_asset_loaned(client, make_asset, make_borrower):
    asset = make_asset()
    borrower = make_borrower()
    assert asset["status"] == "available"

    r = _borrow(client, asset["id"], borrower["id"], notes="for the offsite")
    assert r.status_code == 201, r.text
    loan = r.json()
    assert loan["state"] == "borrowed"
    assert loan["returned_at"] is None
    assert loan["borrowed_at"]
    assert loan["notes"] == "for the offsite"
    assert loan["asset"]["id"] == asset["id"]
    assert loan["asset"]["status"] == "loaned"
    assert loan["borrower"]["full_name"] == borrower["full_name"]

    assert _status(client, asset["id"]) == "loaned"


def test_expected_return_date_is_stored_as_returned_at(client, make_asset, make_borrower):
    asset = make_asset()
    borrower = make_borrower()

    r = _borrow(client, asset["id"], borrower["id"], expected_return_at="2026-12-01")
    assert r.status_code == 201, r.text
    assert r.json()["returned_at"].startswith("2026-12-01")
    assert r.json()["state"] == "borrowed"


def test_borrowing_a_loaned_asset_is_conflict(client, make_asset, make_borrower):
    asset = make_asset(name="Projector", tag="P-001")
    alice = make_borrower("Alice")
    bob = make_borrower("Bob")

    assert _borrow(client, asset["id"], alice["id"]).status_code == 201

    r = _borrow(client, asset["id"], bob["id"])
    assert r.status_code == 409
    body = r.json()
    assert body["error"] == "conflict"
    assert "Projector" in body["detail"]
    assert "P-001" in body["detail"]

    loans = client.get(f"/loans/asset/{asset['id']}").json()
    assert len(loans) == 1
    assert loans[0]["borrower"]["id"] == alice["id"]
    assert _status(client, asset["id"]) == "loaned"


def test_borrow_missing_or_unknown_references(client, make_asset, make_borrower):
    asset = make_asset()
    borrower = make_borrower()

    r = client.post("/loans", json={"asset_id": asset["id"]})
    assert r.status_code == 400
    assert r.json()["error"] == "validation"

    r = client.post("/loans", json={"asset_id": 0, "borrower_id": borrower["id"]})
    assert r.status_code == 400

    r = client.post("/loans", json={"asset_id": asset["id"], "borrower_id": borrower["id"], "status": "x"})
    assert r.status_code == 400

    r = _borrow(client, 999999, borrower["id"])
    assert r.status_code == 404
    assert r.json()["error"] == "not_found"

    r = _borrow(client, asset["id"], 999999)
    assert r.status_code == 404

    assert _status(client, asset["id"]) == "available"
    assert client.get("/loans").json() == []


def test_return_defaults_returned_at_and_frees_asset(client, make_asset, make_borrower):
    asset = make_asset()
    borrower = make_borrower()
    loan = _borrow(client, asset["id"], borrower["id"]).json()

    r = client.patch(f"/loans/{loan['id']}", json={"state": "returned"})
    assert r.status_code == 200, r.text
    updated = r.json()
    assert updated["state"] == "returned"
    assert updated["returned_at"] is not None
    assert _status(client, asset["id"]) == "available"

    # free again, so it can be borrowed again
    assert _borrow(client, asset["id"], borrower["id"]).status_code == 201


def test_return_with_explicit_date(client, make_asset, make_borrower):
    asset = make_asset()
    borrower = make_borrower()
    loan = _borrow(client, asset["id"], borrower["id"]).json()

    r = client.put(
        f"/loans/{loan['id']}",
        json={"state": "returned", "returned_at": "2026-10-01T09:30:00"},
    )
    assert r.status_code == 200, r.text
    assert r.json()["returned_at"].startswith("2026-10-01T09:30")


def test_offset_dates_are_stored_as_utc(client, make_asset, make_borrower):
    asset = make_asset()
    borrower = make_borrower()
    loan = _borrow(client, asset["id"], borrower["id"], expected_return_at="2026-12-01T18:00:00-05:00").json()
    assert loan["returned_at"].startswith("2026-12-01T23:00")

    r = client.patch(
        f"/loans/{loan['id']}",
        json={"state": "returned", "returned_at": "2026-10-01T09:30:00+09:00"},
    )
    assert r.status_code == 200, r.text
    assert r.json()["returned_at"].startswith("2026-10-01T00:30")
    assert client.get(f"/loans/{loan['id']}").json()["returned_at"].startswith("2026-10-01T00:30")


def test_loaned_asset_is_conflict_before_borrower_lookup(client, make_asset, make_borrower):
    asset = make_asset()
    borrower = make_borrower()
    assert _borrow(client, asset["id"], borrower["id"]).status_code == 201

    r = _borrow(client, asset["id"], 999999)
    assert r.status_code == 409
    assert r.json()["error"] == "conflict"


def test_return_then_reactivate_round_trip(client, make_asset, make_borrower):
    asset = make_asset()
    borrower = make_borrower()
    loan = _borrow(client, asset["id"], borrower["id"]).json()

    client.patch(f"/loans/{loan['id']}", json={"state": "returned"})
    assert _status(client, asset["id"]) == "available"

    # a returned_at sent along with the correction is discarded
    r = client.patch(
        f"/loans/{loan['id']}",
        json={"state": "borrowed", "returned_at": "2026-10-01T00:00:00"},
    )
    assert r.status_code == 200, r.text
    assert r.json()["state"] == "borrowed"
    assert r.json()["returned_at"] is None
    assert _status(client, asset["id"]) == "loaned"


def test_reactivation_rejected_while_another_loan_is_active(client, make_asset, make_borrower):
    asset = make_asset()
    alice = make_borrower("Alice")
    bob = make_borrower("Bob")

    first = _borrow(client, asset["id"], alice["id"]).json()
    client.patch(f"/loans/{first['id']}", json={"state": "returned"})
    assert _borrow(client, asset["id"], bob["id"]).status_code == 201

    r = client.patch(f"/loans/{first['id']}", json={"state": "borrowed"})
    assert r.status_code == 409
    assert client.get(f"/loans/{first['id']}").json()["state"] == "returned"
    assert _status(client, asset["id"]) == "loaned"


def test_unchanged_state_does_not_touch_asset(client, make_asset, make_borrower):
    asset = make_asset()
    borrower = make_borrower()
    loan = _borrow(client, asset["id"], borrower["id"]).json()

    # operator override while on loan is allowed and left alone
    r = client.patch(f"/assets/{asset['id']}", json={"status": "maintenance"})
    assert r.status_code == 200

    r = client.patch(f"/loans/{loan['id']}", json={"state": "borrowed", "notes": "charger included"})
    assert r.status_code == 200
    assert r.json()["notes"] == "charger included"
    assert _status(client, asset["id"]) == "maintenance"

    # the active loan still blocks a second borrow
    assert _borrow(client, asset["id"], borrower["id"]).status_code == 409

    client.patch(f"/loans/{loan['id']}", json={"state": "returned"})
    assert _status(client, asset["id"]) == "available"


def test_update_unknown_loan_is_not_found(client):
    r = client.patch("/loans/999999", json={"state": "returned"})
    assert r.status_code == 404
    assert r.json()["error"] == "not_found"

    r = client.patch("/loans/999999", json={"state": "lost"})
    assert r.status_code == 400


def test_delete_only_active_loan_frees_asset(client, make_asset, make_borrower):
    asset = make_asset()
    borrower = make_borrower()
    loan = _borrow(client, asset["id"], borrower["id"]).json()

    r = client.delete(f"/loans/{loan['id']}")
    assert r.status_code == 200
    assert "message" in r.json()
    assert _status(client, asset["id"]) == "available"
    assert client.get(f"/loans/{loan['id']}").status_code == 404
    assert client.delete(f"/loans/{loan['id']}").status_code == 404


def test_delete_returned_loan_leaves_status(client, make_asset, make_borrower):
    asset = make_asset()
    borrower = make_borrower()
    loan = _borrow(client, asset["id"], borrower["id"]).json()
    client.patch(f"/loans/{loan['id']}", json={"state": "returned"})
    client.patch(f"/assets/{asset['id']}", json={"status": "reserve"})

    assert client.delete(f"/loans/{loan['id']}").status_code == 200
    assert _status(client, asset["id"]) == "reserve"


def test_delete_one_of_two_active_loans_keeps_asset_loaned(client, db_session, make_asset, make_borrower):
    asset = make_asset()
    alice = make_borrower("Alice")
    bob = make_borrower("Bob")
    first = _borrow(client, asset["id"], alice["id"]).json()

    # duplicate active loan from a bad manual correction
    now = datetime.now(timezone.utc)
    db_session.add(
        LoanORM(
            asset_id=asset["id"],
            borrower_id=bob["id"],
            borrowed_at=now,
            returned_at=None,
            state="borrowed",
            created_at=now,
            updated_at=now,
        )
    )
    db_session.commit()

    assert client.delete(f"/loans/{first['id']}").status_code == 200
    assert _status(client, asset["id"]) == "loaned"

    remaining = client.get(f"/loans/asset/{asset['id']}").json()
    assert len(remaining) == 1
    assert client.delete(f"/loans/{remaining[0]['id']}").status_code == 200
    assert _status(client, asset["id"]) == "available"


def test_list_loans_filters_and_order(client, make_asset, make_borrower):
    a1 = make_asset("Laptop", "L-1")
    a2 = make_asset("Monitor", "M-1")
    alice = make_borrower("Alice")
    bob = make_borrower("Bob")

    l1 = _borrow(client, a1["id"], alice["id"]).json()
    l2 = _borrow(client, a2["id"], bob["id"]).json()
    client.patch(f"/loans/{l1['id']}", json={"state": "returned"})
    l3 = _borrow(client, a1["id"], bob["id"]).json()

    r = client.get("/loans")
    assert r.status_code == 200
    assert [l["id"] for l in r.json()] == [l3["id"], l2["id"], l1["id"]]

    r = client.get(f"/loans?asset_id={a1['id']}")
    assert [l["id"] for l in r.json()] == [l3["id"], l1["id"]]

    r = client.get(f"/loans/borrower/{bob['id']}")
    assert [l["id"] for l in r.json()] == [l3["id"], l2["id"]]

    r = client.get("/loans?state=returned")
    assert [l["id"] for l in r.json()] == [l1["id"]]

    r = client.get(f"/loans/{l2['id']}")
    assert r.status_code == 200
    assert r.json()["asset"]["asset_tag"] == "M-1"
    assert r.json()["borrower"]["full_name"] == "Bob"
