import csv
import io


def test_ui_pages_smoke(client, make_asset, make_borrower):
    asset = make_asset("HDMI Switch", "A-001", category="network")
    make_borrower("Alice", "IT")

    r = client.get("/ui/assets")
    assert r.status_code == 200
    assert "assets ok (1)" in r.text

    r = client.get(f"/ui/assets/{asset['id']}/edit")
    assert r.status_code == 200
    assert "edit ok HDMI Switch" in r.text

    r = client.get("/ui/borrowers")
    assert r.status_code == 200
    assert "Alice" in r.text

    r = client.get("/ui/loans")
    assert r.status_code == 200
    assert "assets=1 borrowers=1" in r.text


def test_ui_asset_edit_unknown_is_404(client):
    assert client.get("/ui/assets/999999/edit").status_code == 404


def test_export_assets_csv(client, make_asset):
    make_asset("HDMI Switch", "A-001", category="network")
    make_asset("USB Hub", "A-002")

    r = client.get("/ui/assets/export?status=&category=&q=")
    assert r.status_code == 200, r.text
    assert "text/csv" in r.headers.get("content-type", "")

    lines = r.text.strip().splitlines()
    assert lines[0] == "id,asset_tag,name,category,status,description,image_url,updated_at"
    assert len(lines) == 1 + 2


def test_export_loans_csv(client, make_asset, make_borrower):
    asset = make_asset("Camera", "C-001")
    borrower = make_borrower("Alice", "Media")
    loan = client.post("/loans", json={"asset_id": asset["id"], "borrower_id": borrower["id"], "notes": "event"}).json()
    client.patch(f"/loans/{loan['id']}", json={"state": "returned"})
    other = make_asset("Tripod", "C-002")
    client.post("/loans", json={"asset_id": other["id"], "borrower_id": borrower["id"]})

    r = client.get("/ui/loans/export")
    assert r.status_code == 200
    assert "text/csv" in r.headers.get("content-type", "")
    assert "attachment" in r.headers.get("content-disposition", "")

    rows = list(csv.DictReader(io.StringIO(r.text)))
    assert [row["asset_tag"] for row in rows] == ["C-002", "C-001"]
    assert rows[0]["state"] == "borrowed"
    assert rows[0]["returned_at"] == ""
    assert rows[1]["state"] == "returned"
    assert rows[1]["borrower"] == "Alice"
    assert rows[1]["department"] == "Media"
    assert rows[1]["notes"] == "event"

    r = client.get("/ui/loans/export?state=returned")
    rows = list(csv.DictReader(io.StringIO(r.text)))
    assert [row["asset_tag"] for row in rows] == ["C-001"]
