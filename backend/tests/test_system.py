from conftest import ok


def test_scheduler_status(api):
    status = ok(api.get("/system/scheduler/status"))
    assert status["auto_backup"]["enabled"] is False
    assert status["auto_backup"]["schedule"] == "Daily at 03:00"


def test_backup_create_list_delete(api):
    created = ok(api.post("/system/backups"))
    assert created["filename"].endswith(".db")

    listed = ok(api.get("/system/backups"))
    assert created["filename"] in [b["filename"] for b in listed["backups"]]

    ok(api.delete(f"/system/backups/{created['filename']}"))
    assert api.delete(f"/system/backups/{created['filename']}").status_code == 404


def test_backup_delete_stays_in_backup_dir(api):
    response = api.delete("/system/backups/..%2Ftest.db")
    assert response.status_code in (403, 404)
