import json

from tutor_scheduler.cli import main

from factories import raw_snapshot


def _write(tmp_path, data, name="snapshot.json"):
    path = tmp_path / name
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_lesson_run_writes_result_and_report(tmp_path):
    snapshot = _write(tmp_path, raw_snapshot())
    output = tmp_path / "result.json"
    report = tmp_path / "fulfilment.csv"

    assert main(["--snapshot", str(snapshot), "--output", str(output), "--report", str(report)]) == 0

    data = json.loads(output.read_text(encoding="utf-8"))
    assert set(data) == {"assignments", "change_log", "changed_signatures", "added_signatures", "change_details"}
    assert "2026-07-20_1" in data["assignments"]
    assert report.read_text(encoding="utf-8").splitlines()[0] == (
        "learner_id,learner,subject,requested,allocated,remaining"
    )


def test_interview_mode(tmp_path, capsys):
    data = raw_snapshot(
        coordinators=[{"id": "m1", "name": "Mori"}],
        requesters=[{"id": "r1", "name": "Ueda", "submitted_at": 10}],
        availability={"coordinator:m1": ["2026-07-20_1"], "requester:r1": ["2026-07-20_1"]},
    )
    snapshot = _write(tmp_path, data)

    assert main(["--snapshot", str(snapshot), "--mode", "interview"]) == 0

    printed = json.loads(capsys.readouterr().out)
    assert printed == {
        "assignments": {"2026-07-20_1": [{"instructor_id": "m1", "learner_ids": ["r1"], "subject": "interview"}]},
        "unassigned": [],
    }


def test_invalid_or_missing_snapshot_fails(tmp_path):
    bad = _write(tmp_path, raw_snapshot(learners=[{"id": "a", "quotas": {"math": -1}}]))
    assert main(["--snapshot", str(bad)]) == 2
    assert main(["--snapshot", str(tmp_path / "missing.json")]) == 2
