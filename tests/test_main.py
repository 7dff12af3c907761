import json

from handrom.helpers.enums import AssessmentKind, Finger, Handedness
from handrom.main import main, replay_frames
from handrom.schemas.sche_landmark import LandmarkFrameSchema

from conftest import make_frame


def frame_payloads(count=5):
    return [
        LandmarkFrameSchema.from_frame(
            make_frame(timestamp=i * 0.1, flexion={Finger.INDEX: (40.0, 50.0, 30.0)})
        ).to_record()
        for i in range(count)
    ]


def test_replay_frames():
    output = replay_frames(frame_payloads(), kind=AssessmentKind.TAM, handedness=Handedness.RIGHT)
    assert output["success"] is True
    assert output["data"]["handType"] == "RIGHT"
    assert output["data"]["capturedFrameCount"] == 5
    assert output["data"]["indexFingerRom"] == 120.0
    assert output["scores"]["TAM"]["per_finger"]["INDEX"]["range_flag"] == "BELOW"


def test_replay_command(tmp_path, capsys):
    path = tmp_path / "frames.json"
    path.write_text(json.dumps({"frames": frame_payloads(3)}), encoding="utf-8")
    assert main(["replay", str(path), "--kind", "TAM"]) == 0
    output = json.loads(capsys.readouterr().out)
    assert output["data"]["assessmentKind"] == "TAM"


def test_dash_command(tmp_path, capsys):
    path = tmp_path / "answers.json"
    path.write_text(json.dumps({"responses": {str(i): 3 for i in range(1, 12)}}), encoding="utf-8")
    assert main(["dash", str(path), "--quick"]) == 0
    output = json.loads(capsys.readouterr().out)
    assert output["score"] == 50.0
    assert output["interpretation"] == "Moderate"
    assert output["questionnaire"] == "QUICK_DASH"


def test_dash_command_invalid_answer(tmp_path):
    path = tmp_path / "answers.json"
    path.write_text(json.dumps({"responses": {"1": 9}}), encoding="utf-8")
    assert main(["dash", str(path)]) == 2


def test_thresholds_command(capsys):
    assert main(["thresholds"]) == 0
    output = json.loads(capsys.readouterr().out)
    assert output["NEUTRAL_ZONE_DEGREES"]["value"] == 3.0
