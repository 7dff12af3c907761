import argparse
import json
import logging
import logging.config
import sys
from typing import Any, Dict, List, Optional

from handrom.assessment.core.tracker import SessionTracker, TrackerConfig
from handrom.assessment.modules.scoring import score_dash
from handrom.core.config import settings
from handrom.helpers.enums import AssessmentKind, Handedness, QuestionnaireKind
from handrom.helpers.exception_handler import HandRomException, exception_to_exit_code
from handrom.schemas.sche_base import DataResponse
from handrom.schemas.sche_landmark import parse_frame
from handrom.schemas.sche_questionnaire import DashAnswersRequest, DashScoreResponse
from handrom.schemas.sche_session_result import SessionRecord
from handrom.services.srv_assessment import score_session

logger = logging.getLogger(__name__)


def _load_json(path: str) -> Any:
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def replay_frames(
    payloads: List[Dict[str, Any]],
    kind: Optional[AssessmentKind] = None,
    handedness: Optional[Handedness] = None,
) -> Dict[str, Any]:
    """
    Run recorded frame payloads through a session without timers.

    Handedness is locked from the argument, else from the first frame.
    """
    frames = [parse_frame(p) for p in payloads]
    if handedness is None:
        handedness = frames[0].handedness if frames else Handedness.UNKNOWN

    tracker = SessionTracker(config=TrackerConfig.from_settings(kind=kind))
    tracker.start_countdown(handedness)
    tracker.begin_recording()
    for frame in frames:
        tracker.push_frame(frame)
    result = tracker.stop()

    record = SessionRecord.from_result(result)
    response = DataResponse[SessionRecord]().success_response(record)
    output = response.model_dump(mode='json', by_alias=True)
    output['scores'] = {name: score.to_dict() for name, score in score_session(result).items()}
    return output


def run_replay(args) -> Dict[str, Any]:
    data = _load_json(args.frames)
    payloads = data['frames'] if isinstance(data, dict) else data
    kind = AssessmentKind(args.kind) if args.kind else None
    hand = Handedness(args.hand) if args.hand else None
    return replay_frames(payloads, kind=kind, handedness=hand)


def run_dash(args) -> Dict[str, Any]:
    data = _load_json(args.answers)
    if args.quick:
        data['questionnaire'] = QuestionnaireKind.QUICK_DASH.value
    request = DashAnswersRequest.model_validate(data)
    result = score_dash(request.responses, request.questionnaire)
    return DashScoreResponse.from_result(result).to_record()


def run_thresholds(args) -> Dict[str, Any]:
    return {name: {'value': value, 'rationale': rationale}
            for name, value, rationale in settings.threshold_table()}


def get_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog='handrom', description='Hand ROM assessment tools')
    sub = parser.add_subparsers(dest='command', required=True)

    replay = sub.add_parser('replay', help='Replay recorded landmark frames through a session')
    replay.add_argument('frames', help='JSON file: a list of frames or {"frames": [...]}')
    replay.add_argument('--kind', choices=[k.value for k in AssessmentKind], default=None)
    replay.add_argument('--hand', choices=[Handedness.LEFT.value, Handedness.RIGHT.value], default=None)
    replay.set_defaults(handler=run_replay)

    dash = sub.add_parser('dash', help='Score DASH / QuickDASH answers')
    dash.add_argument('answers', help='JSON file with "responses" and optional "questionnaire"')
    dash.add_argument('--quick', action='store_true', help='Score as QuickDASH')
    dash.set_defaults(handler=run_dash)

    thresholds = sub.add_parser('thresholds', help='Print the configured thresholds')
    thresholds.set_defaults(handler=run_thresholds)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    logging.config.fileConfig(settings.LOGGING_CONFIG_FILE, disable_existing_loggers=False)
    args = get_parser().parse_args(argv)
    try:
        output = args.handler(args)
    except HandRomException as e:
        return exception_to_exit_code(e)
    print(json.dumps(output, indent=2, ensure_ascii=False))
    return 0


if __name__ == '__main__':
    sys.exit(main())
