"""
Pitchboard
Contest blueprint: collection views, writes, decisions, backup and restore.

Endpoints summary:
    RECORDS   /api/v1/<collection>                 GET (?refresh=1), POST
              /api/v1/<collection>/<record_id>     DELETE
              (collection: winners | losers | elite)

    CONTEST   /api/v1/decisions                    POST  {guide, action, chat_ids}
              /api/v1/elite/promote                POST  {winner_id}
              /api/v1/summary                      GET

    BACKUP    /api/v1/backup                       GET
              /api/v1/restore                      POST  {winners, losers?, elite?}

A degraded write (primary store down) still answers 201/200 with
``"degraded": true``; the record is kept in the local cache mirror.
"""

import logging

from flask import Blueprint, jsonify, request

from pitchboard.core.exceptions import NotFoundError, ValidationError
from pitchboard.models.records import check_collection
from pitchboard.services import get_sync
from pitchboard.services import contest_service
from pitchboard.utils.errors import E, api_error, error_from_exception

logger = logging.getLogger(__name__)

contest_bp = Blueprint("contest", __name__, url_prefix="/api/v1")


@contest_bp.errorhandler(ValidationError)
@contest_bp.errorhandler(NotFoundError)
def _handle_service_error(exc):
    return error_from_exception(exc)


def _json_body():
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        raise ValidationError("Request body must be a JSON object")
    return data


# ═══════════════════════════════════════════════════════════════════════════
#  BACKUP / RESTORE / SUMMARY  (static paths first)
# ═══════════════════════════════════════════════════════════════════════════


@contest_bp.route("/summary", methods=["GET"])
def summary():
    return jsonify(get_sync().state.counts())


@contest_bp.route("/backup", methods=["GET"])
def backup():
    return jsonify(contest_service.export_backup(get_sync()))


@contest_bp.route("/restore", methods=["POST"])
def restore():
    payload = contest_service.parse_restore_payload(_json_body())
    report = get_sync().restorer.restore(payload)
    return jsonify(report.to_dict()), 200


# ═══════════════════════════════════════════════════════════════════════════
#  CONTEST ACTIONS
# ═══════════════════════════════════════════════════════════════════════════


@contest_bp.route("/decisions", methods=["POST"])
def create_decision():
    data = _json_body()
    outcome = contest_service.record_outcome(
        get_sync(), data.get("guide"), data.get("action"), data.get("chat_ids"),
    )
    return jsonify(outcome.to_dict()), 201


@contest_bp.route("/elite/promote", methods=["POST"])
def promote():
    data = _json_body()
    winner_id = data.get("winner_id")
    if not winner_id:
        return api_error(E.VALIDATION_REQUIRED, "winner_id is required")
    outcome = contest_service.promote_to_elite(get_sync(), winner_id)
    return jsonify(outcome.to_dict()), 201


# ═══════════════════════════════════════════════════════════════════════════
#  RECORDS
# ═══════════════════════════════════════════════════════════════════════════


@contest_bp.route("/<collection>", methods=["GET"])
def list_records(collection):
    check_collection(collection)
    sync = get_sync()
    degraded = False
    if request.args.get("refresh") in ("1", "true", "yes"):
        degraded = sync.gateway.load(collection).degraded
    items = list(sync.state.view(collection))
    return jsonify({"items": items, "total": len(items), "degraded": degraded})


@contest_bp.route("/<collection>", methods=["POST"])
def create_record(collection):
    check_collection(collection)
    outcome = get_sync().gateway.insert(collection, _json_body())
    return jsonify(outcome.to_dict()), 201


@contest_bp.route("/<collection>/<record_id>", methods=["DELETE"])
def delete_record(collection, record_id):
    check_collection(collection)
    outcome = get_sync().gateway.delete(collection, record_id)
    return jsonify(outcome.to_dict()), 200
