# cineverse/web.py
from flask import Blueprint, request, current_app, jsonify, Response
from cineverse.identity import AuthError
from cineverse.service import DiscoveryService, ValidationError, NotFoundError
import csv, io, json, logging
from typing import List

logger = logging.getLogger(__name__)

bp = Blueprint("main", __name__, url_prefix="")  # blueprint name = 'main'

def register_routes(app, service: DiscoveryService):
    """
    Register blueprint and ensure SERVICE is in app.config.
    Call this once during app creation (run.create_app does this).
    """
    if "SERVICE" not in app.config:
        app.config["SERVICE"] = service
    app.register_blueprint(bp)
    logger.debug("Registered blueprint 'main' and injected SERVICE")

def register_error_handlers(app):
    """Centralized handlers for service exceptions."""
    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        logger.warning("ValidationError: %s", e)
        return jsonify(error=str(e)), 400

    @app.errorhandler(AuthError)
    def handle_auth_error(e):
        logger.info("AuthError %s: %s", e.code, e)
        return jsonify(error=str(e), code=e.code), 401

    @app.errorhandler(NotFoundError)
    def handle_not_found(e):
        logger.info("NotFoundError: %s", e)
        return jsonify(error=str(e)), 404

# helper to get service instance
def current_service() -> DiscoveryService:
    return current_app.config["SERVICE"]

def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        raise ValidationError("JSON body required")
    return data

def _split(raw) -> List[str]:
    return [p for p in (raw or "").split(",") if p.strip()]

# -----------------------
# Basic pages
# -----------------------
@bp.route("/")
def index():
    svc = current_service()
    wl = svc.get_watchlist()
    return jsonify(app="cineverse", movies=len(svc.list_movies()),
                   watchlist=wl["count"], identity=wl["identity"])

# -----------------------
# Watchlist
# -----------------------
@bp.route("/watchlist")
def watchlist():
    return jsonify(current_service().get_watchlist())

@bp.route("/watchlist", methods=["POST"])
def watchlist_add():
    action = current_service().add_to_watchlist(_json_body())
    return jsonify(status=action), (201 if action == "added" else 200)

@bp.route("/watchlist/<int:item_id>", methods=["DELETE"])
def watchlist_remove(item_id: int):
    return jsonify(status=current_service().remove_from_watchlist(item_id))

@bp.route("/watchlist/toggle", methods=["POST"])
def watchlist_toggle():
    return jsonify(status=current_service().toggle_watchlist(_json_body()))

@bp.route("/watchlist/clear", methods=["POST"])
def watchlist_clear():
    current_service().clear_watchlist()
    return jsonify(status="cleared")

# -----------------------
# Import / Export endpoints
# -----------------------
@bp.route("/watchlist/export")
def export_watchlist():
    svc = current_service()
    fmt = request.args.get("format", "json").lower()
    rows = svc.export_watchlist()
    if fmt == "json":
        return Response(json.dumps(rows, ensure_ascii=False), mimetype="application/json")
    if fmt != "csv":
        raise ValidationError("format must be json or csv")
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=["id", "title", "release_date", "vote_average", "addedAt"])
    writer.writeheader()
    for r in rows:
        writer.writerow(r)
    csv_bytes = output.getvalue().encode("utf-8")
    return Response(csv_bytes, mimetype="text/csv", headers={"Content-Disposition": "attachment; filename=watchlist.csv"})

@bp.route("/watchlist/import", methods=["POST"])
def import_watchlist():
    svc = current_service()
    file = request.files.get("file")
    if file:
        try:
            rows = json.loads(file.read().decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            logger.exception("Failed to parse uploaded file")
            raise ValidationError(f"Failed to parse file: {e}")
    else:
        rows = _json_body()
    created, errors = svc.import_watchlist_from_rows(rows)
    return jsonify(created=created, errors=errors)

# -----------------------
# Auth
# -----------------------
def _credentials():
    body = _json_body()
    return body.get("email", ""), body.get("password", "")

@bp.route("/auth/signup", methods=["POST"])
def signup():
    ident = current_service().sign_up(*_credentials())
    return jsonify(uid=ident.uid, email=ident.email), 201

@bp.route("/auth/signin", methods=["POST"])
def signin():
    ident = current_service().sign_in(*_credentials())
    return jsonify(uid=ident.uid, email=ident.email)

@bp.route("/auth/signout", methods=["POST"])
def signout():
    current_service().sign_out()
    return jsonify(status="signed_out")

@bp.route("/auth/me")
def me():
    ident = current_service().current_identity()
    if ident is None:
        return jsonify(uid=None, email=None)
    return jsonify(uid=ident.uid, email=ident.email)

# -----------------------
# Movies
# -----------------------
@bp.route("/movies")
def movies():
    return jsonify(items=[m.to_dict() for m in current_service().list_movies()])

@bp.route("/movies/<int:movie_id>")
def movie_detail(movie_id: int):
    return jsonify(current_service().get_movie(movie_id).to_dict())

@bp.route("/movies/<int:movie_id>/similar")
def movie_similar(movie_id: int):
    return jsonify(items=[m.to_dict() for m in current_service().similar_movies(movie_id)])

@bp.route("/movies/<int:movie_id>/watchlist", methods=["POST"])
def movie_add_to_watchlist(movie_id: int):
    action = current_service().add_movie_to_watchlist(movie_id)
    return jsonify(status=action), (201 if action == "added" else 200)

# -----------------------
# Recommendations
# -----------------------
@bp.route("/recommendations")
def recommendations():
    svc = current_service()
    args = request.args
    filters = svc.build_filters(
        genres=_split(args.get("genres")),
        moods=_split(args.get("moods")),
        min_rating=args.get("min_rating"),
        language=args.get("language"),
        year_min=args.get("year_min"),
        year_max=args.get("year_max"),
        runtime=args.get("runtime"),
        q=args.get("q"),
    )
    return jsonify(items=[c.to_dict() for c in svc.recommend(filters)])
