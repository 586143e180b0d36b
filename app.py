from __future__ import annotations

import logging
import re
from contextlib import suppress
from datetime import datetime, timezone
from functools import wraps
from typing import Any, Callable, Dict, Optional, Tuple
from urllib.parse import urlparse

from flask import (
    Flask, request, session, redirect, url_for,
    render_template, render_template_string, abort, g
)
from werkzeug.exceptions import InternalServerError, NotFound

from services import validation
from services.api_client import CaseApiClient
from services.auth import (
    AuthCredentials,
    AuthTokens,
    authenticate_user,
    forget_auth_service,
    get_auth_service,
)
from services.case_state import accept_case, close_case, complete_case, pending_case, reopen_case
from services.cases import CASE_TABS, SORTABLE_FIELDS, get_cases, search_cases
from services.client_details import (
    add_support_needs,
    add_third_party,
    delete_support_needs,
    delete_third_party,
    get_case_history,
    get_client_details,
    prepare_support_needs_data,
    prepare_third_party_data,
    save_provider_note,
    update_client_details,
    update_support_needs,
    update_third_party,
)
from services.errors import (
    AuthError,
    CaseApiError,
    ProcessedError,
    create_processed_error,
    is_auth_error,
    is_forbidden_error,
    is_http_error,
    is_not_found_error,
    is_server_error,
)
from services.feedback import get_feedback_choices, submit_operator_feedback
from services.formatting import parse_ordering
from services.messages import (
    CLOSE_EVENT_CODES,
    LANGUAGES,
    PASSPHRASE_OPTIONS,
    PENDING_REASONS,
    RELATIONSHIP_OPTIONS,
    SEARCH_STATUS_OPTIONS,
    SUPPORT_NEED_OPTIONS,
    case_status_label,
    label_for,
    outcome_description,
)
from services.security import (
    CSRF_FORM_FIELD,
    SessionSecretError,
    decrypt_secret,
    encrypt_secret,
    generate_csrf_token,
    validate_csrf_token,
)

# ---- App config (pulled from mycc_config.py) ---------------------------
try:
    import mycc_config as config
except RuntimeError as e:
    raise RuntimeError("mycc_config could not load settings; check SESSION_SECRET and SESSION_NAME") from e


SESSION_ACTIVITY_KEY = "last_activity"
AUTH_CREDENTIALS_KEY = "auth_credentials"
AUTH_TOKENS_KEY = "auth_tokens"
THIRD_PARTY_CACHE_KEY = "thirdPartyCache"
SUPPORT_NEEDS_ORIGINAL_KEY = "clientSupportNeedsOriginal"
SEARCH_STATE_KEY = "search"

CASE_REFERENCE_RE = re.compile(r"^[A-Z]{2}-\d{4}-\d{4}$")
INVALID_CREDENTIALS_MESSAGE = "Invalid username or password"


# ---- Flask setup --------------------------------------------------------
app = Flask(__name__)
app.secret_key = config.SECRET_KEY
app.permanent_session_lifetime = config.SESSION_TIMEOUT
app.config.update(
    SESSION_COOKIE_NAME=config.SESSION_COOKIE_NAME,
    SESSION_COOKIE_HTTPONLY=True,
    SESSION_COOKIE_SAMESITE="Lax",
    SESSION_COOKIE_SECURE=config.is_production(),
)

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
app.logger.setLevel(config.LOG_LEVEL)


# ---- Session helpers ----------------------------------------------------
def login_user_session(username: str, password: str, tokens: AuthTokens) -> None:
    session.clear()
    session.permanent = True
    session[AUTH_CREDENTIALS_KEY] = {
        "username": username,
        "password": encrypt_secret(password),
        "client_id": config.API.client_id,
        "client_secret": encrypt_secret(config.API.client_secret),
    }
    session[AUTH_TOKENS_KEY] = tokens.to_dict()
    session[SESSION_ACTIVITY_KEY] = datetime.now(timezone.utc).isoformat()


def _forget_session_auth() -> None:
    # The registry is keyed on username and client id, so undecryptable sessions can still be forgotten.
    raw = session.get(AUTH_CREDENTIALS_KEY)
    if not isinstance(raw, dict):
        return
    username = str(raw.get("username") or "")
    client_id = str(raw.get("client_id") or "")
    if username:
        forget_auth_service(config.API, AuthCredentials(username, "", client_id, ""))


def logout_user_session() -> None:
    _forget_session_auth()
    session.clear()


def _session_credentials() -> Optional[AuthCredentials]:
    raw = session.get(AUTH_CREDENTIALS_KEY)
    if not isinstance(raw, dict):
        return None
    try:
        return AuthCredentials(
            username=str(raw.get("username") or ""),
            password=decrypt_secret(raw.get("password") or ""),
            client_id=str(raw.get("client_id") or ""),
            client_secret=decrypt_secret(raw.get("client_secret") or ""),
        )
    except SessionSecretError as exc:
        app.logger.warning("Discarding session credentials: %s", exc)
        return None


def _clear_original_form_data() -> None:
    for key in [k for k in session.keys() if k.endswith("Original")]:
        session.pop(key, None)


def get_api_client() -> CaseApiClient:
    client = g.get("api_client")
    if client is None:
        auth = get_auth_service(config.API, g.credentials)
        if auth.get_tokens() is None:
            auth.set_tokens(AuthTokens.from_dict(session.get(AUTH_TOKENS_KEY)))
        client = CaseApiClient(
            config.API.base_url,
            auth,
            timeout=config.API.timeout_seconds,
            prefix=config.API.prefix,
        )
        g.api_client = client
    return client


# ---- Decorators ---------------------------------------------------------
def require_login(handler):
    @wraps(handler)
    def wrapper(*args, **kwargs):
        if g.get("current_user") is None:
            return redirect(url_for("login"))
        return handler(*args, **kwargs)

    return wrapper


def require_case_reference(handler):
    @wraps(handler)
    def wrapper(*args, **kwargs):
        case_reference = kwargs.get("case_reference") or ""
        if not CASE_REFERENCE_RE.fullmatch(case_reference):
            app.logger.warning("Rejected invalid case reference %r", case_reference)
            return render_error("Invalid case reference", 400)
        return handler(*args, **kwargs)

    return wrapper


# ---- Request hooks ------------------------------------------------------
@app.before_request
def _enforce_session_timeout():
    if AUTH_CREDENTIALS_KEY not in session:
        return

    raw_last_activity = session.get(SESSION_ACTIVITY_KEY)
    now = datetime.now(timezone.utc)

    last_activity = None
    if raw_last_activity:
        with suppress(ValueError, TypeError):
            last_activity = datetime.fromisoformat(raw_last_activity)

    if last_activity and now - last_activity > config.SESSION_TIMEOUT:
        app.logger.info("Session expired after inactivity")
        logout_user_session()
        return redirect(url_for("login"))

    session.permanent = True
    session[SESSION_ACTIVITY_KEY] = now.isoformat()


@app.before_request
def _load_current_user() -> None:
    g.current_user = None
    g.credentials = None
    credentials = _session_credentials()
    if credentials is None:
        if AUTH_CREDENTIALS_KEY in session:
            logout_user_session()
        return
    g.current_user = credentials.username
    g.credentials = credentials


@app.before_request
def _check_csrf():
    if request.method in {"GET", "HEAD", "OPTIONS"}:
        return
    if not validate_csrf_token(session, request.form.get(CSRF_FORM_FIELD)):
        app.logger.warning("CSRF token check failed for %s", request.path)
        return render_error("Your form session has expired. Go back and try again.", 403)


@app.after_request
def _finalise_response(response):
    client = g.get("api_client")
    if client is not None:
        tokens = client.auth.get_tokens()
        if tokens is not None and session.get(AUTH_TOKENS_KEY) != tokens.to_dict():
            session[AUTH_TOKENS_KEY] = tokens.to_dict()

    response.headers.setdefault("X-Content-Type-Options", "nosniff")
    response.headers.setdefault("X-Frame-Options", "DENY")
    response.headers.setdefault("Referrer-Policy", "same-origin")
    return response


@app.teardown_appcontext
def close_api_client(_: Optional[BaseException]) -> None:
    client = g.pop("api_client", None)
    if client is not None:
        client.close()


@app.context_processor
def inject_template_globals() -> Dict[str, Any]:
    return {
        "service_name": config.SERVICE_NAME,
        "current_user": g.get("current_user"),
        "csrf_token": lambda: generate_csrf_token(session),
        "csrf_field_name": CSRF_FORM_FIELD,
        "case_status_label": case_status_label,
        "outcome_description": outcome_description,
        "label_for": label_for,
        "relationship_labels": RELATIONSHIP_OPTIONS,
        "passphrase_labels": PASSPHRASE_OPTIONS,
    }


# ---- Error handling -----------------------------------------------------
def render_error(message: str, status: int = 500):
    try:
        return render_template("error.html", status=status, error=message), status
    except Exception:
        app.logger.exception("Error template failed to render")
        return render_template_string("""
            <!doctype html><title>Error</title>
            <h1>Sorry, there is a problem with the service</h1>
            <p>{{ error }}</p>
        """, error=message), status


def _error_status(status_code: Optional[int]) -> int:
    if status_code is not None and 400 <= status_code < 600:
        return status_code
    return 500


@app.errorhandler(ProcessedError)
@app.errorhandler(CaseApiError)
def handle_api_error(exc):
    if isinstance(exc, AuthError) or is_auth_error(exc):
        app.logger.info("API rejected credentials; signing out")
        logout_user_session()
        return redirect(url_for("login"))
    if is_server_error(exc) or not is_http_error(exc):
        app.logger.error("API failure on %s: %s", request.path, exc.message)
    elif is_forbidden_error(exc) or is_not_found_error(exc):
        app.logger.info("API refused %s: %s", request.path, exc.message)
    return render_error(exc.message, _error_status(exc.status_code))


@app.errorhandler(NotFound)
def handle_not_found(_):
    return render_error("Page not found", 404)


@app.errorhandler(InternalServerError)
def handle_server_error(_):
    return render_error("Sorry, there is a problem with the service. Try again later.", 500)


def _render_form(template: str, status: int = 200, **context):
    return render_template(template, **context), status


def _form_errors(template: str, values: Dict[str, Any], errors, **context):
    # Hidden "existing"/"original" inputs are echoed back from the posted form.
    form = {key: value for key, value in request.form.items() if key != "password"}
    form.update(values)
    return _render_form(
        template,
        400,
        form=form,
        error=validation.build_error_context(errors),
        **context,
    )


def _safe_referer(default: str) -> str:
    referer = request.headers.get("Referer") or ""
    parsed = urlparse(referer)
    if referer and parsed.netloc in ("", request.host) and parsed.path.startswith("/"):
        return parsed.path + (f"?{parsed.query}" if parsed.query else "")
    return default


def _page_arg() -> int:
    try:
        page = int(request.args.get("page", 1))
    except (TypeError, ValueError):
        return 1
    return page if page > 0 else 1


def _sort_args(default_by: str, default_order: str) -> Tuple[str, str]:
    raw = request.args.get("ordering")
    if not raw:
        return default_by, default_order
    sort_by, sort_order = parse_ordering(raw)
    if sort_by not in SORTABLE_FIELDS:
        return default_by, default_order
    return sort_by, sort_order


def _raise_if_unauthorised(result: Dict[str, Any]) -> None:
    error = CaseApiError(result.get("message") or "", result.get("status_code"))
    if is_auth_error(error):
        raise error


def _render_failure(result: Dict[str, Any]):
    _raise_if_unauthorised(result)
    return render_error(result["message"], _error_status(result.get("status_code")))


def _load_client_details(case_reference: str):
    """Return (details, None) or (None, error response)."""
    result = get_client_details(get_api_client(), case_reference)
    if result["status"] != "success":
        return None, _render_failure(result)
    return result["data"], None


def _client_details_url(case_reference: str) -> str:
    return url_for("client_details", case_reference=case_reference)


# ---- Diagnostics --------------------------------------------------------
@app.get("/status")
def status():
    return "OK"


@app.get("/health")
def health():
    return "Healthy"


# ---- Auth & Home --------------------------------------------------------
@app.route("/login", methods=["GET", "POST"])
def login():
    if g.get("current_user") is not None:
        return redirect(url_for("home"))

    if request.method == "GET":
        return render_template("login.html", form={})

    values, errors = validation.validate_login(request.form)
    if errors:
        return _form_errors("login.html", {"username": values["username"]}, errors)

    try:
        _, tokens = authenticate_user(config.API, values["username"], values["password"])
    except AuthError as exc:
        app.logger.warning("Login failed for %s: %s", values["username"], exc.message)
        rejected = exc.status_code in (400, 401)
        message = INVALID_CREDENTIALS_MESSAGE if rejected else exc.message
        return _render_form(
            "login.html",
            401 if rejected else 503,
            form={"username": values["username"]},
            error=validation.build_error_context([validation.FieldError("username", message)]),
        )

    login_user_session(values["username"], values["password"], tokens)
    app.logger.info("User %s signed in", values["username"])
    return redirect(url_for("case_list", tab="new"))


@app.route("/logout")
def logout():
    logout_user_session()
    return redirect(url_for("login"))


@app.route("/")
@require_login
def home():
    return redirect(url_for("case_list", tab="new"))


# ---- Case lists & search -------------------------------------------------
@app.get("/cases/<tab>")
@require_login
def case_list(tab: str):
    case_tab = CASE_TABS.get(tab)
    if case_tab is None:
        abort(404)

    sort_by, sort_order = _sort_args(case_tab.default_sort_by, case_tab.default_sort_order)
    result = get_cases(
        get_api_client(),
        case_tab.api_state,
        sort_order=sort_order,
        sort_by=sort_by,
        page=_page_arg(),
        page_size=config.PAGINATION_LIMIT,
    )
    if result["status"] != "success":
        _raise_if_unauthorised(result)
    return render_template(
        "cases/list.html",
        tab=case_tab,
        tabs=CASE_TABS,
        cases=result["data"],
        pagination=result["pagination"],
        list_error=result.get("message"),
        sort_by=sort_by,
        sort_order=sort_order,
    )


@app.route("/search", methods=["GET", "POST"])
@require_login
def search():
    if request.method == "POST":
        values, errors = validation.validate_search(request.form)
        if errors:
            return _form_errors("search.html", values, errors, status_options=SEARCH_STATUS_OPTIONS, results=None)
        session[SEARCH_STATE_KEY] = {"keyword": values["searchKeyword"], "status": values["status"]}
        return redirect(url_for("search"))

    state = session.get(SEARCH_STATE_KEY) or {}
    keyword = state.get("keyword") or ""
    status_filter = state.get("status") or ""
    form = {"searchKeyword": keyword, "status": status_filter}
    if not keyword:
        return render_template("search.html", form=form, status_options=SEARCH_STATUS_OPTIONS, results=None)

    sort_by, sort_order = _sort_args("modified", "desc")
    try:
        result = search_cases(
            get_api_client(),
            keyword,
            status=status_filter,
            page=_page_arg(),
            page_size=config.SEARCH_PAGE_LIMIT,
            sort_by=sort_by,
            sort_order=sort_order,
            timeout=config.API.search_timeout_seconds,
        )
    except CaseApiError as exc:
        raise create_processed_error(exc, "searching cases") from exc

    return render_template(
        "search.html",
        form=form,
        status_options=SEARCH_STATUS_OPTIONS,
        results=result["data"],
        pagination=result["pagination"],
        sort_by=sort_by,
        sort_order=sort_order,
    )


@app.get("/search/clear")
@require_login
def search_clear():
    session.pop(SEARCH_STATE_KEY, None)
    return redirect(url_for("search"))


# ---- Case details ---------------------------------------------------------
@app.get("/cases/<case_reference>/client-details")
@require_login
@require_case_reference
def client_details(case_reference: str):
    details, error_response = _load_client_details(case_reference)
    if error_response is not None:
        return error_response

    third_party = details.get("thirdParty")
    session[THIRD_PARTY_CACHE_KEY] = {
        "caseReference": case_reference,
        "hasSoftDeletedThirdParty": bool(third_party and third_party.get("isSoftDeleted")),
    }
    _clear_original_form_data()
    return render_template("case_details/client_details.html", case=details, active_tab="client-details")


@app.get("/cases/<case_reference>/history")
@require_login
@require_case_reference
def case_history(case_reference: str):
    details, error_response = _load_client_details(case_reference)
    if error_response is not None:
        return error_response

    result = get_case_history(get_api_client(), case_reference)
    if result["status"] != "success":
        return _render_failure(result)
    return render_template("case_details/history.html", case=details, logs=result["data"], active_tab="history")


# ---- Case state changes --------------------------------------------------
@app.post("/cases/<case_reference>/accept")
@require_login
@require_case_reference
def accept(case_reference: str):
    accept_case(get_api_client(), case_reference)
    return redirect(_safe_referer(_client_details_url(case_reference)))


@app.post("/cases/<case_reference>/completed")
@require_login
@require_case_reference
def completed(case_reference: str):
    complete_case(get_api_client(), case_reference)
    return redirect(_safe_referer(_client_details_url(case_reference)))


def _case_form_view(
    case_reference: str,
    template: str,
    validator: Callable,
    submit: Callable[[Dict[str, Any]], Any],
    **context,
):
    """Render a form under the case header; on a valid POST hand the values to ``submit``."""
    values: Dict[str, Any] = {}
    errors = None
    if request.method == "POST":
        values, errors = validator(request.form)
        if not errors:
            return submit(values)

    details, error_response = _load_client_details(case_reference)
    if error_response is not None:
        return error_response
    if errors:
        return _form_errors(template, values, errors, case=details, case_reference=case_reference, **context)
    return render_template(template, case=details, case_reference=case_reference, form={}, **context)


@app.route("/cases/<case_reference>/why-pending", methods=["GET", "POST"])
@require_login
@require_case_reference
def why_pending(case_reference: str):
    def submit(values: Dict[str, Any]):
        pending_case(get_api_client(), case_reference, values["notes"])
        return redirect(_client_details_url(case_reference))

    return _case_form_view(
        case_reference,
        "case_details/why_pending.html",
        validation.validate_pending,
        submit,
        reasons=PENDING_REASONS,
    )


@app.route("/cases/<case_reference>/why-closed", methods=["GET", "POST"])
@require_login
@require_case_reference
def why_closed(case_reference: str):
    def submit(values: Dict[str, Any]):
        close_case(get_api_client(), case_reference, values["eventCode"], values["closeNote"])
        return redirect(_client_details_url(case_reference))

    return _case_form_view(
        case_reference,
        "case_details/why_closed.html",
        validation.validate_close,
        submit,
        event_codes=CLOSE_EVENT_CODES,
    )


@app.route(
    "/cases/<case_reference>/why-reopen-completed-case",
    methods=["GET", "POST"],
    defaults={"previous_status": "completed"},
)
@app.route(
    "/cases/<case_reference>/why-reopen-closed-case",
    methods=["GET", "POST"],
    defaults={"previous_status": "closed"},
)
@require_login
@require_case_reference
def why_reopen(case_reference: str, previous_status: str):
    def submit(values: Dict[str, Any]):
        reopen_case(get_api_client(), case_reference, values["reopenNote"])
        return redirect(url_for("case_list", tab="advising"))

    return _case_form_view(
        case_reference,
        "case_details/why_reopen.html",
        validation.validate_reopen,
        submit,
        previous_status=previous_status,
    )


# ---- Case details, notes & feedback --------------------------------------
@app.route("/cases/<case_reference>/case-details", methods=["GET", "POST"])
@require_login
@require_case_reference
def case_details(case_reference: str):
    if request.method == "POST":
        values, errors = validation.validate_provider_note(request.form)
        if not errors:
            result = save_provider_note(get_api_client(), case_reference, values["providerNote"])
            if result["status"] != "success":
                return _render_failure(result)
            app.logger.info("Saved provider note for %s", case_reference)
            return redirect(url_for("case_details", case_reference=case_reference))

    details, error_response = _load_client_details(case_reference)
    if error_response is not None:
        return error_response
    _clear_original_form_data()
    context = {"case": details, "active_tab": "case-details", "max_note_length": validation.MAX_PROVIDER_NOTE_LENGTH}
    if request.method == "POST":
        return _form_errors("case_details/case_details.html", values, errors, **context)
    return render_template("case_details/case_details.html", form={}, **context)


@app.get("/cases/<case_reference>/financial-eligibility")
@require_login
@require_case_reference
def financial_eligibility(case_reference: str):
    details, error_response = _load_client_details(case_reference)
    if error_response is not None:
        return error_response
    return render_template(
        "case_details/financial_eligibility.html", case=details, active_tab="financial-eligibility"
    )


@app.route("/cases/<case_reference>/do-you-want-to-give-feedback", methods=["GET", "POST"])
@require_login
@require_case_reference
def give_feedback(case_reference: str):
    def submit(values: Dict[str, Any]):
        if values["doYouWantToGiveFeedback"] == "true":
            return redirect(url_for("operator_feedback", case_reference=case_reference))
        return redirect(_client_details_url(case_reference))

    return _case_form_view(
        case_reference,
        "case_details/give_feedback.html",
        validation.validate_give_feedback,
        submit,
    )


@app.route("/cases/<case_reference>/give-operator-feedback", methods=["GET", "POST"])
@require_login
@require_case_reference
def operator_feedback(case_reference: str):
    client = get_api_client()
    choices_result = get_feedback_choices(client, case_reference)
    if choices_result["status"] != "success":
        return _render_failure(choices_result)
    choices = choices_result["data"]

    def submit(values: Dict[str, Any]):
        result = submit_operator_feedback(client, case_reference, values["category"], values["comment"])
        if result["status"] != "success":
            return _render_failure(result)
        return redirect(_client_details_url(case_reference))

    return _case_form_view(
        case_reference,
        "case_details/operator_feedback.html",
        lambda form: validation.validate_operator_feedback(form, choices),
        submit,
        categories=choices,
        max_comment_length=validation.MAX_FEEDBACK_COMMENT_LENGTH,
    )


# ---- Client detail edits -------------------------------------------------
def _client_edit_view(
    case_reference: str,
    template: str,
    validator: Callable,
    prefill: Callable[[Dict[str, Any]], Dict[str, Any]],
):
    if request.method == "GET":
        details, error_response = _load_client_details(case_reference)
        if error_response is not None:
            return error_response
        return render_template(template, case_reference=case_reference, form=prefill(details))

    values, errors = validator(request.form)
    if errors:
        return _form_errors(template, values, errors, case_reference=case_reference)

    result = update_client_details(get_api_client(), case_reference, values["apiData"])
    if result["status"] != "success":
        return _render_failure(result)
    app.logger.info("Updated client details for %s", case_reference)
    return redirect(_client_details_url(case_reference))


def _bool_field(value: Any) -> str:
    return "true" if value else "false"


@app.route("/cases/<case_reference>/client-details/change/name", methods=["GET", "POST"])
@require_login
@require_case_reference
def edit_client_name(case_reference: str):
    return _client_edit_view(
        case_reference,
        "edit/name.html",
        validation.validate_name,
        lambda d: {"fullName": d["fullName"], "existingFullName": d["fullName"]},
    )


@app.route("/cases/<case_reference>/client-details/change/date-of-birth", methods=["GET", "POST"])
@require_login
@require_case_reference
def edit_client_date_of_birth(case_reference: str):
    def prefill(details: Dict[str, Any]) -> Dict[str, Any]:
        parts = details["dateOfBirthParts"]
        return {
            "dateOfBirth-day": parts["day"],
            "dateOfBirth-month": parts["month"],
            "dateOfBirth-year": parts["year"],
            "originalDay": parts["day"],
            "originalMonth": parts["month"],
            "originalYear": parts["year"],
        }

    return _client_edit_view(case_reference, "edit/date_of_birth.html", validation.validate_date_of_birth, prefill)


@app.route("/cases/<case_reference>/client-details/change/phone-number", methods=["GET", "POST"])
@require_login
@require_case_reference
def edit_client_phone_number(case_reference: str):
    def prefill(details: Dict[str, Any]) -> Dict[str, Any]:
        return {
            "phoneNumber": details["phoneNumber"],
            "safeToCall": details["safeToCall"],
            "announceCall": details["announceCall"],
            "existingPhoneNumber": details["phoneNumber"],
            "existingSafeToCall": _bool_field(details["safeToCall"]),
            "existingAnnounceCall": _bool_field(details["announceCall"]),
        }

    return _client_edit_view(case_reference, "edit/phone_number.html", validation.validate_phone_number, prefill)


@app.route("/cases/<case_reference>/client-details/change/email-address", methods=["GET", "POST"])
@require_login
@require_case_reference
def edit_client_email_address(case_reference: str):
    return _client_edit_view(
        case_reference,
        "edit/email_address.html",
        validation.validate_email_address,
        lambda d: {"emailAddress": d["emailAddress"], "existingEmailAddress": d["emailAddress"]},
    )


@app.route("/cases/<case_reference>/client-details/change/address", methods=["GET", "POST"])
@require_login
@require_case_reference
def edit_client_address(case_reference: str):
    return _client_edit_view(
        case_reference,
        "edit/address.html",
        validation.validate_address,
        lambda d: {
            "address": d["address"],
            "postcode": d["postcode"],
            "existingAddress": d["address"],
            "existingPostcode": d["postcode"],
        },
    )


# ---- Third party ---------------------------------------------------------
def _third_party_context(case_reference: str, mode: str) -> Dict[str, Any]:
    return {
        "case_reference": case_reference,
        "mode": mode,
        "relationship_options": RELATIONSHIP_OPTIONS,
        "passphrase_options": PASSPHRASE_OPTIONS,
    }


def _has_soft_deleted_third_party(case_reference: str) -> bool:
    cache = session.get(THIRD_PARTY_CACHE_KEY) or {}
    return cache.get("caseReference") == case_reference and bool(cache.get("hasSoftDeletedThirdParty"))


def _save_third_party(case_reference: str, mode: str):
    context = _third_party_context(case_reference, mode)
    values, errors = validation.validate_third_party(request.form)
    if errors:
        return _form_errors("edit/third_party.html", values, errors, **context)

    payload = prepare_third_party_data(values)
    client = get_api_client()
    # A soft-deleted record still exists server side, so it must be patched.
    if mode == "edit" or _has_soft_deleted_third_party(case_reference):
        result = update_third_party(client, case_reference, payload)
    else:
        result = add_third_party(client, case_reference, payload)
    if result["status"] != "success":
        return _render_failure(result)
    session.pop(THIRD_PARTY_CACHE_KEY, None)
    return redirect(_client_details_url(case_reference))


@app.route("/cases/<case_reference>/client-details/add/third-party", methods=["GET", "POST"])
@require_login
@require_case_reference
def add_client_third_party(case_reference: str):
    if request.method == "GET":
        return render_template("edit/third_party.html", form={}, **_third_party_context(case_reference, "add"))
    return _save_third_party(case_reference, "add")


@app.route("/cases/<case_reference>/client-details/change/third-party", methods=["GET", "POST"])
@require_login
@require_case_reference
def edit_client_third_party(case_reference: str):
    if request.method == "POST":
        return _save_third_party(case_reference, "edit")

    details, error_response = _load_client_details(case_reference)
    if error_response is not None:
        return error_response
    third_party = details.get("thirdParty") or {}
    form = {
        "thirdPartyFullName": third_party.get("fullName", ""),
        "thirdPartyEmailAddress": third_party.get("emailAddress", ""),
        "thirdPartyContactNumber": third_party.get("contactNumber", ""),
        "thirdPartySafeToCall": third_party.get("safeToCall", False),
        "thirdPartyAddress": third_party.get("address", ""),
        "thirdPartyPostcode": third_party.get("postcode", ""),
        "thirdPartyRelationshipToClient": next(iter((third_party.get("relationshipToClient") or {}).get("selected") or []), ""),
        "thirdPartyPassphraseSetUp": next(iter((third_party.get("passphraseSetUp") or {}).get("selected") or []), ""),
        "thirdPartyPassphrase": (third_party.get("passphraseSetUp") or {}).get("passphrase", ""),
    }
    return render_template("edit/third_party.html", form=form, **_third_party_context(case_reference, "edit"))


@app.route("/cases/<case_reference>/confirm/remove-third-party", methods=["GET", "POST"])
@require_login
@require_case_reference
def remove_third_party(case_reference: str):
    if request.method == "GET":
        return render_template(
            "confirm_remove.html",
            case_reference=case_reference,
            heading="Are you sure you want to remove the third party?",
            action_endpoint="remove_third_party",
        )

    result = delete_third_party(get_api_client(), case_reference)
    if result["status"] != "success":
        return _render_failure(result)
    app.logger.info("Removed third party for %s", case_reference)
    return redirect(_client_details_url(case_reference))


# ---- Support needs -------------------------------------------------------
def _support_needs_context(case_reference: str, mode: str) -> Dict[str, Any]:
    return {
        "case_reference": case_reference,
        "mode": mode,
        "support_options": SUPPORT_NEED_OPTIONS,
        "languages": LANGUAGES,
    }


@app.route("/cases/<case_reference>/client-details/add/support-need", methods=["GET", "POST"])
@require_login
@require_case_reference
def add_client_support_needs(case_reference: str):
    context = _support_needs_context(case_reference, "add")
    if request.method == "GET":
        return render_template("edit/support_needs.html", form={}, **context)

    values, errors = validation.validate_support_needs(request.form)
    if errors:
        return _form_errors("edit/support_needs.html", values, errors, **context)
    result = add_support_needs(get_api_client(), case_reference, prepare_support_needs_data(values))
    if result["status"] != "success":
        return _render_failure(result)
    return redirect(_client_details_url(case_reference))


@app.route("/cases/<case_reference>/client-details/change/support-need", methods=["GET", "POST"])
@require_login
@require_case_reference
def edit_client_support_needs(case_reference: str):
    context = _support_needs_context(case_reference, "edit")
    if request.method == "GET":
        details, error_response = _load_client_details(case_reference)
        if error_response is not None:
            return error_response
        needs = details.get("clientSupportNeeds") or {}
        form = {
            "clientSupportNeeds": needs.get("selected", []),
            "languageSupportNeeds": needs.get("languageSupportNeeds", ""),
            "notes": needs.get("notes", ""),
        }
        session[SUPPORT_NEEDS_ORIGINAL_KEY] = {"caseReference": case_reference, **form}
        return render_template("edit/support_needs.html", form=form, **context)

    original = session.get(SUPPORT_NEEDS_ORIGINAL_KEY)
    if not isinstance(original, dict) or original.get("caseReference") != case_reference:
        original = None
    values, errors = validation.validate_support_needs(request.form, original=original)
    if errors:
        return _form_errors("edit/support_needs.html", values, errors, **context)
    result = update_support_needs(get_api_client(), case_reference, prepare_support_needs_data(values))
    if result["status"] != "success":
        return _render_failure(result)
    session.pop(SUPPORT_NEEDS_ORIGINAL_KEY, None)
    return redirect(_client_details_url(case_reference))


@app.route("/cases/<case_reference>/confirm/remove-support-need", methods=["GET", "POST"])
@require_login
@require_case_reference
def remove_support_needs(case_reference: str):
    if request.method == "GET":
        return render_template(
            "confirm_remove.html",
            case_reference=case_reference,
            heading="Are you sure you want to remove the client support needs?",
            action_endpoint="remove_support_needs",
        )

    result = delete_support_needs(get_api_client(), case_reference)
    if result["status"] != "success":
        return _render_failure(result)
    app.logger.info("Removed support needs for %s", case_reference)
    return redirect(_client_details_url(case_reference))


# ---- Entrypoint ---------------------------------------------------------
if __name__ == "__main__":
    app.logger.info("Starting %s on port %s (%s)", config.SERVICE_NAME, config.PORT, config.ENVIRONMENT)
    if not config.is_api_configured():
        app.logger.warning("API_URL is not set; sign in will fail until it is configured")
    app.run(host="0.0.0.0", port=config.PORT, debug=not config.is_production())
