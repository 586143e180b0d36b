from __future__ import annotations

import json
import time
from datetime import datetime, timedelta, timezone

import httpx
import pytest
from respx import MockRouter

import mycc_config
from conftest import API_ROOT, CSRF_TOKEN, TOKEN_URL, case_payload
from services.auth import get_auth_service
from services.security import CSRF_SESSION_KEY

REF = "PC-1922-1879"
CASE_URL = f"{API_ROOT}/case/{REF}"


def _post(client, path, data=None, **kwargs):
    form = {"_csrf": CSRF_TOKEN}
    form.update(data or {})
    return client.post(path, data=form, **kwargs)


# ---- Diagnostics and auth --------------------------------------------------
def test_status_and_health(client) -> None:
    assert client.get("/status").get_data(as_text=True) == "OK"
    assert client.get("/health").get_data(as_text=True) == "Healthy"


def test_security_headers(client) -> None:
    response = client.get("/status")
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"


def test_protected_pages_redirect_to_login(client) -> None:
    response = client.get("/cases/new")
    assert response.status_code == 302
    assert response.location.endswith("/login")


def test_login_page_renders(client) -> None:
    response = client.get("/login")
    assert response.status_code == 200
    assert 'name="_csrf"' in response.get_data(as_text=True)


def test_post_without_csrf_token_is_rejected(client) -> None:
    response = client.post("/login", data={"username": "caseworker", "password": "s3cret"})
    assert response.status_code == 403


def test_login_stores_encrypted_credentials(client, respx_mock: MockRouter) -> None:
    respx_mock.post(TOKEN_URL).mock(
        return_value=httpx.Response(200, json={"access_token": "abc", "token_type": "Bearer", "expires_in": 1800})
    )
    with client.session_transaction() as sess:
        sess[CSRF_SESSION_KEY] = CSRF_TOKEN

    response = _post(client, "/login", {"username": "caseworker", "password": "s3cret"})

    assert response.status_code == 302
    assert response.location.endswith("/cases/new")
    with client.session_transaction() as sess:
        stored = sess["auth_credentials"]
        assert stored["username"] == "caseworker"
        assert stored["password"] != "s3cret"
        assert sess["auth_tokens"]["access_token"] == "abc"


def test_login_with_bad_credentials(client, respx_mock: MockRouter) -> None:
    respx_mock.post(TOKEN_URL).mock(return_value=httpx.Response(401, json={"detail": "Invalid credentials"}))
    with client.session_transaction() as sess:
        sess[CSRF_SESSION_KEY] = CSRF_TOKEN

    response = _post(client, "/login", {"username": "caseworker", "password": "wrong"})

    assert response.status_code == 401
    assert "Invalid username or password" in response.get_data(as_text=True)


def test_login_validation_errors(client) -> None:
    with client.session_transaction() as sess:
        sess[CSRF_SESSION_KEY] = CSRF_TOKEN

    response = _post(client, "/login", {"username": "", "password": ""})

    assert response.status_code == 400
    assert "Enter your username" in response.get_data(as_text=True)


def test_logout_clears_session(logged_in_client) -> None:
    response = logged_in_client.get("/logout")

    assert response.location.endswith("/login")
    with logged_in_client.session_transaction() as sess:
        assert "auth_credentials" not in sess


def test_idle_session_expires(logged_in_client) -> None:
    with logged_in_client.session_transaction() as sess:
        sess["last_activity"] = (datetime.now(timezone.utc) - timedelta(minutes=31)).isoformat()

    response = logged_in_client.get("/cases/new")

    assert response.location.endswith("/login")


def test_idle_session_expiry_drops_shared_auth_service(logged_in_client, credentials) -> None:
    shared = get_auth_service(mycc_config.API, credentials)
    with logged_in_client.session_transaction() as sess:
        sess["last_activity"] = (datetime.now(timezone.utc) - timedelta(minutes=31)).isoformat()

    logged_in_client.get("/cases/new")

    assert get_auth_service(mycc_config.API, credentials) is not shared


def test_unreadable_session_credentials_drop_shared_auth_service(logged_in_client, credentials) -> None:
    shared = get_auth_service(mycc_config.API, credentials)
    with logged_in_client.session_transaction() as sess:
        stored = dict(sess["auth_credentials"])
        stored["password"] = "not-a-fernet-token"
        sess["auth_credentials"] = stored

    response = logged_in_client.get("/cases/new")

    assert response.location.endswith("/login")
    assert get_auth_service(mycc_config.API, credentials) is not shared


def test_login_during_outage_reports_service_error(client, respx_mock: MockRouter) -> None:
    respx_mock.post(TOKEN_URL).mock(side_effect=httpx.ConnectError("refused"))
    with client.session_transaction() as sess:
        sess[CSRF_SESSION_KEY] = CSRF_TOKEN

    response = _post(client, "/login", {"username": "caseworker", "password": "s3cret"})

    body = response.get_data(as_text=True)
    assert response.status_code == 503
    assert "Unable to connect" in body
    assert "Invalid username or password" not in body


# ---- Case lists and search -------------------------------------------------
def test_home_redirects_to_new_cases(logged_in_client) -> None:
    assert logged_in_client.get("/").location.endswith("/cases/new")


def test_case_list_renders_tab(logged_in_client, respx_mock: MockRouter) -> None:
    route = respx_mock.get(f"{API_ROOT}/case").mock(
        return_value=httpx.Response(
            200,
            json={"count": 1, "results": [{"reference": REF, "full_name": "Jack Youngs", "state": "accepted"}]},
        )
    )

    response = logged_in_client.get("/cases/advising?ordering=full_name")

    body = response.get_data(as_text=True)
    assert response.status_code == 200
    assert "Jack Youngs" in body
    params = route.calls.last.request.url.params
    assert params["only"] == "accepted"
    assert params["ordering"] == "full_name"
    assert route.calls.last.request.headers["Authorization"] == "Bearer test-token"


def test_case_list_ignores_unknown_sort_field(logged_in_client, respx_mock: MockRouter) -> None:
    route = respx_mock.get(f"{API_ROOT}/case").mock(return_value=httpx.Response(200, json={"count": 0, "results": []}))

    logged_in_client.get("/cases/new?ordering=-password")

    assert route.calls.last.request.url.params["ordering"] == "-provider_assigned_at"


def test_case_list_shows_api_failure_inline(logged_in_client, respx_mock: MockRouter) -> None:
    respx_mock.get(f"{API_ROOT}/case").mock(return_value=httpx.Response(503))

    response = logged_in_client.get("/cases/new")

    assert response.status_code == 200
    assert "Service unavailable" in response.get_data(as_text=True)


def test_unknown_tab_is_not_found(logged_in_client) -> None:
    assert logged_in_client.get("/cases/archived").status_code == 404


def test_search_post_redirect_get(logged_in_client, respx_mock: MockRouter) -> None:
    route = respx_mock.get(f"{API_ROOT}/case/").mock(
        return_value=httpx.Response(200, json={"count": 1, "results": [{"reference": REF, "full_name": "Jack Youngs"}]})
    )

    response = _post(logged_in_client, "/search", {"searchKeyword": "Jack", "status": "new"})
    assert response.location.endswith("/search")

    response = logged_in_client.get("/search")
    assert "Jack Youngs" in response.get_data(as_text=True)
    params = route.calls.last.request.url.params
    assert params["search"] == "Jack"
    assert params["only"] == "new"
    assert params["page_size"] == "4"


def test_search_without_keyword_is_rejected(logged_in_client) -> None:
    response = _post(logged_in_client, "/search", {"searchKeyword": ""})
    assert response.status_code == 400
    assert "Enter a search term" in response.get_data(as_text=True)


def test_search_clear(logged_in_client) -> None:
    with logged_in_client.session_transaction() as sess:
        sess["search"] = {"keyword": "Jack", "status": ""}

    logged_in_client.get("/search/clear")

    with logged_in_client.session_transaction() as sess:
        assert "search" not in sess


# ---- Case details ----------------------------------------------------------
def test_invalid_case_reference_is_rejected(logged_in_client) -> None:
    response = logged_in_client.get("/cases/not-a-ref/client-details")
    assert response.status_code == 400
    assert "Invalid case reference" in response.get_data(as_text=True)


def test_client_details_page(logged_in_client, respx_mock: MockRouter) -> None:
    third_party = {"personal_details": {"full_name": None}, "personal_relationship": "OTHER"}
    respx_mock.get(f"{CASE_URL}/detailed").mock(
        return_value=httpx.Response(200, json=case_payload(thirdparty_details=third_party))
    )
    with logged_in_client.session_transaction() as sess:
        sess["clientSupportNeedsOriginal"] = {"caseReference": REF}

    response = logged_in_client.get(f"/cases/{REF}/client-details")

    body = response.get_data(as_text=True)
    assert response.status_code == 200
    assert "Jack Youngs" in body
    assert "Add third party contact" in body
    with logged_in_client.session_transaction() as sess:
        assert sess["thirdPartyCache"] == {"caseReference": REF, "hasSoftDeletedThirdParty": True}
        assert "clientSupportNeedsOriginal" not in sess


def test_missing_case_renders_not_found(logged_in_client, respx_mock: MockRouter) -> None:
    respx_mock.get(f"{CASE_URL}/detailed").mock(return_value=httpx.Response(404))

    response = logged_in_client.get(f"/cases/{REF}/client-details")

    assert response.status_code == 404


def test_api_unauthorised_signs_user_out(logged_in_client, respx_mock: MockRouter) -> None:
    respx_mock.get(f"{CASE_URL}/detailed").mock(return_value=httpx.Response(401))

    response = logged_in_client.get(f"/cases/{REF}/client-details")

    assert response.location.endswith("/login")
    with logged_in_client.session_transaction() as sess:
        assert "auth_credentials" not in sess


def test_case_history_page(logged_in_client, respx_mock: MockRouter) -> None:
    respx_mock.get(f"{CASE_URL}/detailed").mock(return_value=httpx.Response(200, json=case_payload()))
    respx_mock.get(f"{CASE_URL}/logs/").mock(
        return_value=httpx.Response(
            200, json=[{"code": "COI", "created_by": "caseworker", "created": "2026-01-06T09:00:00Z", "notes": "Conflict"}]
        )
    )

    response = logged_in_client.get(f"/cases/{REF}/history")

    body = response.get_data(as_text=True)
    assert "Conflict of interest" in body
    assert "6 January 2026" in body


def test_expired_token_is_refreshed_and_saved(logged_in_client, respx_mock: MockRouter) -> None:
    token_route = respx_mock.post(TOKEN_URL).mock(
        return_value=httpx.Response(200, json={"access_token": "fresh", "token_type": "Bearer", "expires_in": 1800})
    )
    detailed = respx_mock.get(f"{CASE_URL}/detailed").mock(return_value=httpx.Response(200, json=case_payload()))
    with logged_in_client.session_transaction() as sess:
        sess["auth_tokens"] = {
            "access_token": "stale",
            "token_type": "Bearer",
            "expires_in": 1800,
            "expires_at": time.time() - 10,
        }

    logged_in_client.get(f"/cases/{REF}/client-details")

    assert token_route.call_count == 1
    assert detailed.calls.last.request.headers["Authorization"] == "Bearer fresh"
    with logged_in_client.session_transaction() as sess:
        assert sess["auth_tokens"]["access_token"] == "fresh"


def _expire_session_tokens(client) -> None:
    with client.session_transaction() as sess:
        sess["auth_tokens"] = {
            "access_token": "stale",
            "token_type": "Bearer",
            "expires_in": 1800,
            "expires_at": time.time() - 10,
        }


@pytest.mark.parametrize("path", ["/cases/new", f"/cases/{REF}/client-details", f"/cases/{REF}/history"])
def test_failed_token_refresh_signs_user_out(logged_in_client, respx_mock: MockRouter, credentials, path) -> None:
    respx_mock.post(TOKEN_URL).mock(return_value=httpx.Response(400, json={"error": "invalid_grant"}))
    _expire_session_tokens(logged_in_client)

    response = logged_in_client.get(path)

    assert response.status_code == 302
    assert response.location.endswith("/login")
    with logged_in_client.session_transaction() as sess:
        assert "auth_credentials" not in sess


def test_failed_token_refresh_during_state_change_signs_user_out(logged_in_client, respx_mock: MockRouter) -> None:
    respx_mock.post(TOKEN_URL).mock(return_value=httpx.Response(400, json={"error": "invalid_grant"}))
    _expire_session_tokens(logged_in_client)

    response = _post(logged_in_client, f"/cases/{REF}/accept")

    assert response.location.endswith("/login")


def test_case_list_unauthorised_signs_user_out(logged_in_client, respx_mock: MockRouter) -> None:
    respx_mock.get(f"{API_ROOT}/case").mock(return_value=httpx.Response(401))

    response = logged_in_client.get("/cases/new")

    assert response.location.endswith("/login")


# ---- Case state changes ----------------------------------------------------
def test_accept_redirects_to_same_site_referer(logged_in_client, respx_mock: MockRouter) -> None:
    respx_mock.post(f"{CASE_URL}/accept/").mock(return_value=httpx.Response(200, json={}))
    respx_mock.get(f"{CASE_URL}/detailed").mock(return_value=httpx.Response(200, json=case_payload()))

    response = _post(logged_in_client, f"/cases/{REF}/accept", headers={"Referer": "http://localhost/cases/new?page=2"})

    assert response.location.endswith("/cases/new?page=2")


def test_accept_ignores_foreign_referer(logged_in_client, respx_mock: MockRouter) -> None:
    respx_mock.post(f"{CASE_URL}/accept/").mock(return_value=httpx.Response(200, json={}))
    respx_mock.get(f"{CASE_URL}/detailed").mock(return_value=httpx.Response(200, json=case_payload()))

    response = _post(logged_in_client, f"/cases/{REF}/accept", headers={"Referer": "https://evil.example/phish"})

    assert response.location.endswith(f"/cases/{REF}/client-details")


def test_rejected_transition_shows_api_message(logged_in_client, respx_mock: MockRouter) -> None:
    respx_mock.post(f"{CASE_URL}/close/").mock(return_value=httpx.Response(400, json={"detail": "Case cannot be closed"}))

    response = _post(logged_in_client, f"/cases/{REF}/completed")

    assert response.status_code == 400
    assert "Case cannot be closed" in response.get_data(as_text=True)


def test_why_pending_validation_and_submit(logged_in_client, respx_mock: MockRouter) -> None:
    respx_mock.get(f"{CASE_URL}/detailed").mock(return_value=httpx.Response(200, json=case_payload()))
    response = _post(logged_in_client, f"/cases/{REF}/why-pending", {"pendingReason": "other"})
    assert response.status_code == 400
    assert "Enter why this case is pending" in response.get_data(as_text=True)

    route = respx_mock.post(f"{CASE_URL}/open/").mock(return_value=httpx.Response(200, json={}))
    response = _post(logged_in_client, f"/cases/{REF}/why-pending", {"pendingReason": "can_not_contact"})

    assert response.location.endswith(f"/cases/{REF}/client-details")
    assert json.loads(route.calls.last.request.content) == {"notes": "Cannot contact client"}


def test_why_closed_submit(logged_in_client, respx_mock: MockRouter) -> None:
    route = respx_mock.post(f"{CASE_URL}/reject/").mock(return_value=httpx.Response(200, json={}))
    respx_mock.get(f"{CASE_URL}/detailed").mock(return_value=httpx.Response(200, json=case_payload()))

    _post(logged_in_client, f"/cases/{REF}/why-closed", {"eventCode": "DUPL", "closeNote": "Same client"})

    assert json.loads(route.calls.last.request.content) == {"event_code": "DUPL", "notes": "Same client"}


@pytest.mark.parametrize("path", ["why-reopen-completed-case", "why-reopen-closed-case"])
def test_reopen_goes_to_advising_list(logged_in_client, respx_mock: MockRouter, path) -> None:
    respx_mock.get(f"{CASE_URL}/detailed").mock(return_value=httpx.Response(200, json=case_payload()))
    respx_mock.post(f"{CASE_URL}/reopen/").mock(return_value=httpx.Response(204))

    assert logged_in_client.get(f"/cases/{REF}/{path}").status_code == 200
    response = _post(logged_in_client, f"/cases/{REF}/{path}", {"reopenNote": "Client called back"})

    assert response.location.endswith("/cases/advising")


# ---- Client edits ----------------------------------------------------------
def test_edit_name_prefills_and_saves(logged_in_client, respx_mock: MockRouter) -> None:
    respx_mock.get(f"{CASE_URL}/detailed").mock(return_value=httpx.Response(200, json=case_payload()))
    route = respx_mock.patch(f"{CASE_URL}/personal_details/").mock(return_value=httpx.Response(200, json=case_payload()))

    page = logged_in_client.get(f"/cases/{REF}/client-details/change/name")
    assert 'value="Jack Youngs"' in page.get_data(as_text=True)

    response = _post(
        logged_in_client,
        f"/cases/{REF}/client-details/change/name",
        {"fullName": "Jack Young", "existingFullName": "Jack Youngs"},
    )

    assert response.location.endswith(f"/cases/{REF}/client-details")
    assert json.loads(route.calls.last.request.content) == {"full_name": "Jack Young"}


def test_unchanged_name_is_not_sent(logged_in_client) -> None:
    response = _post(
        logged_in_client,
        f"/cases/{REF}/client-details/change/name",
        {"fullName": "Jack Youngs", "existingFullName": "Jack Youngs"},
    )

    body = response.get_data(as_text=True)
    assert response.status_code == 400
    assert "Update the client name" in body
    assert 'name="existingFullName" value="Jack Youngs"' in body


def test_edit_date_of_birth_page_prefills_parts(logged_in_client, respx_mock: MockRouter) -> None:
    respx_mock.get(f"{CASE_URL}/detailed").mock(return_value=httpx.Response(200, json=case_payload()))

    body = logged_in_client.get(f"/cases/{REF}/client-details/change/date-of-birth").get_data(as_text=True)

    assert 'name="dateOfBirth-year" type="text" inputmode="numeric" value="1986"' in body
    assert 'name="originalDay" value="6"' in body


def test_edit_address_sends_uppercase_postcode(logged_in_client, respx_mock: MockRouter) -> None:
    route = respx_mock.patch(f"{CASE_URL}/personal_details/").mock(return_value=httpx.Response(200, json=case_payload()))

    _post(
        logged_in_client,
        f"/cases/{REF}/client-details/change/address",
        {"address": "2 New Road", "postcode": "sw1a 2aa", "existingAddress": "1 Skyscraper Lane"},
    )

    assert json.loads(route.calls.last.request.content) == {"street": "2 New Road", "postcode": "SW1A 2AA"}


def test_add_third_party_posts_new_record(logged_in_client, respx_mock: MockRouter) -> None:
    route = respx_mock.post(f"{CASE_URL}/thirdparty_details/").mock(return_value=httpx.Response(201, json=case_payload()))

    response = _post(
        logged_in_client,
        f"/cases/{REF}/client-details/add/third-party",
        {
            "thirdPartyFullName": "Anna Youngs",
            "thirdPartyRelationshipToClient": "FAMILY_FRIEND",
            "thirdPartyPassphraseSetUp": "CHILD_PATIENT",
        },
    )

    assert response.location.endswith(f"/cases/{REF}/client-details")
    sent = json.loads(route.calls.last.request.content)
    assert sent["personal_details"]["full_name"] == "Anna Youngs"
    assert sent["reason"] == "CHILD_PATIENT"


def test_add_third_party_patches_soft_deleted_record(logged_in_client, respx_mock: MockRouter) -> None:
    route = respx_mock.patch(f"{CASE_URL}/thirdparty_details/").mock(return_value=httpx.Response(200, json=case_payload()))
    with logged_in_client.session_transaction() as sess:
        sess["thirdPartyCache"] = {"caseReference": REF, "hasSoftDeletedThirdParty": True}

    _post(
        logged_in_client,
        f"/cases/{REF}/client-details/add/third-party",
        {
            "thirdPartyFullName": "Anna Youngs",
            "thirdPartyRelationshipToClient": "OTHER",
            "thirdPartyPassphraseSetUp": "Yes",
            "thirdPartyPassphrase": "bluebird",
        },
    )

    assert route.call_count == 1
    with logged_in_client.session_transaction() as sess:
        assert "thirdPartyCache" not in sess


def test_remove_third_party(logged_in_client, respx_mock: MockRouter) -> None:
    route = respx_mock.patch(f"{CASE_URL}/thirdparty_details/").mock(return_value=httpx.Response(200, json={}))
    respx_mock.get(f"{CASE_URL}/detailed").mock(return_value=httpx.Response(200, json=case_payload()))

    assert "remove the third party" in logged_in_client.get(f"/cases/{REF}/confirm/remove-third-party").get_data(as_text=True)
    response = _post(logged_in_client, f"/cases/{REF}/confirm/remove-third-party")

    assert response.location.endswith(f"/cases/{REF}/client-details")
    assert json.loads(route.calls.last.request.content)["personal_relationship"] == "OTHER"


def test_change_support_needs_detects_no_change(logged_in_client, respx_mock: MockRouter) -> None:
    adaptations = {"bsl_webcam": True, "language": None, "notes": "", "no_adaptations_required": False}
    respx_mock.get(f"{CASE_URL}/detailed").mock(
        return_value=httpx.Response(200, json=case_payload(adaptation_details=adaptations))
    )

    page = logged_in_client.get(f"/cases/{REF}/client-details/change/support-need")
    assert page.status_code == 200

    response = _post(logged_in_client, f"/cases/{REF}/client-details/change/support-need", {"clientSupportNeeds": "bslWebcam"})

    assert response.status_code == 400
    assert "Update the client support needs" in response.get_data(as_text=True)


def test_add_support_needs(logged_in_client, respx_mock: MockRouter) -> None:
    route = respx_mock.patch(f"{CASE_URL}/adaptation_details/").mock(return_value=httpx.Response(200, json={}))
    respx_mock.get(f"{CASE_URL}/detailed").mock(return_value=httpx.Response(200, json=case_payload()))

    response = _post(
        logged_in_client,
        f"/cases/{REF}/client-details/add/support-need",
        {"clientSupportNeeds": ["textRelay", "languageSelection"], "languageSupportNeeds": "Welsh"},
    )

    assert response.location.endswith(f"/cases/{REF}/client-details")
    sent = json.loads(route.calls.last.request.content)
    assert sent["text_relay"] is True
    assert sent["language"] == "Welsh"


def test_remove_support_needs(logged_in_client, respx_mock: MockRouter) -> None:
    route = respx_mock.patch(f"{CASE_URL}/adaptation_details/").mock(return_value=httpx.Response(200, json={}))
    respx_mock.get(f"{CASE_URL}/detailed").mock(return_value=httpx.Response(200, json=case_payload()))

    _post(logged_in_client, f"/cases/{REF}/confirm/remove-support-need")

    assert json.loads(route.calls.last.request.content)["no_adaptations_required"] is True


# ---- Interstitials, case details and feedback ------------------------------
def test_why_pending_page_shows_case_header(logged_in_client, respx_mock: MockRouter) -> None:
    respx_mock.get(f"{CASE_URL}/detailed").mock(return_value=httpx.Response(200, json=case_payload()))

    response = logged_in_client.get(f"/cases/{REF}/why-pending")

    assert response.status_code == 200
    assert "Jack Youngs" in response.get_data(as_text=True)


def test_why_closed_page_for_missing_case(logged_in_client, respx_mock: MockRouter) -> None:
    respx_mock.get(f"{CASE_URL}/detailed").mock(return_value=httpx.Response(404))

    assert logged_in_client.get(f"/cases/{REF}/why-closed").status_code == 404


def test_case_details_tab_lists_notes(logged_in_client, respx_mock: MockRouter) -> None:
    notes = [{"provider_notes": "Called client back", "created": "2026-01-08T09:00:00Z", "created_by": "caseworker"}]
    respx_mock.get(f"{CASE_URL}/detailed").mock(
        return_value=httpx.Response(200, json=case_payload(notes_history=notes, diagnosis={"category": "Housing"}))
    )

    response = logged_in_client.get(f"/cases/{REF}/case-details")

    body = response.get_data(as_text=True)
    assert response.status_code == 200
    assert "Operator note" in body
    assert "Called client back" in body
    assert "8 January 2026" in body
    assert "Housing" in body


def test_save_provider_note(logged_in_client, respx_mock: MockRouter) -> None:
    route = respx_mock.patch(f"{CASE_URL}/").mock(return_value=httpx.Response(200, json=case_payload()))

    response = _post(logged_in_client, f"/cases/{REF}/case-details", {"providerNote": "  Left a voicemail  "})

    assert response.location.endswith(f"/cases/{REF}/case-details")
    assert json.loads(route.calls.last.request.content) == {"provider_notes": "Left a voicemail"}


def test_empty_provider_note_is_rejected(logged_in_client, respx_mock: MockRouter) -> None:
    respx_mock.get(f"{CASE_URL}/detailed").mock(return_value=httpx.Response(200, json=case_payload()))

    response = _post(logged_in_client, f"/cases/{REF}/case-details", {"providerNote": " "})

    assert response.status_code == 400
    assert "Enter a note" in response.get_data(as_text=True)


def test_financial_eligibility_tab(logged_in_client, respx_mock: MockRouter) -> None:
    respx_mock.get(f"{CASE_URL}/detailed").mock(return_value=httpx.Response(200, json=case_payload()))

    response = logged_in_client.get(f"/cases/{REF}/financial-eligibility")

    body = response.get_data(as_text=True)
    assert response.status_code == 200
    assert "under construction" in body
    assert 'aria-current="page">Financial eligibility' in body


@pytest.mark.parametrize(
    "answer, target",
    [("true", f"/cases/{REF}/give-operator-feedback"), ("false", f"/cases/{REF}/client-details")],
)
def test_do_you_want_to_give_feedback_routes_answer(logged_in_client, answer, target) -> None:
    response = _post(logged_in_client, f"/cases/{REF}/do-you-want-to-give-feedback", {"doYouWantToGiveFeedback": answer})

    assert response.location.endswith(target)


def test_do_you_want_to_give_feedback_requires_answer(logged_in_client, respx_mock: MockRouter) -> None:
    respx_mock.get(f"{CASE_URL}/detailed").mock(return_value=httpx.Response(200, json=case_payload()))

    response = _post(logged_in_client, f"/cases/{REF}/do-you-want-to-give-feedback")

    assert response.status_code == 400
    assert "Select yes if you want to give feedback" in response.get_data(as_text=True)


FEEDBACK_OPTIONS = {
    "actions": {
        "POST": {
            "issue": {"choices": [{"value": "ADCO", "display_name": "Advice on call"}, {"value": "OTH", "display_name": "Other"}]}
        }
    }
}


def test_operator_feedback_form_lists_categories(logged_in_client, respx_mock: MockRouter) -> None:
    respx_mock.options(f"{CASE_URL}/feedback/").mock(return_value=httpx.Response(200, json=FEEDBACK_OPTIONS))
    respx_mock.get(f"{CASE_URL}/detailed").mock(return_value=httpx.Response(200, json=case_payload()))

    body = logged_in_client.get(f"/cases/{REF}/give-operator-feedback").get_data(as_text=True)

    assert '<option value="ADCO">Advice on call</option>' in body
    assert "Jack Youngs" in body


def test_operator_feedback_submits_issue_and_comment(logged_in_client, respx_mock: MockRouter) -> None:
    respx_mock.options(f"{CASE_URL}/feedback/").mock(return_value=httpx.Response(200, json=FEEDBACK_OPTIONS))
    route = respx_mock.post(f"{CASE_URL}/feedback/").mock(return_value=httpx.Response(201, json={"issue": "OTH"}))

    response = _post(
        logged_in_client,
        f"/cases/{REF}/give-operator-feedback",
        {"category": "OTH", "comment": "Client was given the wrong number"},
    )

    assert response.location.endswith(f"/cases/{REF}/client-details")
    assert json.loads(route.calls.last.request.content) == {"issue": "OTH", "comment": "Client was given the wrong number"}


def test_operator_feedback_rejects_unknown_category(logged_in_client, respx_mock: MockRouter) -> None:
    respx_mock.options(f"{CASE_URL}/feedback/").mock(return_value=httpx.Response(200, json=FEEDBACK_OPTIONS))
    respx_mock.get(f"{CASE_URL}/detailed").mock(return_value=httpx.Response(200, json=case_payload()))

    response = _post(logged_in_client, f"/cases/{REF}/give-operator-feedback", {"category": "NOPE", "comment": "x"})

    body = response.get_data(as_text=True)
    assert response.status_code == 400
    assert "Select a feedback category" in body
